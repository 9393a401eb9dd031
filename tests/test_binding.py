"""Tests for bind-chain synthesis."""

import pytest

from typed_records.binding import bind_encoding, nesting_depth, synthesize_bind_chain
from typed_records.config import GeneratorConfig
from typed_records.expressions import (
    BindBlock,
    BindEncoding,
    DirectBind,
    ScopedBind,
    Terminal,
    TerminalKind,
)
from typed_records.statements import insert_parameters

from conftest import PERSON_SQL


def chain_for(entity, config=None, terminal=TerminalKind.EXECUTE):
    config = config or GeneratorConfig()
    indices = {p.name: i + 1 for i, p in enumerate(entity.properties)}
    return synthesize_bind_chain(entity, entity.properties, indices, terminal, config)


class TestBindChain:
    """Tests for the nesting of scoped binds."""

    def test_all_direct(self, model):
        """Test an entity with only fixed-size values does not nest."""
        entity = model("CREATE TABLE m (a INTEGER, b REAL, c BOOLEAN);")["m"]
        chain = chain_for(entity)
        assert nesting_depth(chain) == 0
        assert [s.property for s in chain.steps] == ["a", "b", "c"]
        assert chain.tail == Terminal(TerminalKind.EXECUTE)

    def test_nesting_starts_at_first_scoped(self, model):
        entity = model("CREATE TABLE mix (a INTEGER, t TEXT, b INTEGER, u BLOB, c REAL);")["mix"]
        chain = chain_for(entity)
        assert nesting_depth(chain) == 2
        assert [s.property for s in chain.steps] == ["a"]
        assert chain.tail.property == "t"
        inner = chain.tail.body
        assert [s.property for s in inner.steps] == ["b"]
        assert inner.tail.property == "u"
        assert [s.property for s in inner.tail.body.steps] == ["c"]
        assert chain.terminal == Terminal(TerminalKind.EXECUTE)

    def test_person_insert_chain(self, model):
        """Test the exact insert chain for the person table."""
        person = model(PERSON_SQL)["person"]
        chain = synthesize_bind_chain(
            person, person.properties, insert_parameters(person), TerminalKind.EXECUTE, GeneratorConfig()
        )
        assert chain == BindBlock(
            steps=(DirectBind("person_id", BindEncoding.INT64, -1, False),),
            tail=ScopedBind(
                property="firstname",
                encoding=BindEncoding.TEXT,
                index=1,
                nullable=True,
                body=BindBlock(
                    steps=(),
                    tail=ScopedBind(
                        property="lastname",
                        encoding=BindEncoding.TEXT,
                        index=2,
                        nullable=False,
                        body=BindBlock(steps=(), tail=Terminal(TerminalKind.EXECUTE)),
                    ),
                ),
            ),
        )

    def test_continuation_terminal(self, model):
        entity = model(PERSON_SQL)["person"]
        chain = chain_for(entity, terminal=TerminalKind.CONTINUATION)
        assert chain.terminal == Terminal(TerminalKind.CONTINUATION)

    def test_empty(self, model):
        entity = model(PERSON_SQL)["person"]
        chain = synthesize_bind_chain(entity, [], {}, TerminalKind.EXECUTE, GeneratorConfig())
        assert chain == BindBlock(steps=(), tail=Terminal(TerminalKind.EXECUTE))


class TestBindEncoding:
    """Tests for how each property type is bound."""

    @pytest.fixture
    def typed(self, model):
        return model(
            "CREATE TABLE typed (i INTEGER, r REAL, s TEXT, b BLOB, f BOOLEAN, "
            "d TIMESTAMP, u UUID, l URL, m DECIMAL);"
        )["typed"]

    def test_defaults(self, typed):
        config = GeneratorConfig()
        encodings = {p.name: bind_encoding(typed, p, config) for p in typed.properties}
        assert encodings == {
            "i": BindEncoding.INT64,
            "r": BindEncoding.DOUBLE,
            "s": BindEncoding.TEXT,
            "b": BindEncoding.BLOB,
            "f": BindEncoding.BOOL,
            "d": BindEncoding.DATE_EPOCH,
            "u": BindEncoding.UUID_TEXT,
            "l": BindEncoding.URL,
            "m": BindEncoding.DECIMAL,
        }

    def test_storage_options(self, typed):
        config = GeneratorConfig(date_storage="text", uuid_storage="blob")
        assert bind_encoding(typed, typed.property("d"), config) == BindEncoding.DATE_TEXT
        assert bind_encoding(typed, typed.property("u"), config) == BindEncoding.UUID_BLOB

    def test_text_dates_nest(self, typed):
        """Test text-stored dates become scoped binds."""
        assert BindEncoding.DATE_TEXT.is_scoped
        assert not BindEncoding.DATE_EPOCH.is_scoped
        epoch = chain_for(typed)
        text = chain_for(typed, GeneratorConfig(date_storage="text"))
        assert nesting_depth(text) == nesting_depth(epoch) + 1

    def test_custom_type(self, model):
        config = GeneratorConfig(sql_type_property_types={"MONEY": "custom:Money"})
        entity = model("CREATE TABLE price (amount MONEY NOT NULL);", config)["price"]
        chain = chain_for(entity, config)
        assert chain.tail.encoding == BindEncoding.CUSTOM
        assert chain.tail.custom_name == "Money"
