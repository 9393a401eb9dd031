"""Tests for extract expression synthesis."""

from typed_records.config import GeneratorConfig
from typed_records.expressions import (
    All,
    Coalesce,
    ColumnRead,
    Conditional,
    IndexInRange,
    IsNull,
    Literal,
    MakeDate,
    NoValue,
    Not,
    Reader,
)
from typed_records.extraction import column_read, extract_expression, synthesize_extracts

from conftest import PERSON_SQL


class TestExtractExpression:
    """Tests for the shape of extract expressions."""

    def test_not_null(self, model):
        lastname = model(PERSON_SQL)["person"].property("lastname")
        assert extract_expression(lastname) == Conditional(
            All((IndexInRange("lastname"), Not(IsNull("lastname")))),
            ColumnRead("lastname", Reader.TEXT, length_query=True),
            Literal(""),
        )

    def test_nullable(self, model):
        firstname = model(PERSON_SQL)["person"].property("firstname")
        assert extract_expression(firstname) == Conditional(
            IndexInRange("firstname"),
            Conditional(
                IsNull("firstname"),
                NoValue(),
                ColumnRead("firstname", Reader.TEXT, length_query=True),
            ),
            NoValue(),
        )

    def test_declared_default(self, model):
        """Test an absent column falls back to the declared default."""
        entity = model("CREATE TABLE t (n INTEGER NOT NULL DEFAULT 5);")["t"]
        expression = extract_expression(entity.property("n"))
        assert expression.otherwise == Literal(5)
        assert expression.then == ColumnRead("n", Reader.INT64)

    def test_fallible_read_is_coalesced(self, model):
        entity = model("CREATE TABLE t (at TIMESTAMP NOT NULL);")["t"]
        expression = extract_expression(entity.property("at"))
        assert expression.then == Coalesce(ColumnRead("at", Reader.DATE), MakeDate(0.0))

    def test_nullable_fallible_read(self, model):
        entity = model("CREATE TABLE t (id UUID);")["t"]
        expression = extract_expression(entity.property("id"))
        assert expression.then.otherwise == Coalesce(ColumnRead("id", Reader.UUID), NoValue())


class TestColumnRead:
    def test_length_query(self, model):
        entity = model("CREATE TABLE t (a INTEGER, b TEXT, c BLOB, d REAL);")["t"]
        reads = {p.name: column_read(p) for p in entity.properties}
        assert [r.length_query for r in reads.values()] == [False, True, True, False]

    def test_custom_name(self, model):
        config = GeneratorConfig(column_suffix_property_types={"_amount": "custom:Money"})
        entity = model("CREATE TABLE t (total_amount TEXT);", config)["t"]
        read = column_read(entity.property("total_amount"))
        assert read.reader == Reader.CUSTOM
        assert read.custom_name == "Money"

    def test_one_per_property(self, model):
        person = model(PERSON_SQL)["person"]
        assert [e.property for e in synthesize_extracts(person)] == [
            "person_id",
            "firstname",
            "lastname",
        ]
