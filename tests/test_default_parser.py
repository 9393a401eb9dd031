"""Tests for parsing DEFAULT clause text."""

import sys
from concurrent.futures import ThreadPoolExecutor

import pytest

from typed_records.parsing import DefaultValueLexer, DefaultValueParser, parse_default
from typed_records.types import DefaultKind, DefaultValue


class TestDefaultValueLexer:
    """Tests for the default literal lexer."""

    @pytest.fixture
    def lexer(self):
        lexer = DefaultValueLexer()
        lexer.build()
        return lexer

    def test_tokens(self, lexer):
        tokens = lexer.tokenize("-(1.5) 'a''b' X'00ff' null")
        assert [t.type for t in tokens] == [
            "MINUS", "LPAREN", "FLOAT", "RPAREN", "STRING", "BLOB", "NULL",
        ]
        assert tokens[4].value == "a'b"
        assert tokens[5].value == b"\x00\xff"

    def test_hex_integer(self, lexer):
        tokens = lexer.tokenize("0x1F")
        assert tokens[0].type == "INTEGER"
        assert tokens[0].value == 31

    def test_illegal_character(self, lexer):
        with pytest.raises(SyntaxError):
            lexer.tokenize("1 ; 2")


class TestDefaultValueParser:
    """Tests for the default literal grammar."""

    @pytest.fixture
    def parser(self):
        return DefaultValueParser()

    def test_integers(self, parser):
        assert parser.parse("42") == DefaultValue(DefaultKind.INTEGER, 42)
        assert parser.parse("-1") == DefaultValue(DefaultKind.INTEGER, -1)
        assert parser.parse("+7") == DefaultValue(DefaultKind.INTEGER, 7)

    def test_reals(self, parser):
        assert parser.parse("3.25") == DefaultValue(DefaultKind.REAL, 3.25)
        assert parser.parse("-.5") == DefaultValue(DefaultKind.REAL, -0.5)
        assert parser.parse("1e3") == DefaultValue(DefaultKind.REAL, 1000.0)

    def test_text(self, parser):
        assert parser.parse("'hello'") == DefaultValue(DefaultKind.TEXT, "hello")
        assert parser.parse("''") == DefaultValue(DefaultKind.TEXT, "")
        assert parser.parse('"quoted"') == DefaultValue(DefaultKind.TEXT, "quoted")

    def test_blob(self, parser):
        assert parser.parse("X'CAFE'") == DefaultValue(DefaultKind.BLOB, b"\xca\xfe")

    def test_keywords(self, parser):
        """Test NULL, booleans and the current time keywords."""
        assert parser.parse("NULL") == DefaultValue(DefaultKind.NULL)
        assert parser.parse("TRUE") == DefaultValue(DefaultKind.INTEGER, 1)
        assert parser.parse("false") == DefaultValue(DefaultKind.INTEGER, 0)
        assert parser.parse("CURRENT_TIMESTAMP") == DefaultValue(DefaultKind.CURRENT_TIMESTAMP)
        assert parser.parse("current_date") == DefaultValue(DefaultKind.CURRENT_DATE)
        assert parser.parse("CURRENT_TIME") == DefaultValue(DefaultKind.CURRENT_TIME)

    def test_parenthesized(self, parser):
        assert parser.parse("((5))") == DefaultValue(DefaultKind.INTEGER, 5)

    @pytest.mark.parametrize("text", ["(datetime('now'))", "1 + 2", "abc", "("])
    def test_rejects_expressions(self, parser, text):
        """Test anything but a literal is a syntax error."""
        with pytest.raises(SyntaxError):
            parser.parse(text)


class TestParseDefault:
    def test_no_default(self):
        assert parse_default(None) is None

    def test_reuses_parser(self):
        assert parse_default("1") == DefaultValue(DefaultKind.INTEGER, 1)
        assert parse_default("'x'") == DefaultValue(DefaultKind.TEXT, "x")

    def test_explicit_parser(self):
        parser = DefaultValueParser()
        assert parse_default("X'01'", parser) == DefaultValue(DefaultKind.BLOB, b"\x01")

    def test_threads_do_not_share_input(self):
        """Test concurrent callers each get their own literal back."""
        literals = {
            "(3.5)": DefaultValue(DefaultKind.REAL, 3.5),
            "'abcdefghij'": DefaultValue(DefaultKind.TEXT, "abcdefghij"),
            "-42": DefaultValue(DefaultKind.INTEGER, -42),
            "X'00FF'": DefaultValue(DefaultKind.BLOB, b"\x00\xff"),
            "CURRENT_DATE": DefaultValue(DefaultKind.CURRENT_DATE),
            "NULL": DefaultValue(DefaultKind.NULL),
        }

        def parse_many(text):
            wrong = []
            for _ in range(500):
                try:
                    value = parse_default(text)
                except SyntaxError as e:
                    wrong.append((text, e))
                    continue
                if value != literals[text]:
                    wrong.append((text, value))
            return wrong

        interval = sys.getswitchinterval()
        sys.setswitchinterval(1e-6)
        try:
            with ThreadPoolExecutor(max_workers=len(literals)) as pool:
                results = list(pool.map(parse_many, literals))
        finally:
            sys.setswitchinterval(interval)
        assert [w for wrong in results for w in wrong] == []
