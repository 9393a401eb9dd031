"""Parser for SQL column default literals.

``PRAGMA table_info`` reports ``dflt_value`` as the SQL text of the DEFAULT
clause, e.g. ``'abc'``, ``-1``, ``X'00FF'`` or ``CURRENT_TIMESTAMP``. Only
literals are accepted; expressions like ``(datetime('now'))`` raise
``SyntaxError``.
"""

from __future__ import annotations

import threading
from typing import Any

import ply.yacc as yacc

from typed_records.parsing.default_lexer import DefaultValueLexer
from typed_records.types import DefaultKind, DefaultValue


class DefaultValueParser:
    """Parser turning default-clause text into a ``DefaultValue``."""

    tokens = DefaultValueLexer.tokens

    def __init__(self) -> None:
        self.lexer = DefaultValueLexer()
        self.lexer.build()
        self.parser: yacc.LRParser = None  # type: ignore

    def p_default_literal(self, p: yacc.YaccProduction) -> None:
        """default : literal"""
        p[0] = p[1]

    def p_default_parenthesized(self, p: yacc.YaccProduction) -> None:
        """default : LPAREN default RPAREN"""
        p[0] = p[2]

    def p_literal_null(self, p: yacc.YaccProduction) -> None:
        """literal : NULL"""
        p[0] = DefaultValue(DefaultKind.NULL)

    def p_literal_bool(self, p: yacc.YaccProduction) -> None:
        """literal : TRUE
                   | FALSE"""
        p[0] = DefaultValue(DefaultKind.INTEGER, 1 if p[1].upper() == "TRUE" else 0)

    def p_literal_string(self, p: yacc.YaccProduction) -> None:
        """literal : STRING"""
        p[0] = DefaultValue(DefaultKind.TEXT, p[1])

    def p_literal_blob(self, p: yacc.YaccProduction) -> None:
        """literal : BLOB"""
        p[0] = DefaultValue(DefaultKind.BLOB, p[1])

    def p_literal_current(self, p: yacc.YaccProduction) -> None:
        """literal : CURRENT_DATE
                   | CURRENT_TIME
                   | CURRENT_TIMESTAMP"""
        p[0] = DefaultValue(DefaultKind(p[1].lower()))

    def p_literal_number(self, p: yacc.YaccProduction) -> None:
        """literal : number"""
        p[0] = p[1]

    def p_literal_signed(self, p: yacc.YaccProduction) -> None:
        """literal : PLUS number
                   | MINUS number"""
        number = p[2]
        if p[1] == "-":
            number = DefaultValue(number.kind, -number.value)
        p[0] = number

    def p_number_integer(self, p: yacc.YaccProduction) -> None:
        """number : INTEGER"""
        p[0] = DefaultValue(DefaultKind.INTEGER, p[1])

    def p_number_float(self, p: yacc.YaccProduction) -> None:
        """number : FLOAT"""
        p[0] = DefaultValue(DefaultKind.REAL, p[1])

    def p_error(self, p: yacc.YaccProduction) -> None:
        if p:
            raise SyntaxError(f"Not a literal default at '{p.value}' (position {p.lexpos})")
        else:
            raise SyntaxError("Unexpected end of default value")

    def build(self, **kwargs: Any) -> None:
        """Build the parser."""
        self.parser = yacc.yacc(module=self, **kwargs)

    def parse(self, data: str) -> DefaultValue:
        """Parse default-clause text into a ``DefaultValue``."""
        if self.parser is None:
            self.build(debug=False, write_tables=False, errorlog=yacc.NullLogger())
        return self.parser.parse(data, lexer=self.lexer.lexer)


_local = threading.local()


def parse_default(
    text: str | None, parser: DefaultValueParser | None = None
) -> DefaultValue | None:
    """Parse a ``dflt_value`` column. None means no DEFAULT clause.

    Without an explicit ``parser`` each thread uses its own.

    Raises:
        SyntaxError: If the text is not a literal.
    """
    if text is None:
        return None
    if parser is None:
        parser = getattr(_local, "parser", None)
        if parser is None:
            parser = _local.parser = DefaultValueParser()
    return parser.parse(text)
