"""Parsing of SQL default-value literals reported by the catalog."""

from typed_records.parsing.default_lexer import DefaultValueLexer
from typed_records.parsing.default_parser import DefaultValueParser, parse_default

__all__ = [
    "DefaultValueLexer",
    "DefaultValueParser",
    "parse_default",
]
