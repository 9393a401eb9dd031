"""Lexer for SQL column default literals."""

import ply.lex as lex


class DefaultValueLexer:
    """Lexer for the literal subset of SQL allowed in a column default."""

    # Reserved keywords, matched case-insensitively
    reserved = {
        "NULL": "NULL",
        "TRUE": "TRUE",
        "FALSE": "FALSE",
        "CURRENT_DATE": "CURRENT_DATE",
        "CURRENT_TIME": "CURRENT_TIME",
        "CURRENT_TIMESTAMP": "CURRENT_TIMESTAMP",
    }

    tokens = [
        "IDENTIFIER",
        "INTEGER",
        "FLOAT",
        "STRING",
        "BLOB",
        "PLUS",
        "MINUS",
        "LPAREN",
        "RPAREN",
    ] + list(reserved.values())

    t_PLUS = r"\+"
    t_MINUS = r"-"
    t_LPAREN = r"\("
    t_RPAREN = r"\)"

    t_ignore = " \t\r"

    def __init__(self) -> None:
        self.lexer: lex.LexToken = None  # type: ignore

    def t_BLOB(self, t: lex.LexToken) -> lex.LexToken:
        r"[xX]'([0-9a-fA-F]{2})*'"
        t.value = bytes.fromhex(t.value[2:-1])
        return t

    def t_STRING(self, t: lex.LexToken) -> lex.LexToken:
        r"'([^']|'')*'"
        t.value = t.value[1:-1].replace("''", "'")
        return t

    def t_QUOTED_STRING(self, t: lex.LexToken) -> lex.LexToken:
        r'"([^"]|"")*"'
        # SQLite accepts a double-quoted string in a DEFAULT clause
        t.type = "STRING"
        t.value = t.value[1:-1].replace('""', '"')
        return t

    def t_HEX(self, t: lex.LexToken) -> lex.LexToken:
        r"0[xX][0-9a-fA-F]+"
        t.type = "INTEGER"
        t.value = int(t.value, 16)
        return t

    def t_FLOAT(self, t: lex.LexToken) -> lex.LexToken:
        r"(\d+\.\d*|\.\d+)([eE][+-]?\d+)?|\d+[eE][+-]?\d+"
        t.value = float(t.value)
        return t

    def t_INTEGER(self, t: lex.LexToken) -> lex.LexToken:
        r"\d+"
        t.value = int(t.value)
        return t

    def t_IDENTIFIER(self, t: lex.LexToken) -> lex.LexToken:
        r"[a-zA-Z_][a-zA-Z0-9_]*"
        t.type = self.reserved.get(t.value.upper(), "IDENTIFIER")
        return t

    def t_NEWLINE(self, t: lex.LexToken) -> None:
        r"\n+"
        t.lexer.lineno += len(t.value)

    def t_error(self, t: lex.LexToken) -> None:
        raise SyntaxError(f"Illegal character '{t.value[0]}' at position {t.lexpos}")

    def build(self, **kwargs) -> None:  # type: ignore
        """Build the lexer."""
        self.lexer = lex.lex(module=self, **kwargs)

    def input(self, data: str) -> None:
        """Set the input string to tokenize."""
        self.lexer.input(data)

    def token(self) -> lex.LexToken | None:
        """Return the next token."""
        return self.lexer.token()

    def tokenize(self, data: str) -> list[lex.LexToken]:
        """Tokenize the input and return all tokens."""
        self.input(data)
        tokens = []
        while True:
            tok = self.token()
            if tok is None:
                break
            tokens.append(tok)
        return tokens
