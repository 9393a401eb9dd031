"""Target-neutral expression and bind-step nodes.

Synthesis produces trees of these frozen dataclasses. An emitter renders them
to source code for some target; ``typed_records.runtime`` evaluates them
directly against ``sqlite3``.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Union

# Value expressions


@dataclass(frozen=True)
class NoValue:
    """The absent value of a nullable property."""


@dataclass(frozen=True)
class Literal:
    value: int | float | str | bytes | bool


@dataclass(frozen=True)
class MakeDate:
    """A date from seconds since the Unix epoch."""

    seconds: float


@dataclass(frozen=True)
class MakeDecimal:
    text: str


@dataclass(frozen=True)
class MakeURL:
    text: str


@dataclass(frozen=True)
class MakeUUID:
    """A UUID in canonical text form."""

    text: str


@dataclass(frozen=True)
class MakeCustom:
    """Parameterless construction of a registered custom type."""

    name: str


class TimestampForm(Enum):
    INSTANT = "instant"
    EPOCH = "epoch"
    EPOCH_INT = "epoch_int"
    FORMATTED = "formatted"


@dataclass(frozen=True)
class CurrentTimestamp:
    """The time of evaluation, as a date, epoch seconds, or formatted text."""

    form: TimestampForm
    format: str | None = None


# Read-side expressions. ``slot`` names the property whose column index is
# looked up in the index table at runtime.


class Reader(Enum):
    INT64 = "int64"
    DOUBLE = "double"
    TEXT = "text"
    BLOB = "blob"
    BOOL = "bool"
    DATE = "date"
    UUID = "uuid"
    URL = "url"
    DECIMAL = "decimal"
    CUSTOM = "custom"

    @property
    def needs_length(self) -> bool:
        """Variable-length readers must query the column byte length."""
        return self in (Reader.TEXT, Reader.BLOB)


@dataclass(frozen=True)
class IndexInRange:
    """True if the slot's index is >= 0 and below the result column count."""

    slot: str


@dataclass(frozen=True)
class IsNull:
    slot: str


@dataclass(frozen=True)
class Not:
    operand: Expression


@dataclass(frozen=True)
class All:
    operands: tuple[Expression, ...]


@dataclass(frozen=True)
class Conditional:
    condition: Expression
    then: Expression
    otherwise: Expression


@dataclass(frozen=True)
class Coalesce:
    """``primary`` unless it failed to produce a value, else ``fallback``."""

    primary: Expression
    fallback: Expression


@dataclass(frozen=True)
class ColumnRead:
    slot: str
    reader: Reader
    length_query: bool = False
    custom_name: str | None = None


Expression = Union[
    NoValue,
    Literal,
    MakeDate,
    MakeDecimal,
    MakeURL,
    MakeUUID,
    MakeCustom,
    CurrentTimestamp,
    IndexInRange,
    IsNull,
    Not,
    All,
    Conditional,
    Coalesce,
    ColumnRead,
]


# Bind steps


class BindEncoding(Enum):
    """How a property value is handed to the engine."""

    INT64 = "int64"
    DOUBLE = "double"
    BOOL = "bool"
    DATE_EPOCH = "date_epoch"
    TEXT = "text"
    BLOB = "blob"
    DATE_TEXT = "date_text"
    URL = "url"
    DECIMAL = "decimal"
    UUID_TEXT = "uuid_text"
    UUID_BLOB = "uuid_blob"
    CUSTOM = "custom"

    @property
    def is_scoped(self) -> bool:
        """Scoped encodings produce a temporary buffer valid until execution."""
        return self not in (
            BindEncoding.INT64,
            BindEncoding.DOUBLE,
            BindEncoding.BOOL,
            BindEncoding.DATE_EPOCH,
        )


class TerminalKind(Enum):
    EXECUTE = "execute"
    CONTINUATION = "continuation"


@dataclass(frozen=True)
class Terminal:
    kind: TerminalKind


@dataclass(frozen=True)
class DirectBind:
    """Bind a fixed-size value at ``index`` (1-based) when ``index >= 0``.

    Nullable properties bind the engine null when the value is absent.
    """

    property: str
    encoding: BindEncoding
    index: int
    nullable: bool


@dataclass(frozen=True)
class ScopedBind:
    """Encode a value into a temporary buffer and run ``body`` while it lives."""

    property: str
    encoding: BindEncoding
    index: int
    nullable: bool
    body: BindBlock
    custom_name: str | None = None


@dataclass(frozen=True)
class BindBlock:
    """Direct binds, then either one scoped bind or the terminal."""

    steps: tuple[DirectBind, ...]
    tail: ScopedBind | Terminal

    @property
    def terminal(self) -> Terminal:
        tail = self.tail
        while isinstance(tail, ScopedBind):
            tail = tail.body.tail
        return tail


VALUE_NODES = (
    NoValue,
    Literal,
    MakeDate,
    MakeDecimal,
    MakeURL,
    MakeUUID,
    MakeCustom,
    CurrentTimestamp,
)
