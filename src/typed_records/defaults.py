"""Default-value resolution.

Maps a column's declared default onto an expression of the property's type.
Pairs that have no sensible conversion resolve to ``Unsupported``; callers
record a diagnostic and fall back to ``effective_default``.
"""

from __future__ import annotations

import re
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import TYPE_CHECKING
from urllib.parse import urlsplit

from typed_records.expressions import (
    CurrentTimestamp,
    Expression,
    Literal,
    MakeCustom,
    MakeDate,
    MakeDecimal,
    MakeURL,
    MakeUUID,
    NoValue,
    TimestampForm,
)
from typed_records.types import DefaultKind, DefaultValue, PropertyType, PropertyTypeKind

if TYPE_CHECKING:
    from typed_records.config import GeneratorConfig
    from typed_records.model import Property

_INTEGER_TEXT = re.compile(r"[+-]?\d+")
_REAL_TEXT = re.compile(r"[+-]?(\d+(\.\d*)?|\.\d+)([eE][+-]?\d+)?")

BASELINE_URL = "blank:"
ZERO_UUID = "00000000-0000-0000-0000-000000000000"


@dataclass(frozen=True)
class Unsupported:
    """No conversion exists for this default/property-type pair."""

    reason: str


def _unsupported(default: DefaultValue, property_type: PropertyType) -> Unsupported:
    return Unsupported(f"{default.kind.value} default cannot initialize a {property_type} property")


def _from_number(value: int | float, kind: PropertyTypeKind) -> Expression | None:
    if kind == PropertyTypeKind.INTEGER:
        if isinstance(value, float):
            return Literal(int(value)) if value.is_integer() else None
        return Literal(value)
    if kind == PropertyTypeKind.DOUBLE:
        return Literal(float(value))
    if kind == PropertyTypeKind.STRING:
        return Literal(str(value))
    if kind == PropertyTypeKind.BOOL:
        return Literal(value != 0)
    if kind == PropertyTypeKind.DATE:
        return MakeDate(float(value))
    if kind == PropertyTypeKind.DECIMAL:
        return MakeDecimal(str(value))
    return None


def _parse_date(text: str, date_format: str) -> float | None:
    """Seconds since the epoch, from the date format or a plain number."""
    try:
        parsed = datetime.strptime(text, date_format)
    except ValueError:
        if _REAL_TEXT.fullmatch(text):
            return float(text)
        return None
    return parsed.replace(tzinfo=timezone.utc).timestamp()


def _from_text(text: str, kind: PropertyTypeKind, config: GeneratorConfig) -> Expression | None:
    if kind == PropertyTypeKind.STRING:
        return Literal(text)
    if kind == PropertyTypeKind.INTEGER:
        return Literal(int(text)) if _INTEGER_TEXT.fullmatch(text) else None
    if kind == PropertyTypeKind.DOUBLE:
        return Literal(float(text)) if _REAL_TEXT.fullmatch(text) else None
    if kind == PropertyTypeKind.DECIMAL:
        if not _REAL_TEXT.fullmatch(text):
            return None
        try:
            Decimal(text)
        except InvalidOperation:
            return None
        return MakeDecimal(text)
    if kind == PropertyTypeKind.BOOL:
        if text in config.bool_true_tokens:
            return Literal(True)
        if text in config.bool_false_tokens:
            return Literal(False)
        return None
    if kind == PropertyTypeKind.DATE:
        seconds = _parse_date(text, config.date_format)
        return MakeDate(seconds) if seconds is not None else None
    if kind == PropertyTypeKind.URL:
        try:
            parts = urlsplit(text)
        except ValueError:
            return None
        return MakeURL(text) if parts.scheme or parts.path else None
    if kind == PropertyTypeKind.UUID:
        try:
            return MakeUUID(str(uuid.UUID(text)))
        except ValueError:
            return None
    return None


def _from_blob(value: bytes, kind: PropertyTypeKind) -> Expression | None:
    if kind in (PropertyTypeKind.BYTE_ARRAY, PropertyTypeKind.BINARY_DATA):
        return Literal(bytes(value))
    if kind == PropertyTypeKind.UUID and len(value) == 16:
        return MakeUUID(str(uuid.UUID(bytes=bytes(value))))
    return None


def _from_current(default_kind: DefaultKind, kind: PropertyTypeKind) -> Expression | None:
    if default_kind == DefaultKind.CURRENT_TIMESTAMP:
        if kind == PropertyTypeKind.DATE:
            return CurrentTimestamp(TimestampForm.INSTANT)
        if kind == PropertyTypeKind.DOUBLE:
            return CurrentTimestamp(TimestampForm.EPOCH)
        if kind == PropertyTypeKind.INTEGER:
            return CurrentTimestamp(TimestampForm.EPOCH_INT)
        if kind == PropertyTypeKind.STRING:
            return CurrentTimestamp(TimestampForm.FORMATTED, "%Y-%m-%d %H:%M:%S")
        return None
    if kind == PropertyTypeKind.DATE:
        return CurrentTimestamp(TimestampForm.INSTANT)
    if kind == PropertyTypeKind.STRING:
        fmt = "%Y-%m-%d" if default_kind == DefaultKind.CURRENT_DATE else "%H:%M:%S"
        return CurrentTimestamp(TimestampForm.FORMATTED, fmt)
    return None


def resolve_default(prop: Property, config: GeneratorConfig) -> Expression | Unsupported | None:
    """Resolve the declared default of ``prop`` for its property type.

    Returns None when the column declares no default.
    """
    default = prop.default_value
    if default is None:
        return None
    kind = prop.property_type.kind

    result: Expression | None
    if default.kind == DefaultKind.NULL:
        result = NoValue() if not prop.is_not_null else None
    elif default.kind in (DefaultKind.INTEGER, DefaultKind.REAL):
        assert isinstance(default.value, (int, float))
        result = _from_number(default.value, kind)
    elif default.kind == DefaultKind.TEXT:
        assert isinstance(default.value, str)
        result = _from_text(default.value, kind, config)
    elif default.kind == DefaultKind.BLOB:
        assert isinstance(default.value, bytes)
        result = _from_blob(default.value, kind)
    else:
        result = _from_current(default.kind, kind)

    if result is None:
        return _unsupported(default, prop.property_type)
    return result


def baseline_default(property_type: PropertyType) -> Expression:
    """The value a not-null property takes when nothing else applies."""
    kind = property_type.kind
    if kind in (PropertyTypeKind.INTEGER, PropertyTypeKind.DOUBLE):
        return Literal(-1 if kind == PropertyTypeKind.INTEGER else -1.0)
    if kind == PropertyTypeKind.STRING:
        return Literal("")
    if kind in (PropertyTypeKind.BYTE_ARRAY, PropertyTypeKind.BINARY_DATA):
        return Literal(b"")
    if kind == PropertyTypeKind.BOOL:
        return Literal(False)
    if kind == PropertyTypeKind.DATE:
        return MakeDate(0.0)
    if kind == PropertyTypeKind.URL:
        return MakeURL(BASELINE_URL)
    if kind == PropertyTypeKind.DECIMAL:
        return MakeDecimal("1")
    if kind == PropertyTypeKind.UUID:
        return MakeUUID(ZERO_UUID)
    return MakeCustom(property_type.custom_name or "")


def effective_default(prop: Property) -> Expression:
    """The resolved default, else no-value if nullable, else the baseline."""
    if prop.resolved_default is not None:
        return prop.resolved_default
    if not prop.is_not_null:
        return NoValue()
    return baseline_default(prop.property_type)
