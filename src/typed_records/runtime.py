"""Reference interpreter for synthesized operations over ``sqlite3``.

Evaluates default and extract expressions, walks bind chains (entering one
context manager per scoped bind) and runs the statements of an
``EntityOperations`` bundle. Records are plain dataclasses built with
``dataclasses.make_dataclass``.

Custom property types must be registered in ``CUSTOM_TYPES``. A custom type
needs a parameterless constructor, ``to_sql()`` returning a value SQLite can
store, and a ``from_sql(value)`` classmethod.
"""

from __future__ import annotations

import dataclasses
import functools
import sqlite3
import uuid
from collections.abc import Callable, Iterator, Mapping, Sequence
from contextlib import contextmanager
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import TYPE_CHECKING, Any, Optional, TypeVar
from urllib.parse import SplitResult, urlsplit

import structlog

from typed_records.config import GeneratorConfig
from typed_records.defaults import effective_default
from typed_records.expressions import (
    All,
    BindBlock,
    BindEncoding,
    Coalesce,
    ColumnRead,
    Conditional,
    CurrentTimestamp,
    DirectBind,
    Expression,
    IndexInRange,
    IsNull,
    Literal,
    MakeCustom,
    MakeDate,
    MakeDecimal,
    MakeURL,
    MakeUUID,
    NoValue,
    Not,
    Reader,
    ScopedBind,
    TimestampForm,
)
from typed_records.indices import resolve_indices
from typed_records.model import Entity
from typed_records.types import PropertyType, PropertyTypeKind

if TYPE_CHECKING:
    from typed_records.generator import EntityOperations, GenerationResult

log = structlog.get_logger()

T = TypeVar("T")

CUSTOM_TYPES: dict[str, type] = {}


def register_custom_type(name: str, cls: type) -> None:
    """Register the class backing ``custom:<name>`` properties."""
    for attr in ("to_sql", "from_sql"):
        if not hasattr(cls, attr):
            raise TypeError(f"Custom type {cls.__name__} has no {attr}()")
    CUSTOM_TYPES[name] = cls


def _custom_type(name: str | None) -> type:
    cls = CUSTOM_TYPES.get(name or "")
    if cls is None:
        raise KeyError(f"Custom type '{name}' is not registered")
    return cls


class _Failed:
    """Marker for a column value that could not be converted."""


FAILED = _Failed()


# Values


def evaluate(expression: Expression) -> Any:
    """Python value of a value expression (defaults)."""
    if isinstance(expression, NoValue):
        return None
    if isinstance(expression, Literal):
        return expression.value
    if isinstance(expression, MakeDate):
        return datetime.fromtimestamp(expression.seconds, tz=timezone.utc)
    if isinstance(expression, MakeDecimal):
        return Decimal(expression.text)
    if isinstance(expression, MakeURL):
        return urlsplit(expression.text)
    if isinstance(expression, MakeUUID):
        return uuid.UUID(expression.text)
    if isinstance(expression, MakeCustom):
        return _custom_type(expression.name)()
    if isinstance(expression, CurrentTimestamp):
        now = datetime.now(timezone.utc)
        if expression.form == TimestampForm.INSTANT:
            return now
        if expression.form == TimestampForm.EPOCH:
            return now.timestamp()
        if expression.form == TimestampForm.EPOCH_INT:
            return int(now.timestamp())
        return now.strftime(expression.format or "%Y-%m-%d %H:%M:%S")
    raise TypeError(f"Not a value expression: {expression!r}")


_PYTHON_TYPES: dict[PropertyTypeKind, type] = {
    PropertyTypeKind.INTEGER: int,
    PropertyTypeKind.DOUBLE: float,
    PropertyTypeKind.STRING: str,
    PropertyTypeKind.BYTE_ARRAY: bytes,
    PropertyTypeKind.BOOL: bool,
    PropertyTypeKind.DATE: datetime,
    PropertyTypeKind.BINARY_DATA: bytes,
    PropertyTypeKind.URL: SplitResult,
    PropertyTypeKind.DECIMAL: Decimal,
    PropertyTypeKind.UUID: uuid.UUID,
}


def python_type(property_type: PropertyType) -> type:
    if property_type.kind == PropertyTypeKind.CUSTOM:
        return CUSTOM_TYPES.get(property_type.custom_name or "", object)
    return _PYTHON_TYPES[property_type.kind]


@functools.lru_cache(maxsize=None)
def record_type(entity: Entity) -> type:
    """A dataclass with one field per property, defaulting to its effective default."""
    fields = []
    for prop in entity.properties:
        annotation: Any = python_type(prop.property_type)
        if prop.is_nullable:
            annotation = Optional[annotation]
        default_factory = functools.partial(evaluate, effective_default(prop))
        fields.append((prop.name, annotation, dataclasses.field(default_factory=default_factory)))
    return dataclasses.make_dataclass(entity.name, fields)


# Extraction


def _as_datetime(seconds: float) -> datetime:
    return datetime.fromtimestamp(seconds, tz=timezone.utc)


def _read_int(value: Any) -> int:
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value)
    if isinstance(value, str):
        try:
            return int(float(value))
        except ValueError:
            return 0
    return 0


def _read_float(value: Any) -> float:
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value)
        except ValueError:
            return 0.0
    return 0.0


def _read_text(value: Any) -> str:
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    return str(value)


def _read_blob(value: Any) -> bytes:
    if isinstance(value, bytes):
        return value
    return str(value).encode("utf-8")


def _read_date(value: Any, config: GeneratorConfig) -> datetime | _Failed:
    if isinstance(value, (int, float)):
        return _as_datetime(value)
    if isinstance(value, str):
        formats = [config.date_format]
        if "%f" not in config.date_format:
            formats.append(config.date_format + ".%f")
        for fmt in formats:
            try:
                return datetime.strptime(value, fmt).replace(tzinfo=timezone.utc)
            except ValueError:
                pass
        try:
            return _as_datetime(float(value))
        except ValueError:
            return FAILED
    return FAILED


def _read_uuid(value: Any) -> uuid.UUID | _Failed:
    try:
        if isinstance(value, bytes):
            return uuid.UUID(bytes=value) if len(value) == 16 else FAILED
        if isinstance(value, str):
            return uuid.UUID(value)
    except ValueError:
        return FAILED
    return FAILED


def _read_url(value: Any) -> SplitResult | _Failed:
    if not isinstance(value, str):
        return FAILED
    try:
        url = urlsplit(value)
    except ValueError:
        return FAILED
    return url if url.scheme or url.path else FAILED


def _read_decimal(value: Any) -> Decimal | _Failed:
    if isinstance(value, (int, float, str)):
        try:
            return Decimal(str(value))
        except InvalidOperation:
            return FAILED
    return FAILED


def _read_custom(value: Any, name: str | None) -> Any:
    cls = CUSTOM_TYPES.get(name or "")
    if cls is None:
        return FAILED
    try:
        return cls.from_sql(value)  # type: ignore[attr-defined]
    except (TypeError, ValueError):
        return FAILED


def read_column(read: ColumnRead, value: Any, config: GeneratorConfig) -> Any:
    """Convert a non-null column value with the given reader."""
    reader = read.reader
    if reader == Reader.INT64:
        return _read_int(value)
    if reader == Reader.DOUBLE:
        return _read_float(value)
    if reader == Reader.TEXT:
        return _read_text(value)
    if reader == Reader.BLOB:
        return _read_blob(value)
    if reader == Reader.BOOL:
        return _read_int(value) != 0
    if reader == Reader.DATE:
        return _read_date(value, config)
    if reader == Reader.UUID:
        return _read_uuid(value)
    if reader == Reader.URL:
        return _read_url(value)
    if reader == Reader.DECIMAL:
        return _read_decimal(value)
    return _read_custom(value, read.custom_name)


class _RowContext:
    def __init__(
        self, row: Sequence[Any], indices: Mapping[str, int], config: GeneratorConfig
    ) -> None:
        self.row = row
        self.indices = indices
        self.config = config

    def index(self, slot: str) -> int:
        return self.indices.get(slot, -1)

    def evaluate(self, expression: Expression) -> Any:
        if isinstance(expression, IndexInRange):
            return 0 <= self.index(expression.slot) < len(self.row)
        if isinstance(expression, IsNull):
            return self.row[self.index(expression.slot)] is None
        if isinstance(expression, Not):
            return not self.evaluate(expression.operand)
        if isinstance(expression, All):
            return all(self.evaluate(op) for op in expression.operands)
        if isinstance(expression, Conditional):
            if self.evaluate(expression.condition):
                return self.evaluate(expression.then)
            return self.evaluate(expression.otherwise)
        if isinstance(expression, Coalesce):
            value = self.evaluate(expression.primary)
            if value is FAILED:
                return self.evaluate(expression.fallback)
            return value
        if isinstance(expression, ColumnRead):
            value = self.row[self.index(expression.slot)]
            return read_column(expression, value, self.config)
        return evaluate(expression)


def extract(
    bundle: EntityOperations,
    row: Sequence[Any],
    column_names: Sequence[str] | None = None,
    indices: Mapping[str, int] | None = None,
    config: GeneratorConfig | None = None,
) -> Any:
    """Build a record from a result row.

    Indices come from ``indices``, else are resolved from ``column_names``,
    else the row is assumed to follow the canonical select.
    """
    if indices is None:
        if column_names is not None:
            indices = resolve_indices(bundle.dynamic_lookup, column_names)
        else:
            indices = bundle.static_indices.as_dict()
    context = _RowContext(row, indices, config or GeneratorConfig())
    values = {e.property: context.evaluate(e.expression) for e in bundle.extracts}
    return record_type(bundle.entity)(**values)


# Binding


def _encode_direct(encoding: BindEncoding, value: Any) -> Any:
    if encoding == BindEncoding.INT64:
        return int(value)
    if encoding == BindEncoding.DOUBLE:
        return float(value)
    if encoding == BindEncoding.BOOL:
        return 1 if value else 0
    return _to_utc(value).timestamp()


def _to_utc(value: datetime) -> datetime:
    """Naive datetimes are taken to be UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _text_date_format(value: datetime, config: GeneratorConfig) -> str:
    if value.microsecond and "%f" not in config.date_format:
        return config.date_format + ".%f"
    return config.date_format


@contextmanager
def scoped_value(
    encoding: BindEncoding, value: Any, config: GeneratorConfig
) -> Iterator[str | bytes | None]:
    """Encode ``value`` into a temporary buffer that lives for the block."""
    buffer: str | bytes | None
    if value is None:
        buffer = None
    elif encoding == BindEncoding.TEXT:
        buffer = str(value)
    elif encoding == BindEncoding.BLOB:
        buffer = bytes(value)
    elif encoding == BindEncoding.DATE_TEXT:
        utc = _to_utc(value)
        buffer = utc.strftime(_text_date_format(utc, config))
    elif encoding == BindEncoding.URL:
        buffer = value.geturl()
    elif encoding == BindEncoding.DECIMAL:
        buffer = str(value)
    elif encoding == BindEncoding.UUID_TEXT:
        buffer = str(value)
    elif encoding == BindEncoding.UUID_BLOB:
        buffer = value.bytes
    else:
        buffer = value.to_sql()
    try:
        yield buffer
    finally:
        buffer = None


def bind(
    chain: BindBlock,
    record: Any,
    on_execute: Callable[[list[Any]], T],
    config: GeneratorConfig | None = None,
) -> T:
    """Walk ``chain`` for ``record`` and call ``on_execute`` with the parameters.

    ``on_execute`` runs inside the innermost scope, while every scoped buffer
    is still alive.
    """
    config = config or GeneratorConfig()
    parameters: dict[int, Any] = {}

    def run(block: BindBlock) -> T:
        for step in block.steps:
            if step.index >= 0:
                value = getattr(record, step.property)
                parameters[step.index] = (
                    None if value is None else _encode_direct(step.encoding, value)
                )
        tail = block.tail
        if isinstance(tail, ScopedBind):
            if tail.index < 0:
                return run(tail.body)
            with scoped_value(tail.encoding, getattr(record, tail.property), config) as buffer:
                parameters[tail.index] = buffer
                return run(tail.body)
        count = max(parameters, default=0)
        return on_execute([parameters.get(i) for i in range(1, count + 1)])

    return run(chain)


def _first(cursor: sqlite3.Cursor) -> tuple[Any, ...] | None:
    # Drain the cursor so an INSERT ... RETURNING statement runs to completion
    rows = cursor.fetchall()
    return rows[0] if rows else None


class RecordStore:
    """Runs the statements of one entity bundle over a connection."""

    def __init__(
        self,
        connection: sqlite3.Connection,
        bundle: EntityOperations,
        config: GeneratorConfig | None = None,
        *,
        related: GenerationResult | None = None,
    ) -> None:
        self.connection = connection
        self.bundle = bundle
        self.config = config or GeneratorConfig()
        self.related = related
        self.record_class = record_type(bundle.entity)

    def new(self, **values: Any) -> Any:
        return self.record_class(**values)

    def _execute(self, sql: str, parameters: Sequence[Any]) -> sqlite3.Cursor:
        log.debug("runtime.execute", sql=sql, parameters=len(parameters))
        return self.connection.execute(sql, parameters)

    def _require(self, statement: str | None, operation: str) -> str:
        if statement is None:
            raise ValueError(f"'{self.bundle.name}' does not support {operation}")
        return statement

    def insert(self, record: Any) -> Any:
        """Insert ``record`` and return it as stored, with generated keys."""
        statements = self.bundle.statements
        chain = self.bundle.insert_bind
        sql = self._require(statements.insert, "insert")
        assert chain is not None
        returning = statements.insert_returning
        row = None
        if returning is not None:
            row = bind(chain, record, lambda p: _first(self._execute(returning, p)), self.config)
        else:
            bind(chain, record, lambda p: self._execute(sql, p), self.config)
        if row is None and statements.insert_returning_fallback is not None:
            row = _first(self._execute(statements.insert_returning_fallback, ()))
        if row is None:
            return record
        return extract(self.bundle, row, config=self.config)

    def update(self, record: Any) -> int:
        sql = self._require(self.bundle.statements.update, "update")
        assert self.bundle.update_bind is not None
        cursor = bind(self.bundle.update_bind, record, lambda p: self._execute(sql, p), self.config)
        return cursor.rowcount

    def delete(self, record: Any) -> int:
        sql = self._require(self.bundle.statements.delete, "delete")
        assert self.bundle.delete_bind is not None
        cursor = bind(self.bundle.delete_bind, record, lambda p: self._execute(sql, p), self.config)
        return cursor.rowcount

    def fetch(self, sql: str | None = None, parameters: Sequence[Any] = ()) -> list[Any]:
        """Run the canonical select, or ``sql`` with indices resolved by column name."""
        cursor = self._execute(sql or self.bundle.statements.select, parameters)
        if sql is None:
            indices = self.bundle.static_indices.as_dict()
        else:
            names = [d[0] for d in cursor.description]
            indices = resolve_indices(self.bundle.dynamic_lookup, names)
        return [extract(self.bundle, row, indices=indices, config=self.config) for row in cursor]

    def _related_bundle(self, name: str) -> EntityOperations:
        if self.related is None:
            raise ValueError("RecordStore was created without related bundles")
        return self.related[name]

    def find(self, name: str, record: Any) -> Any | None:
        """Follow the to-one relationship ``name`` from ``record``."""
        spec = self.bundle.find(name)
        destination = self._related_bundle(spec.destination_entity)
        row = bind(spec.bind, record, lambda p: _first(self._execute(spec.sql, p)), self.config)
        if row is None:
            return None
        return extract(destination, row, config=self.config)

    def fetch_related(
        self,
        name: str,
        record: Any,
        order_by: str | None = None,
        limit: int | None = None,
    ) -> list[Any]:
        """All records of the to-many relationship ``name`` pointing at ``record``."""
        spec = self.bundle.fetch(name)
        source = self._related_bundle(spec.source_entity)
        sql = spec.sql_with(order_by=order_by, limit=limit)
        rows = bind(spec.bind, record, lambda p: self._execute(sql, p).fetchall(), self.config)
        return [extract(source, row, config=self.config) for row in rows]
