"""Extract expressions: how each property is read from a result row."""

from __future__ import annotations

from dataclasses import dataclass

from typed_records.defaults import effective_default
from typed_records.expressions import (
    All,
    Coalesce,
    ColumnRead,
    Conditional,
    Expression,
    IndexInRange,
    IsNull,
    NoValue,
    Not,
    Reader,
)
from typed_records.model import Entity, Property
from typed_records.types import PropertyTypeKind

_READERS: dict[PropertyTypeKind, Reader] = {
    PropertyTypeKind.INTEGER: Reader.INT64,
    PropertyTypeKind.DOUBLE: Reader.DOUBLE,
    PropertyTypeKind.STRING: Reader.TEXT,
    PropertyTypeKind.BYTE_ARRAY: Reader.BLOB,
    PropertyTypeKind.BINARY_DATA: Reader.BLOB,
    PropertyTypeKind.BOOL: Reader.BOOL,
    PropertyTypeKind.DATE: Reader.DATE,
    PropertyTypeKind.UUID: Reader.UUID,
    PropertyTypeKind.URL: Reader.URL,
    PropertyTypeKind.DECIMAL: Reader.DECIMAL,
    PropertyTypeKind.CUSTOM: Reader.CUSTOM,
}


@dataclass(frozen=True)
class Extract:
    property: str
    expression: Expression


def column_read(prop: Property) -> ColumnRead:
    reader = _READERS[prop.property_type.kind]
    return ColumnRead(
        slot=prop.name,
        reader=reader,
        length_query=reader.needs_length,
        custom_name=prop.property_type.custom_name,
    )


def extract_expression(prop: Property) -> Expression:
    """The expression producing the value of ``prop`` from the current row.

    Nullable:  in range ? (null ? no value : read) : default
    Not null:  in range and not null ? read : default
    """
    default = effective_default(prop)
    read: Expression = column_read(prop)
    if prop.property_type.kind.is_fallible_read:
        read = Coalesce(read, default)

    slot = prop.name
    if prop.is_nullable:
        return Conditional(
            IndexInRange(slot),
            Conditional(IsNull(slot), NoValue(), read),
            default,
        )
    return Conditional(All((IndexInRange(slot), Not(IsNull(slot)))), read, default)


def synthesize_extracts(entity: Entity) -> tuple[Extract, ...]:
    return tuple(Extract(p.name, extract_expression(p)) for p in entity.properties)
