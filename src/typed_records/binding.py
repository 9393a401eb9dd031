"""Bind-chain synthesis for write statements.

Fixed-size values (integers, doubles, bools, epoch dates) are bound directly.
Everything else needs a temporary buffer that must stay alive until the
statement runs, so each such bind opens a scope and the remaining binds plus
the terminal step are nested inside it.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence

from typed_records.config import GeneratorConfig
from typed_records.errors import BindSynthesisError
from typed_records.expressions import (
    BindBlock,
    BindEncoding,
    DirectBind,
    ScopedBind,
    Terminal,
    TerminalKind,
)
from typed_records.model import Entity, Property
from typed_records.statements import UNUSED, ParameterIndexTable
from typed_records.types import PropertyTypeKind

_ENCODINGS: dict[PropertyTypeKind, BindEncoding] = {
    PropertyTypeKind.INTEGER: BindEncoding.INT64,
    PropertyTypeKind.DOUBLE: BindEncoding.DOUBLE,
    PropertyTypeKind.BOOL: BindEncoding.BOOL,
    PropertyTypeKind.STRING: BindEncoding.TEXT,
    PropertyTypeKind.BYTE_ARRAY: BindEncoding.BLOB,
    PropertyTypeKind.BINARY_DATA: BindEncoding.BLOB,
    PropertyTypeKind.URL: BindEncoding.URL,
    PropertyTypeKind.DECIMAL: BindEncoding.DECIMAL,
    PropertyTypeKind.CUSTOM: BindEncoding.CUSTOM,
}


def bind_encoding(entity: Entity, prop: Property, config: GeneratorConfig) -> BindEncoding:
    """How ``prop`` is handed to the engine under ``config``."""
    kind = prop.property_type.kind
    if kind == PropertyTypeKind.DATE:
        return BindEncoding.DATE_EPOCH if config.date_storage == "epoch" else BindEncoding.DATE_TEXT
    if kind == PropertyTypeKind.UUID:
        return BindEncoding.UUID_BLOB if config.uuid_storage == "blob" else BindEncoding.UUID_TEXT
    encoding = _ENCODINGS.get(kind)
    if encoding is None:
        raise BindSynthesisError.no_binder(entity.name, prop.name, str(prop.property_type))
    return encoding


def synthesize_bind_chain(
    entity: Entity,
    properties: Sequence[Property],
    parameter_indices: ParameterIndexTable | Mapping[str, int],
    terminal: TerminalKind,
    config: GeneratorConfig,
) -> BindBlock:
    """Build the bind chain for ``properties`` ending in ``terminal``.

    Raises:
        BindSynthesisError: A property type has no binder.
    """
    if isinstance(parameter_indices, ParameterIndexTable):
        parameter_indices = parameter_indices.as_dict()

    steps: list[DirectBind] = []
    for i, prop in enumerate(properties):
        encoding = bind_encoding(entity, prop, config)
        index = parameter_indices.get(prop.name, UNUSED)
        if encoding.is_scoped:
            body = synthesize_bind_chain(
                entity, properties[i + 1:], parameter_indices, terminal, config
            )
            scoped = ScopedBind(
                property=prop.name,
                encoding=encoding,
                index=index,
                nullable=prop.is_nullable,
                body=body,
                custom_name=prop.property_type.custom_name,
            )
            return BindBlock(steps=tuple(steps), tail=scoped)
        steps.append(
            DirectBind(property=prop.name, encoding=encoding, index=index, nullable=prop.is_nullable)
        )
    return BindBlock(steps=tuple(steps), tail=Terminal(terminal))


def nesting_depth(block: BindBlock) -> int:
    """Number of nested scopes in the chain."""
    depth = 0
    tail = block.tail
    while isinstance(tail, ScopedBind):
        depth += 1
        tail = tail.body.tail
    return depth


def positional_indices(properties: Sequence[Property]) -> dict[str, int]:
    """Parameters 1..n in property order."""
    return {p.name: i + 1 for i, p in enumerate(properties)}
