"""Relationship accessors derived from foreign keys.

A find follows a to-one relationship: look up the destination record whose
key equals the source record's foreign key value. A fetch follows a to-many
relationship: select all source records whose foreign key equals the
destination record's key. Only single-column integer keys are supported.
"""

from __future__ import annotations

from dataclasses import dataclass

from typed_records.binding import synthesize_bind_chain
from typed_records.catalog import quote_identifier
from typed_records.config import GeneratorConfig
from typed_records.errors import DiagnosticKind, Diagnostics
from typed_records.expressions import BindBlock, TerminalKind
from typed_records.model import DatabaseInfo, Entity, Property, ToMany, ToOne
from typed_records.statements import select_sql
from typed_records.types import PropertyTypeKind


@dataclass(frozen=True)
class FindSpec:
    """Fetch the single destination record of a to-one relationship."""

    name: str
    destination_entity: str
    source_property: str
    destination_property: str
    sql: str
    bind: BindBlock


@dataclass(frozen=True)
class FetchSpec:
    """Fetch all source records pointing at a destination record.

    ``sql`` has no ORDER BY or LIMIT; callers append those with ``sql_with``.
    """

    name: str
    qualifier: str | None
    source_entity: str
    source_property: str
    destination_property: str
    sql: str
    bind: BindBlock

    @property
    def key(self) -> str:
        """Unique among the entity's fetches, e.g. ``address_owner``."""
        if self.qualifier is None:
            return self.name
        return f"{self.name}_{self.qualifier}"

    def sql_with(self, order_by: str | None = None, limit: int | None = None) -> str:
        sql = self.sql
        if order_by:
            sql += f" ORDER BY {order_by}"
        if limit is not None:
            sql += f" LIMIT {int(limit)}"
        return sql


def unsupported_key_reason(
    source: Entity, source_prop: Property, destination: Entity, dest_prop: Property
) -> str | None:
    """Why a relationship key cannot be bound, or None if it can."""
    fkey = source_prop.foreign_key
    if fkey is not None and fkey.id >= 0:
        shared = [
            p for p in source.properties
            if p.foreign_key is not None and p.foreign_key.id == fkey.id
        ]
        if len(shared) > 1:
            return "compound foreign key"
    if dest_prop.is_primary_key and destination.has_compound_primary_key:
        return "compound destination primary key"
    for prop in (source_prop, dest_prop):
        if prop.property_type.kind != PropertyTypeKind.INTEGER:
            return f"non-integer key '{prop.name}' ({prop.property_type})"
    return None


def _resolve(
    info: DatabaseInfo, source_name: str, source_prop_name: str,
    destination_name: str, dest_prop_name: str,
) -> tuple[Entity, Property, Entity, Property]:
    source = info[source_name]
    destination = info[destination_name]
    source_prop = source.property(source_prop_name)
    dest_prop = destination.property(dest_prop_name)
    assert source_prop is not None and dest_prop is not None
    return source, source_prop, destination, dest_prop


def find_spec(
    info: DatabaseInfo,
    entity: Entity,
    relationship: ToOne,
    config: GeneratorConfig,
    diagnostics: Diagnostics,
) -> FindSpec | None:
    source, source_prop, destination, dest_prop = _resolve(
        info, entity.name, relationship.source_property,
        relationship.destination_entity, relationship.destination_property,
    )
    reason = unsupported_key_reason(source, source_prop, destination, dest_prop)
    if reason is not None:
        diagnostics.add(
            DiagnosticKind.UNSUPPORTED_RELATIONSHIP_KEY,
            entity.name,
            f"No find for '{relationship.name}': {reason}",
            property=source_prop.name,
        )
        return None

    column = quote_identifier(dest_prop.external_name)
    return FindSpec(
        name=relationship.name,
        destination_entity=destination.name,
        source_property=source_prop.name,
        destination_property=dest_prop.name,
        sql=f"{select_sql(destination)} WHERE {column} = ? LIMIT 1",
        bind=synthesize_bind_chain(
            source, [source_prop], {source_prop.name: 1}, TerminalKind.EXECUTE, config
        ),
    )


def fetch_spec(
    info: DatabaseInfo,
    entity: Entity,
    relationship: ToMany,
    config: GeneratorConfig,
    diagnostics: Diagnostics,
) -> FetchSpec | None:
    source, source_prop, destination, dest_prop = _resolve(
        info, relationship.source_entity, relationship.source_property,
        entity.name, relationship.destination_property,
    )
    reason = unsupported_key_reason(source, source_prop, destination, dest_prop)
    if reason is not None:
        diagnostics.add(
            DiagnosticKind.UNSUPPORTED_RELATIONSHIP_KEY,
            entity.name,
            f"No fetch for '{relationship.name}': {reason}",
            property=dest_prop.name,
        )
        return None

    column = quote_identifier(source_prop.external_name)
    return FetchSpec(
        name=relationship.name,
        qualifier=relationship.qualifier,
        source_entity=source.name,
        source_property=source_prop.name,
        destination_property=dest_prop.name,
        sql=f"{select_sql(source)} WHERE {column} = ?",
        bind=synthesize_bind_chain(
            destination, [dest_prop], {dest_prop.name: 1}, TerminalKind.EXECUTE, config
        ),
    )


def synthesize_relationships(
    info: DatabaseInfo,
    entity: Entity,
    config: GeneratorConfig,
    diagnostics: Diagnostics,
) -> tuple[tuple[FindSpec, ...], tuple[FetchSpec, ...]]:
    """Find accessors for the entity's to-one and fetches for its to-many."""
    finds = [find_spec(info, entity, r, config, diagnostics) for r in entity.to_one]
    fetches = [fetch_spec(info, entity, r, config, diagnostics) for r in entity.to_many]
    return (
        tuple(f for f in finds if f is not None),
        tuple(f for f in fetches if f is not None),
    )
