"""Entity and property model derived from the schema.

Built once per run by ``build_database_info``: property types are resolved,
defaults are resolved, and relationships are derived from foreign keys.
"""

from __future__ import annotations

import keyword
import re
from dataclasses import dataclass, field, replace

import structlog

from typed_records.config import GeneratorConfig
from typed_records.defaults import Unsupported, resolve_default
from typed_records.errors import DiagnosticKind, Diagnostics
from typed_records.expressions import Expression
from typed_records.schema import Column, ForeignKey, Schema, Table, View
from typed_records.types import ColumnType, DefaultValue, PropertyType, PropertyTypeRegistry

log = structlog.get_logger()

_INVALID_IDENTIFIER_CHARS = re.compile(r"\W")


def make_identifier(name: str) -> str:
    """Turn an SQL identifier into a valid Python identifier."""
    ident = _INVALID_IDENTIFIER_CHARS.sub("_", name)
    if not ident:
        return "no_name"
    if ident[0].isdigit():
        ident = "_" + ident
    if keyword.iskeyword(ident):
        ident += "_"
    return ident


def dedupe(name: str, taken: set[str]) -> str:
    """Append the first free counter to ``name`` and mark it taken."""
    if name in taken:
        for i in range(1000):
            candidate = f"{name}{i}"
            if candidate not in taken:
                name = candidate
                break
    taken.add(name)
    return name


@dataclass(frozen=True)
class Property:
    """A record field, one per column."""

    name: str
    external_name: str
    property_type: PropertyType
    column_type: ColumnType | None = None
    is_not_null: bool = False
    is_primary_key: bool = False
    default_value: DefaultValue | None = None
    resolved_default: Expression | None = None
    foreign_key: ForeignKey | None = None
    is_database_generated: bool = False

    @property
    def is_nullable(self) -> bool:
        return not self.is_not_null


@dataclass(frozen=True)
class ToOne:
    """Source entity owns the foreign key; resolves to at most one record."""

    name: str
    source_property: str
    destination_entity: str
    destination_property: str
    is_primary: bool = True


@dataclass(frozen=True)
class ToMany:
    """Destination side of a foreign key; fetches all referencing records."""

    name: str
    source_entity: str
    source_property: str
    destination_property: str
    qualifier: str | None = None


@dataclass(frozen=True)
class Entity:
    kind: str  # "table" or "view"
    name: str
    external_name: str
    properties: tuple[Property, ...]
    create_sql: str = ""
    triggers_sql: tuple[str, ...] = ()
    indices_sql: tuple[str, ...] = ()
    can_insert: bool = False
    can_update: bool = False
    can_delete: bool = False
    is_without_rowid: bool = False
    to_one: tuple[ToOne, ...] = ()
    to_many: tuple[ToMany, ...] = ()

    @property
    def is_table(self) -> bool:
        return self.kind == "table"

    @property
    def is_read_only(self) -> bool:
        return not (self.can_insert or self.can_update or self.can_delete)

    @property
    def primary_keys(self) -> tuple[Property, ...]:
        return tuple(p for p in self.properties if p.is_primary_key)

    @property
    def has_compound_primary_key(self) -> bool:
        return len(self.primary_keys) > 1

    def property(self, name: str) -> Property | None:
        for p in self.properties:
            if p.name == name:
                return p
        return None

    def property_by_external_name(self, name: str) -> Property | None:
        for p in self.properties:
            if p.external_name == name:
                return p
        return None


@dataclass(frozen=True)
class DatabaseInfo:
    name: str
    user_version: int
    entities: tuple[Entity, ...] = ()
    diagnostics: Diagnostics = field(default_factory=Diagnostics, compare=False)

    def entity(self, name: str) -> Entity | None:
        for e in self.entities:
            if e.name == name:
                return e
        return None

    def entity_by_external_name(self, name: str) -> Entity | None:
        for e in self.entities:
            if e.external_name == name:
                return e
        return None

    def __getitem__(self, name: str) -> Entity:
        entity = self.entity(name)
        if entity is None:
            raise KeyError(f"Entity '{name}' not found")
        return entity


def instead_of_operation(sql: str) -> str | None:
    """The operation of an ``INSTEAD OF <op> (ON|OF)`` trigger, if any."""
    upper = sql.upper()
    pos = upper.find("INSTEAD")
    if pos < 0:
        return None
    parts = upper[pos + len("INSTEAD"):].split()
    if len(parts) < 3 or parts[0] != "OF" or parts[2] not in ("ON", "OF"):
        return None
    if parts[1] not in ("INSERT", "UPDATE", "DELETE"):
        return None
    return parts[1]


def _build_property(
    entity_name: str,
    column: Column,
    is_rowid_alias: bool,
    foreign_keys: tuple[ForeignKey, ...],
    registry: PropertyTypeRegistry,
    config: GeneratorConfig,
    diagnostics: Diagnostics,
    taken: set[str],
) -> Property:
    fkey = next((fk for fk in foreign_keys if fk.source_column == column.name), None)
    prop = Property(
        name=dedupe(make_identifier(column.name), taken),
        external_name=column.name,
        property_type=registry.resolve(column.name, column.type),
        column_type=column.type,
        is_not_null=column.is_not_null or is_rowid_alias,
        is_primary_key=column.is_primary_key,
        default_value=column.default_value,
        foreign_key=fkey,
        is_database_generated=is_rowid_alias,
    )
    resolved = resolve_default(prop, config)
    if isinstance(resolved, Unsupported):
        diagnostics.add(
            DiagnosticKind.UNSUPPORTED_DEFAULT, entity_name, resolved.reason, property=prop.name
        )
        resolved = None
    return replace(prop, resolved_default=resolved)


def _build_entity(
    source: Table | View,
    schema: Schema,
    registry: PropertyTypeRegistry,
    config: GeneratorConfig,
    diagnostics: Diagnostics,
    entity_names: set[str],
) -> Entity:
    is_table = isinstance(source, Table)
    name = dedupe(make_identifier(source.name), entity_names)
    foreign_keys = source.foreign_keys if isinstance(source, Table) else ()
    rowid_alias = source.rowid_alias if isinstance(source, Table) else None
    taken: set[str] = set()
    properties = tuple(
        _build_property(
            name, c, c is rowid_alias, foreign_keys, registry, config, diagnostics, taken
        )
        for c in source.columns
    )
    triggers_sql = tuple(t.sql for t in schema.triggers.get(source.name, ()) if t.sql)
    indices_sql = tuple(i.sql for i in schema.indices.get(source.name, ()) if i.sql)
    operations = {instead_of_operation(sql) for sql in triggers_sql}

    writable = not config.read_only
    return Entity(
        kind="table" if is_table else "view",
        name=name,
        external_name=source.name,
        properties=properties,
        create_sql=source.creation_sql,
        triggers_sql=triggers_sql,
        indices_sql=indices_sql,
        can_insert=writable and (is_table or "INSERT" in operations),
        can_update=writable and (is_table or "UPDATE" in operations),
        can_delete=writable and (is_table or "DELETE" in operations),
        is_without_rowid=isinstance(source, Table) and source.is_without_rowid,
    )


def _strip_key_suffix(name: str, suffixes: list[str]) -> str:
    for suffix in suffixes:
        if name.endswith(suffix) and name != suffix:
            return name[: -len(suffix)]
    return name


def _is_foreign_key_primary(source: Property, destination: Entity, dest_prop: Property) -> bool:
    if dest_prop.external_name == source.external_name:
        return True
    if (destination.name + dest_prop.name).lower() == source.name.lower():
        return True
    fqn = destination.external_name + "_" + dest_prop.external_name
    return fqn.lower() == source.external_name.lower()


def _destination_property(fkey: ForeignKey, destination: Entity) -> Property | None:
    if fkey.destination_column is None:
        pkeys = destination.primary_keys
        return pkeys[0] if len(pkeys) == 1 else None
    return destination.property_by_external_name(fkey.destination_column)


def derive_relationships(
    entities: tuple[Entity, ...], config: GeneratorConfig, diagnostics: Diagnostics
) -> tuple[Entity, ...]:
    """Attach to-one and to-many relationships derived from foreign keys."""
    by_external = {e.external_name: e for e in entities}
    to_one: dict[str, list[ToOne]] = {e.name: [] for e in entities}
    to_many: dict[str, list[ToMany]] = {e.name: [] for e in entities}

    for source in entities:
        names: set[str] = set()
        had_primary_to_one: set[str] = set()
        had_primary_to_many: set[str] = set()
        fk_counts: dict[str, int] = {}
        for p in source.properties:
            if p.foreign_key is not None:
                table = p.foreign_key.destination_table
                fk_counts[table] = fk_counts.get(table, 0) + 1
        foreign_key_count = sum(fk_counts.values())

        for prop in source.properties:
            fkey = prop.foreign_key
            if fkey is None:
                continue
            destination = by_external.get(fkey.destination_table)
            if destination is None:
                diagnostics.add(
                    DiagnosticKind.MISSING_RELATIONSHIP_TARGET,
                    source.name,
                    f"No entity for foreign key destination '{fkey.destination_table}'",
                    property=prop.name,
                )
                continue
            dest_prop = _destination_property(fkey, destination)
            if dest_prop is None:
                diagnostics.add(
                    DiagnosticKind.MISSING_RELATIONSHIP_TARGET,
                    source.name,
                    f"No column '{fkey.destination_column}' in '{fkey.destination_table}'",
                    property=prop.name,
                )
                continue

            name = dedupe(_strip_key_suffix(prop.name, config.relationship_key_suffixes), names)

            if destination.name in had_primary_to_one:
                is_primary_to_one = False
            elif fk_counts.get(destination.external_name, 0) < 2:
                is_primary_to_one = True
            else:
                is_primary_to_one = _is_foreign_key_primary(prop, destination, dest_prop)
            if is_primary_to_one:
                had_primary_to_one.add(destination.name)

            qualifier: str | None
            if destination.name in had_primary_to_many:
                qualifier = name
                is_primary_to_many = False
            elif foreign_key_count == 1:
                qualifier = None
                is_primary_to_many = True
            else:
                is_primary_to_many = _is_foreign_key_primary(prop, destination, dest_prop)
                qualifier = None if is_primary_to_many else name
            if is_primary_to_many:
                had_primary_to_many.add(destination.name)

            to_one[source.name].append(
                ToOne(
                    name=name,
                    source_property=prop.name,
                    destination_entity=destination.name,
                    destination_property=dest_prop.name,
                    is_primary=is_primary_to_one,
                )
            )
            to_many[destination.name].append(
                ToMany(
                    name=source.name,
                    source_entity=source.name,
                    source_property=prop.name,
                    destination_property=dest_prop.name,
                    qualifier=qualifier,
                )
            )

    return tuple(
        replace(e, to_one=tuple(to_one[e.name]), to_many=tuple(to_many[e.name]))
        for e in entities
    )


def build_database_info(
    schema: Schema,
    config: GeneratorConfig | None = None,
    *,
    name: str = "database",
    diagnostics: Diagnostics | None = None,
) -> DatabaseInfo:
    """Build the entity model for ``schema``."""
    config = config or GeneratorConfig()
    diagnostics = diagnostics if diagnostics is not None else Diagnostics()
    registry = PropertyTypeRegistry.from_config(config)

    entity_names: set[str] = set()
    entities = tuple(
        _build_entity(source, schema, registry, config, diagnostics, entity_names)
        for source in (*schema.tables, *schema.views)
    )
    entities = derive_relationships(entities, config, diagnostics)
    log.debug("model.built", database=name, entities=len(entities))
    return DatabaseInfo(
        name=name,
        user_version=schema.user_version,
        entities=entities,
        diagnostics=diagnostics,
    )
