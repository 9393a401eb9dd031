"""Canonical SQL statements per entity.

Every parameter index table maps each property name, in property order, to
its 1-based parameter position in the statement, or -1 if the statement does
not use the property.
"""

from __future__ import annotations

from dataclasses import dataclass

from typed_records.catalog import quote_identifier
from typed_records.config import GeneratorConfig
from typed_records.model import Entity, Property

UNUSED = -1


@dataclass(frozen=True)
class ParameterIndexTable:
    indices: tuple[tuple[str, int], ...]

    def as_dict(self) -> dict[str, int]:
        return dict(self.indices)

    def __getitem__(self, name: str) -> int:
        for prop, index in self.indices:
            if prop == name:
                return index
        raise KeyError(name)


@dataclass(frozen=True)
class Statements:
    """Statements for one entity. Write statements are None when unavailable."""

    select: str
    insert: str | None = None
    insert_returning: str | None = None
    insert_returning_fallback: str | None = None
    update: str | None = None
    delete: str | None = None
    insert_parameters: ParameterIndexTable | None = None
    update_parameters: ParameterIndexTable | None = None
    delete_parameters: ParameterIndexTable | None = None


def _columns(properties: list[Property] | tuple[Property, ...]) -> list[str]:
    return [quote_identifier(p.external_name) for p in properties]


def _parameter_table(entity: Entity, ordered: list[Property]) -> ParameterIndexTable:
    positions = {p.name: i + 1 for i, p in enumerate(ordered)}
    return ParameterIndexTable(
        tuple((p.name, positions.get(p.name, UNUSED)) for p in entity.properties)
    )


def _match_properties(entity: Entity) -> list[Property]:
    """Primary key properties, or all properties if there is no primary key."""
    pkeys = list(entity.primary_keys)
    return pkeys if pkeys else list(entity.properties)


def select_columns_sql(entity: Entity) -> str:
    return ", ".join(_columns(entity.properties))


def select_sql(entity: Entity) -> str:
    """``SELECT "a", "b" FROM "t"`` over all properties in order."""
    return f"SELECT {select_columns_sql(entity)} FROM {quote_identifier(entity.external_name)}"


def insert_properties(entity: Entity) -> list[Property]:
    return [p for p in entity.properties if not p.is_database_generated]


def insert_sql(entity: Entity) -> str:
    table = quote_identifier(entity.external_name)
    values = insert_properties(entity)
    if not values:
        return f"INSERT INTO {table} DEFAULT VALUES"
    placeholders = ", ".join("?" for _ in values)
    return f"INSERT INTO {table} ( {', '.join(_columns(values))} ) VALUES ( {placeholders} )"


def insert_returning_sql(entity: Entity) -> str:
    return f"{insert_sql(entity)} RETURNING {select_columns_sql(entity)}"


def insert_parameters(entity: Entity) -> ParameterIndexTable:
    return _parameter_table(entity, insert_properties(entity))


def update_sql(entity: Entity) -> str | None:
    """``UPDATE t SET v = ? ... WHERE pk = ?``; None without keys or values."""
    values = [p for p in entity.properties if not p.is_primary_key]
    pkeys = list(entity.primary_keys)
    if not values or not pkeys:
        return None
    assignments = ", ".join(f"{c} = ?" for c in _columns(values))
    condition = " AND ".join(f"{c} = ?" for c in _columns(pkeys))
    return f"UPDATE {quote_identifier(entity.external_name)} SET {assignments} WHERE {condition}"


def update_parameters(entity: Entity) -> ParameterIndexTable:
    values = [p for p in entity.properties if not p.is_primary_key]
    return _parameter_table(entity, values + list(entity.primary_keys))


def delete_sql(entity: Entity) -> str:
    condition = " AND ".join(f"{c} = ?" for c in _columns(_match_properties(entity)))
    return f"DELETE FROM {quote_identifier(entity.external_name)} WHERE {condition}"


def delete_parameters(entity: Entity) -> ParameterIndexTable:
    return _parameter_table(entity, _match_properties(entity))


def build_statements(entity: Entity, config: GeneratorConfig) -> Statements:
    """All statements the entity supports under ``config``."""
    select = select_sql(entity)
    writable = not config.read_only

    insert = insert_returning = fallback = None
    insert_params = None
    if writable and entity.can_insert:
        insert = insert_sql(entity)
        insert_params = insert_parameters(entity)
        if config.use_insert_returning and entity.is_table:
            insert_returning = insert_returning_sql(entity)
        if config.insert_returning_fallback and entity.is_table and not entity.is_without_rowid:
            fallback = f"{select} WHERE ROWID = last_insert_rowid()"

    update = None
    update_params = None
    if writable and entity.can_update:
        update = update_sql(entity)
        if update is not None:
            update_params = update_parameters(entity)

    delete = None
    delete_params = None
    if writable and entity.can_delete:
        delete = delete_sql(entity)
        delete_params = delete_parameters(entity)

    return Statements(
        select=select,
        insert=insert,
        insert_returning=insert_returning,
        insert_returning_fallback=fallback,
        update=update,
        delete=delete,
        insert_parameters=insert_params,
        update_parameters=update_params,
        delete_parameters=delete_params,
    )
