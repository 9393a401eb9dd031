"""Immutable schema model built from the raw catalog."""

from __future__ import annotations

import sqlite3
from dataclasses import dataclass, field
from enum import Enum

import structlog

from typed_records.catalog import (
    CatalogRow,
    ForeignKeyRow,
    RawCatalog,
    TableInfoRow,
    read_catalog,
)
from typed_records.errors import DiagnosticKind, Diagnostics
from typed_records.parsing import DefaultValueParser, parse_default
from typed_records.types import ColumnType, DefaultKind, DefaultValue

log = structlog.get_logger()

__all__ = [
    "CatalogObject",
    "CatalogObjectType",
    "Column",
    "DefaultKind",
    "DefaultValue",
    "ForeignKey",
    "ForeignKeyAction",
    "ForeignKeyMatch",
    "Schema",
    "Table",
    "View",
    "build_schema",
]


class CatalogObjectType(Enum):
    TABLE = "table"
    VIEW = "view"
    INDEX = "index"
    TRIGGER = "trigger"


class ForeignKeyAction(Enum):
    NO_ACTION = "NO ACTION"
    RESTRICT = "RESTRICT"
    CASCADE = "CASCADE"
    SET_NULL = "SET NULL"
    SET_DEFAULT = "SET DEFAULT"

    @classmethod
    def parse(cls, text: str) -> ForeignKeyAction:
        """Parse by first letter; unknown values are NO ACTION."""
        upper = text.strip().upper()
        if upper.startswith("R"):
            return cls.RESTRICT
        if upper.startswith("C"):
            return cls.CASCADE
        if upper.startswith("S"):
            if "NULL" in upper:
                return cls.SET_NULL
            if "DEFAULT" in upper:
                return cls.SET_DEFAULT
        return cls.NO_ACTION


class ForeignKeyMatch(Enum):
    NONE = "NONE"
    SIMPLE = "SIMPLE"
    PARTIAL = "PARTIAL"
    FULL = "FULL"

    @classmethod
    def parse(cls, text: str) -> ForeignKeyMatch:
        """Parse by first letter; unknown values are SIMPLE."""
        upper = text.strip().upper()
        if upper.startswith("N"):
            return cls.NONE
        if upper.startswith("P"):
            return cls.PARTIAL
        if upper.startswith("F"):
            return cls.FULL
        return cls.SIMPLE


@dataclass(frozen=True)
class CatalogObject:
    type: CatalogObjectType
    name: str
    table_name: str
    root_page: int | None
    sql: str | None

    @classmethod
    def from_row(cls, row: CatalogRow) -> CatalogObject:
        return cls(
            type=CatalogObjectType(row.type),
            name=row.name,
            table_name=row.table_name,
            root_page=row.root_page,
            sql=row.sql,
        )


@dataclass(frozen=True)
class Column:
    """A column in table or view ordinal order.

    ``default_value`` is None when the column declares no default.
    """

    id: int
    name: str
    type: ColumnType | None
    is_not_null: bool
    default_value: DefaultValue | None
    is_primary_key: bool
    primary_key_index: int = 0
    declared_type: str = ""


@dataclass(frozen=True)
class ForeignKey:
    """One column pair of a foreign key constraint.

    ``destination_column`` is None for constraints that reference the
    destination's primary key implicitly.
    """

    id: int
    seq: int
    source_column: str
    destination_table: str
    destination_column: str | None
    update_action: ForeignKeyAction = ForeignKeyAction.NO_ACTION
    delete_action: ForeignKeyAction = ForeignKeyAction.NO_ACTION
    match: ForeignKeyMatch = ForeignKeyMatch.SIMPLE

    @classmethod
    def from_row(cls, row: ForeignKeyRow) -> ForeignKey:
        return cls(
            id=row.id,
            seq=row.seq,
            source_column=row.from_column,
            destination_table=row.table,
            destination_column=row.to_column,
            update_action=ForeignKeyAction.parse(row.on_update),
            delete_action=ForeignKeyAction.parse(row.on_delete),
            match=ForeignKeyMatch.parse(row.match),
        )


@dataclass(frozen=True)
class Table:
    info: CatalogObject
    columns: tuple[Column, ...]
    foreign_keys: tuple[ForeignKey, ...] = ()

    @property
    def name(self) -> str:
        return self.info.name

    @property
    def external_name(self) -> str:
        return self.info.name

    @property
    def creation_sql(self) -> str:
        return self.info.sql or ""

    @property
    def is_without_rowid(self) -> bool:
        upper = self.creation_sql.upper()
        return "WITHOUT" in upper and "ROWID" in upper

    @property
    def primary_key_columns(self) -> tuple[Column, ...]:
        pk = [c for c in self.columns if c.is_primary_key]
        return tuple(sorted(pk, key=lambda c: c.primary_key_index))

    @property
    def rowid_alias(self) -> Column | None:
        """The single ``INTEGER PRIMARY KEY`` column aliasing the rowid, if any."""
        if self.is_without_rowid:
            return None
        pk = self.primary_key_columns
        if len(pk) == 1 and pk[0].declared_type.upper() == "INTEGER":
            return pk[0]
        return None

    def column(self, name: str) -> Column | None:
        for c in self.columns:
            if c.name == name:
                return c
        return None


@dataclass(frozen=True)
class View:
    info: CatalogObject
    columns: tuple[Column, ...]

    @property
    def name(self) -> str:
        return self.info.name

    @property
    def external_name(self) -> str:
        return self.info.name

    @property
    def creation_sql(self) -> str:
        return self.info.sql or ""

    def column(self, name: str) -> Column | None:
        for c in self.columns:
            if c.name == name:
                return c
        return None


@dataclass(frozen=True)
class Schema:
    """The database schema as read from the catalog."""

    version: int
    user_version: int
    tables: tuple[Table, ...] = ()
    views: tuple[View, ...] = ()
    indices: dict[str, tuple[CatalogObject, ...]] = field(default_factory=dict)
    triggers: dict[str, tuple[CatalogObject, ...]] = field(default_factory=dict)

    @classmethod
    def fetch(
        cls,
        connection: sqlite3.Connection,
        *,
        skip_internal_tables: bool = True,
        diagnostics: Diagnostics | None = None,
    ) -> Schema:
        """Read the catalog and build the schema in one go."""
        raw = read_catalog(connection, skip_internal_tables=skip_internal_tables)
        return build_schema(raw, diagnostics=diagnostics)

    def table(self, name: str) -> Table | None:
        for t in self.tables:
            if t.name == name:
                return t
        return None

    def view(self, name: str) -> View | None:
        for v in self.views:
            if v.name == name:
                return v
        return None


def _build_column(
    owner: str, row: TableInfoRow, diagnostics: Diagnostics, parser: DefaultValueParser
) -> Column:
    try:
        default_value = parse_default(row.default_sql, parser)
    except SyntaxError as e:
        diagnostics.add(
            DiagnosticKind.UNPARSEABLE_DEFAULT,
            owner,
            f"Default {row.default_sql!r} is not a literal: {e}",
            property=row.name,
        )
        default_value = None
    return Column(
        id=row.cid,
        name=row.name,
        type=ColumnType.parse(row.type),
        is_not_null=row.not_null,
        default_value=default_value,
        is_primary_key=row.pk > 0,
        primary_key_index=row.pk,
        declared_type=row.type,
    )


def build_schema(raw: RawCatalog, *, diagnostics: Diagnostics | None = None) -> Schema:
    """Assemble a ``Schema`` from the raw catalog, keeping catalog order."""
    if diagnostics is None:
        diagnostics = Diagnostics()

    tables: list[Table] = []
    views: list[View] = []
    indices: dict[str, list[CatalogObject]] = {}
    triggers: dict[str, list[CatalogObject]] = {}
    parser = DefaultValueParser()

    for name in raw.skipped_views:
        diagnostics.add(DiagnosticKind.SKIPPED_VIEW, name, "View columns could not be read")

    for row in raw.objects:
        obj = CatalogObject.from_row(row)
        if obj.type == CatalogObjectType.INDEX:
            indices.setdefault(obj.table_name, []).append(obj)
        elif obj.type == CatalogObjectType.TRIGGER:
            triggers.setdefault(obj.table_name, []).append(obj)
        elif obj.name in raw.table_info:
            columns = tuple(
                _build_column(obj.name, r, diagnostics, parser)
                for r in raw.table_info[obj.name]
            )
            if obj.type == CatalogObjectType.TABLE:
                fkeys = tuple(ForeignKey.from_row(r) for r in raw.foreign_keys.get(obj.name, []))
                tables.append(Table(info=obj, columns=columns, foreign_keys=fkeys))
            else:
                views.append(View(info=obj, columns=columns))

    schema = Schema(
        version=raw.schema_version,
        user_version=raw.user_version,
        tables=tuple(tables),
        views=tuple(views),
        indices={k: tuple(v) for k, v in indices.items()},
        triggers={k: tuple(v) for k, v in triggers.items()},
    )
    log.debug("schema.built", tables=len(schema.tables), views=len(schema.views))
    return schema
