"""Reading the raw catalog of a SQLite database."""

from __future__ import annotations

import sqlite3
from contextlib import closing
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any
from urllib.parse import quote

import structlog

from typed_records.errors import CatalogFetchError

log = structlog.get_logger()

CATALOG_OBJECT_TYPES = ("table", "view", "index", "trigger")

MASTER_QUERY = "SELECT type, name, tbl_name, rootpage, sql FROM sqlite_master"


def quote_identifier(name: str) -> str:
    """Double-quote an SQL identifier, doubling embedded quotes."""
    return '"' + name.replace('"', '""') + '"'


@dataclass(frozen=True)
class CatalogRow:
    """One row of ``sqlite_master``."""

    type: str
    name: str
    table_name: str
    root_page: int | None
    sql: str | None


@dataclass(frozen=True)
class TableInfoRow:
    """One row of ``PRAGMA table_info``.

    ``default_sql`` is the SQL text of the DEFAULT clause, not a value.
    """

    cid: int
    name: str
    type: str
    not_null: bool
    default_sql: str | None
    pk: int


@dataclass(frozen=True)
class ForeignKeyRow:
    """One row of ``PRAGMA foreign_key_list``.

    ``to_column`` is None when the constraint references the destination's
    primary key implicitly.
    """

    id: int
    seq: int
    table: str
    from_column: str
    to_column: str | None
    on_update: str
    on_delete: str
    match: str


@dataclass
class RawCatalog:
    """Everything read from the database, before interpretation."""

    schema_version: int
    user_version: int
    objects: list[CatalogRow] = field(default_factory=list)
    table_info: dict[str, list[TableInfoRow]] = field(default_factory=dict)
    foreign_keys: dict[str, list[ForeignKeyRow]] = field(default_factory=dict)
    skipped_views: list[str] = field(default_factory=list)


def _query(connection: sqlite3.Connection, sql: str) -> list[tuple[Any, ...]]:
    try:
        return list(connection.execute(sql).fetchall())
    except sqlite3.Error as e:
        raise CatalogFetchError.query_failed(sql, str(e)) from e


def _fetch_int(connection: sqlite3.Connection, sql: str) -> int:
    rows = _query(connection, sql)
    if len(rows) != 1 or len(rows[0]) != 1 or not isinstance(rows[0][0], int):
        raise CatalogFetchError.malformed_row(sql, rows, "expected a single integer")
    return rows[0][0]


def _catalog_row(row: tuple[Any, ...]) -> CatalogRow:
    if len(row) != 5:
        raise CatalogFetchError.malformed_row("sqlite_master", row, "expected 5 columns")
    obj_type, name, table_name, root_page, sql = row
    if obj_type not in CATALOG_OBJECT_TYPES:
        raise CatalogFetchError.malformed_row(
            "sqlite_master", row, f"unknown object type {obj_type!r}"
        )
    if not name:
        raise CatalogFetchError.malformed_row("sqlite_master", row, "missing name")
    return CatalogRow(
        type=obj_type,
        name=name,
        table_name=table_name or name,
        root_page=root_page,
        sql=sql,
    )


def _table_info_row(source: str, row: tuple[Any, ...]) -> TableInfoRow:
    if len(row) != 6:
        raise CatalogFetchError.malformed_row(source, row, "expected 6 columns")
    cid, name, col_type, not_null, default_sql, pk = row
    if not name:
        raise CatalogFetchError.malformed_row(source, row, "missing column name")
    return TableInfoRow(
        cid=cid,
        name=name,
        type=col_type or "",
        not_null=bool(not_null),
        default_sql=default_sql,
        pk=pk or 0,
    )


def _foreign_key_row(source: str, row: tuple[Any, ...]) -> ForeignKeyRow:
    if len(row) != 8:
        raise CatalogFetchError.malformed_row(source, row, "expected 8 columns")
    fk_id, seq, table, from_column, to_column, on_update, on_delete, match = row
    if not table or not from_column:
        raise CatalogFetchError.malformed_row(source, row, "missing table or column")
    return ForeignKeyRow(
        id=fk_id,
        seq=seq,
        table=table,
        from_column=from_column,
        to_column=to_column,
        on_update=on_update or "",
        on_delete=on_delete or "",
        match=match or "",
    )


def is_internal_table(name: str) -> bool:
    return name.startswith("sqlite_")


def read_catalog(
    connection: sqlite3.Connection, *, skip_internal_tables: bool = True
) -> RawCatalog:
    """Run the catalog queries over one connection.

    Raises:
        CatalogFetchError: A query failed or returned rows we cannot read.
    """
    catalog = RawCatalog(
        schema_version=_fetch_int(connection, "PRAGMA main.schema_version"),
        user_version=_fetch_int(connection, "PRAGMA main.user_version"),
    )

    for row in _query(connection, MASTER_QUERY):
        obj = _catalog_row(row)
        if skip_internal_tables and is_internal_table(obj.table_name):
            log.debug("catalog.skip_internal", name=obj.name)
            continue
        catalog.objects.append(obj)

    for obj in catalog.objects:
        if obj.type not in ("table", "view"):
            continue
        sql = f"PRAGMA table_info({quote_identifier(obj.name)})"
        try:
            rows = _query(connection, sql)
        except CatalogFetchError as e:
            if obj.type != "view":
                raise
            # A view over missing tables cannot be described.
            log.info("catalog.view_skipped", view=obj.name, reason=e.details["reason"])
            catalog.skipped_views.append(obj.name)
            continue
        catalog.table_info[obj.name] = [_table_info_row(sql, r) for r in rows]

        if obj.type == "table":
            sql = f"PRAGMA foreign_key_list({quote_identifier(obj.name)})"
            catalog.foreign_keys[obj.name] = [
                _foreign_key_row(sql, r) for r in _query(connection, sql)
            ]

    catalog.objects = [o for o in catalog.objects if o.name not in catalog.skipped_views]
    log.debug(
        "catalog.read",
        schema_version=catalog.schema_version,
        objects=len(catalog.objects),
    )
    return catalog


def connect_read_only(path: Path | str) -> sqlite3.Connection:
    """Open a database file read-only."""
    path = Path(path)
    uri = f"file:{quote(str(path.absolute()))}?mode=ro"
    try:
        return sqlite3.connect(uri, uri=True)
    except sqlite3.Error as e:
        raise CatalogFetchError.open_failed(str(path), str(e)) from e


def open_catalog(path: Path | str, *, skip_internal_tables: bool = True) -> RawCatalog:
    """Read the catalog of a database file, closing it afterwards."""
    with closing(connect_read_only(path)) as connection:
        return read_catalog(connection, skip_internal_tables=skip_internal_tables)
