"""Shared fixtures: SQLite databases built from DDL."""

from __future__ import annotations

import sqlite3

import pytest

from typed_records.catalog import read_catalog
from typed_records.config import GeneratorConfig
from typed_records.errors import Diagnostics
from typed_records.generator import generate_from_connection
from typed_records.model import build_database_info
from typed_records.schema import build_schema

PERSON_SQL = """
CREATE TABLE person (
    person_id INTEGER PRIMARY KEY,
    firstname TEXT,
    lastname TEXT NOT NULL
);
"""

ADDRESS_SQL = PERSON_SQL + """
CREATE TABLE address (
    address_id INTEGER PRIMARY KEY,
    street TEXT NOT NULL DEFAULT '',
    owner_id INTEGER REFERENCES person(person_id),
    resident_id INTEGER REFERENCES person(person_id)
);
"""


@pytest.fixture
def connect():
    """Open in-memory databases from DDL scripts, closing them afterwards."""
    connections = []

    def _connect(script: str) -> sqlite3.Connection:
        connection = sqlite3.connect(":memory:")
        connection.executescript(script)
        connections.append(connection)
        return connection

    yield _connect
    for connection in connections:
        connection.close()


@pytest.fixture
def model(connect):
    """Build the entity model for a DDL script."""

    def _model(script: str, config: GeneratorConfig | None = None):
        diagnostics = Diagnostics()
        raw = read_catalog(connect(script))
        schema = build_schema(raw, diagnostics=diagnostics)
        return build_database_info(schema, config, diagnostics=diagnostics)

    return _model


@pytest.fixture
def generate_sql(connect):
    """Run the whole pipeline over a DDL script."""

    def _generate(script: str, config: GeneratorConfig | None = None):
        return generate_from_connection(connect(script), config)

    return _generate
