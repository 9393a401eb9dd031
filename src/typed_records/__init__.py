"""Typed Records - synthesizes typed record operations from an SQLite schema."""

from typed_records.config import GeneratorConfig, TypedRecordsConfig, load_config
from typed_records.errors import (
    BindSynthesisError,
    CatalogFetchError,
    ConfigError,
    Diagnostic,
    DiagnosticKind,
    Diagnostics,
    GenerationError,
    TypedRecordsError,
)
from typed_records.generator import (
    EntityOperations,
    GenerationResult,
    generate,
    generate_from_connection,
    generate_from_path,
)
from typed_records.model import DatabaseInfo, Entity, Property, build_database_info
from typed_records.runtime import RecordStore, record_type
from typed_records.schema import Schema, build_schema
from typed_records.types import (
    ColumnType,
    ColumnTypeKind,
    PropertyType,
    PropertyTypeKind,
    PropertyTypeRegistry,
    TypeAffinity,
)

__all__ = [
    # Main API
    "generate",
    "generate_from_connection",
    "generate_from_path",
    "EntityOperations",
    "GenerationResult",
    "RecordStore",
    "record_type",
    # Schema and model
    "Schema",
    "build_schema",
    "DatabaseInfo",
    "Entity",
    "Property",
    "build_database_info",
    # Types
    "ColumnType",
    "ColumnTypeKind",
    "PropertyType",
    "PropertyTypeKind",
    "PropertyTypeRegistry",
    "TypeAffinity",
    # Configuration
    "GeneratorConfig",
    "TypedRecordsConfig",
    "load_config",
    # Errors
    "TypedRecordsError",
    "CatalogFetchError",
    "ConfigError",
    "BindSynthesisError",
    "GenerationError",
    "Diagnostic",
    "DiagnosticKind",
    "Diagnostics",
]

__version__ = "0.1.0"
