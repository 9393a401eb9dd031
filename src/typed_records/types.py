"""Column types, type affinity and property types."""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from typed_records.config import GeneratorConfig


class TypeAffinity(Enum):
    """SQLite column affinity."""

    TEXT = "TEXT"
    NUMERIC = "NUMERIC"
    INTEGER = "INTEGER"
    REAL = "REAL"
    BLOB = "BLOB"


class ColumnTypeKind(Enum):
    """Declared column types we recognize by name."""

    INTEGER = "integer"
    REAL = "real"
    TEXT = "text"
    BLOB = "blob"
    ANY = "any"
    BOOLEAN = "boolean"
    VARCHAR = "varchar"
    DATE = "date"
    DATETIME = "datetime"
    TIMESTAMP = "timestamp"
    DECIMAL = "decimal"
    CUSTOM = "custom"

    @property
    def fixed_affinity(self) -> TypeAffinity | None:
        """Affinity for non-custom kinds, None for custom."""
        affinities = {
            ColumnTypeKind.INTEGER: TypeAffinity.INTEGER,
            ColumnTypeKind.REAL: TypeAffinity.REAL,
            ColumnTypeKind.TEXT: TypeAffinity.TEXT,
            ColumnTypeKind.BLOB: TypeAffinity.BLOB,
            ColumnTypeKind.ANY: TypeAffinity.NUMERIC,
            ColumnTypeKind.BOOLEAN: TypeAffinity.NUMERIC,
            ColumnTypeKind.VARCHAR: TypeAffinity.NUMERIC,
            ColumnTypeKind.DATE: TypeAffinity.NUMERIC,
            ColumnTypeKind.DATETIME: TypeAffinity.NUMERIC,
            ColumnTypeKind.TIMESTAMP: TypeAffinity.NUMERIC,
            ColumnTypeKind.DECIMAL: TypeAffinity.NUMERIC,
        }
        return affinities.get(self)


# Exact (uppercased) keyword matches. Aliases like CLOB stay custom so the
# declared name survives.
COLUMN_TYPE_KEYWORDS: dict[str, ColumnTypeKind] = {
    "INT": ColumnTypeKind.INTEGER,
    "INTEGER": ColumnTypeKind.INTEGER,
    "REAL": ColumnTypeKind.REAL,
    "DOUBLE": ColumnTypeKind.REAL,
    "TEXT": ColumnTypeKind.TEXT,
    "BLOB": ColumnTypeKind.BLOB,
    "ANY": ColumnTypeKind.ANY,
    "BOOLEAN": ColumnTypeKind.BOOLEAN,
    "BOOL": ColumnTypeKind.BOOLEAN,
    "DATE": ColumnTypeKind.DATE,
    "DATETIME": ColumnTypeKind.DATETIME,
    "TIMESTAMP": ColumnTypeKind.TIMESTAMP,
    "DECIMAL": ColumnTypeKind.DECIMAL,
    "VARCHAR": ColumnTypeKind.VARCHAR,
}

# Ordered substring scan for custom type names
AFFINITY_SCAN: tuple[tuple[str, TypeAffinity], ...] = (
    ("INT", TypeAffinity.INTEGER),
    ("CHAR", TypeAffinity.TEXT),
    ("CLOB", TypeAffinity.TEXT),
    ("TEXT", TypeAffinity.TEXT),
    ("BLOB", TypeAffinity.BLOB),
    ("REAL", TypeAffinity.REAL),
    ("FLOA", TypeAffinity.REAL),
    ("DOUB", TypeAffinity.REAL),
)

_VARCHAR_WIDTH = re.compile(r"^VARCHAR\((\d+)\)")


@dataclass(frozen=True)
class ColumnType:
    """A declared column type.

    ``raw`` holds the declared string for custom types.
    """

    kind: ColumnTypeKind
    width: int | None = None
    raw: str | None = None

    @classmethod
    def parse(cls, raw: str | None) -> ColumnType | None:
        """Parse a declared type string. Empty or missing gives None."""
        if not raw:
            return None
        upper = raw.upper()
        kind = COLUMN_TYPE_KEYWORDS.get(upper)
        if kind is not None:
            return cls(kind=kind)
        match = _VARCHAR_WIDTH.match(upper)
        if match:
            return cls(kind=ColumnTypeKind.VARCHAR, width=int(match.group(1)))
        return cls(kind=ColumnTypeKind.CUSTOM, raw=raw)

    @property
    def affinity(self) -> TypeAffinity:
        fixed = self.kind.fixed_affinity
        if fixed is not None:
            return fixed
        upper = (self.raw or "").upper()
        for needle, affinity in AFFINITY_SCAN:
            if needle in upper:
                return affinity
        return TypeAffinity.NUMERIC

    @property
    def sql_name(self) -> str:
        """The type name as it would be written in SQL."""
        if self.kind == ColumnTypeKind.CUSTOM:
            return self.raw or ""
        if self.kind == ColumnTypeKind.VARCHAR and self.width is not None:
            return f"VARCHAR({self.width})"
        return self.kind.value.upper()

    def __str__(self) -> str:
        return self.sql_name


class PropertyTypeKind(Enum):
    """The closed set of property types a record field can have."""

    INTEGER = "integer"
    DOUBLE = "double"
    STRING = "string"
    BYTE_ARRAY = "byte_array"
    BOOL = "bool"
    DATE = "date"
    BINARY_DATA = "binary_data"
    URL = "url"
    DECIMAL = "decimal"
    UUID = "uuid"
    CUSTOM = "custom"

    @property
    def is_fallible_read(self) -> bool:
        """True if reading this type from a column can fail to convert."""
        return self in (
            PropertyTypeKind.DATE,
            PropertyTypeKind.UUID,
            PropertyTypeKind.URL,
            PropertyTypeKind.DECIMAL,
            PropertyTypeKind.CUSTOM,
        )


@dataclass(frozen=True)
class PropertyType:
    """A property type, with a name for custom types."""

    kind: PropertyTypeKind
    custom_name: str | None = None

    @classmethod
    def from_name(cls, name: str) -> PropertyType:
        """Parse ``"integer"``, ``"uuid"``... or ``"custom:Name"``."""
        if name.startswith("custom:"):
            return cls(kind=PropertyTypeKind.CUSTOM, custom_name=name[len("custom:"):])
        return cls(kind=PropertyTypeKind(name))

    @property
    def name(self) -> str:
        if self.kind == PropertyTypeKind.CUSTOM:
            return f"custom:{self.custom_name}"
        return self.kind.value

    def __str__(self) -> str:
        return self.name


INTEGER = PropertyType(PropertyTypeKind.INTEGER)
DOUBLE = PropertyType(PropertyTypeKind.DOUBLE)
STRING = PropertyType(PropertyTypeKind.STRING)
BYTE_ARRAY = PropertyType(PropertyTypeKind.BYTE_ARRAY)
BOOL = PropertyType(PropertyTypeKind.BOOL)
DATE = PropertyType(PropertyTypeKind.DATE)
BINARY_DATA = PropertyType(PropertyTypeKind.BINARY_DATA)
URL = PropertyType(PropertyTypeKind.URL)
DECIMAL = PropertyType(PropertyTypeKind.DECIMAL)
UUID = PropertyType(PropertyTypeKind.UUID)

# Built-in mapping from column type kind to property type
COLUMN_KIND_PROPERTY_TYPES: dict[ColumnTypeKind, PropertyType] = {
    ColumnTypeKind.INTEGER: INTEGER,
    ColumnTypeKind.REAL: DOUBLE,
    ColumnTypeKind.TEXT: STRING,
    ColumnTypeKind.BLOB: BYTE_ARRAY,
    ColumnTypeKind.ANY: STRING,
    ColumnTypeKind.BOOLEAN: BOOL,
    ColumnTypeKind.VARCHAR: STRING,
    ColumnTypeKind.DATE: STRING,
    ColumnTypeKind.DATETIME: STRING,
    ColumnTypeKind.TIMESTAMP: DATE,
    ColumnTypeKind.DECIMAL: DECIMAL,
}


class PropertyTypeRegistry:
    """Resolves the property type for a column.

    Column name suffixes are checked first, then the declared SQL type name,
    then the built-in mapping by column type kind.
    """

    def __init__(
        self,
        sql_type_property_types: dict[str, str] | None = None,
        column_suffix_property_types: dict[str, str] | None = None,
    ) -> None:
        self._sql_types: dict[str, PropertyType] = {}
        self._suffixes: dict[str, PropertyType] = {}
        for name, type_name in (sql_type_property_types or {}).items():
            self.register_sql_type(name, PropertyType.from_name(type_name))
        for suffix, type_name in (column_suffix_property_types or {}).items():
            self.register_suffix(suffix, PropertyType.from_name(type_name))

    @classmethod
    def from_config(cls, config: GeneratorConfig) -> PropertyTypeRegistry:
        return cls(config.sql_type_property_types, config.column_suffix_property_types)

    def register_sql_type(self, sql_type: str, property_type: PropertyType) -> None:
        self._sql_types[sql_type] = property_type

    def register_suffix(self, suffix: str, property_type: PropertyType) -> None:
        self._suffixes[suffix] = property_type

    def get(self, sql_type: str) -> PropertyType | None:
        """Get the override for a declared SQL type name."""
        return self._sql_types.get(sql_type)

    def resolve(self, column_name: str, column_type: ColumnType | None) -> PropertyType:
        for suffix, property_type in self._suffixes.items():
            if column_name.endswith(suffix):
                return property_type
        if column_type is not None:
            override = self._sql_types.get(column_type.sql_name)
            if override is not None:
                return override
        return default_property_type(column_type)


def default_property_type(column_type: ColumnType | None) -> PropertyType:
    """Built-in property type for a column type, without overrides."""
    if column_type is None:
        return STRING
    if column_type.kind == ColumnTypeKind.CUSTOM:
        if column_type.raw == "URL":
            return URL
        return STRING
    return COLUMN_KIND_PROPERTY_TYPES[column_type.kind]


class DefaultKind(Enum):
    """Kinds of declared column default values."""

    NULL = "null"
    INTEGER = "integer"
    REAL = "real"
    TEXT = "text"
    BLOB = "blob"
    CURRENT_DATE = "current_date"
    CURRENT_TIME = "current_time"
    CURRENT_TIMESTAMP = "current_timestamp"


@dataclass(frozen=True)
class DefaultValue:
    """A declared column default.

    A column without a DEFAULT clause has no ``DefaultValue`` at all; an
    explicit ``DEFAULT NULL`` is ``DefaultValue(DefaultKind.NULL)``.
    """

    kind: DefaultKind
    value: int | float | str | bytes | None = None
