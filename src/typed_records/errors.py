"""Error types and generation diagnostics.

Error code ranges:
- 1xxx: Catalog (fatal, nothing is emitted)
- 2xxx: Config
- 3xxx: Generation (encoding gaps, refuse to emit)

Degradable problems (an unsupported default, a relationship key that cannot
be bound) are not exceptions. They are collected as ``Diagnostic`` records
and the run continues.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum, IntEnum
from typing import Any

import structlog

log = structlog.get_logger()


class ErrorCode(IntEnum):
    """Typed error codes for programmatic handling."""

    # Catalog (1xxx)
    CATALOG_QUERY_FAILED = 1001
    CATALOG_MALFORMED_ROW = 1002
    CATALOG_OPEN_FAILED = 1003

    # Config (2xxx)
    CONFIG_PARSE_ERROR = 2001
    CONFIG_INVALID_VALUE = 2002
    CONFIG_FILE_NOT_FOUND = 2003

    # Generation (3xxx)
    GENERATION_NO_BINDER = 3001
    GENERATION_FAILED = 3002


class TypedRecordsError(Exception):
    """Base error with a code and structured details."""

    def __init__(
        self, code: ErrorCode, message: str, details: dict[str, Any] | None = None
    ) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.details = details or {}

    @property
    def error_name(self) -> str:
        """String identifier for logging (e.g., 'CATALOG_QUERY_FAILED')."""
        return self.code.name

    def to_dict(self) -> dict[str, Any]:
        return {
            "code": self.code.value,
            "error": self.error_name,
            "message": self.message,
            "details": self.details,
        }

    def __str__(self) -> str:
        return f"[{self.code.value}] {self.error_name}: {self.message}"


class CatalogFetchError(TypedRecordsError):
    """A catalog query failed or returned rows we cannot interpret."""

    @classmethod
    def query_failed(cls, sql: str, reason: str) -> CatalogFetchError:
        return cls(
            ErrorCode.CATALOG_QUERY_FAILED,
            f"Catalog query failed: {sql}: {reason}",
            {"sql": sql, "reason": reason},
        )

    @classmethod
    def malformed_row(cls, source: str, row: Any, reason: str) -> CatalogFetchError:
        return cls(
            ErrorCode.CATALOG_MALFORMED_ROW,
            f"Malformed row from {source}: {reason}",
            {"source": source, "row": repr(row), "reason": reason},
        )

    @classmethod
    def open_failed(cls, path: str, reason: str) -> CatalogFetchError:
        return cls(
            ErrorCode.CATALOG_OPEN_FAILED,
            f"Could not open database {path}: {reason}",
            {"path": path, "reason": reason},
        )


class ConfigError(TypedRecordsError):
    """Configuration-related errors."""

    @classmethod
    def parse_error(cls, path: str, reason: str) -> ConfigError:
        return cls(
            ErrorCode.CONFIG_PARSE_ERROR,
            f"Failed to parse config at {path}: {reason}",
            {"path": path, "reason": reason},
        )

    @classmethod
    def invalid_value(cls, field: str, value: Any, reason: str) -> ConfigError:
        return cls(
            ErrorCode.CONFIG_INVALID_VALUE,
            f"Invalid value for '{field}': {reason}",
            {"field": field, "value": str(value), "reason": reason},
        )

    @classmethod
    def file_not_found(cls, path: str) -> ConfigError:
        return cls(
            ErrorCode.CONFIG_FILE_NOT_FOUND,
            f"Config file not found: {path}",
            {"path": path},
        )


class BindSynthesisError(TypedRecordsError):
    """A property type has no defined binder."""

    @classmethod
    def no_binder(cls, entity: str, prop: str, property_type: str) -> BindSynthesisError:
        return cls(
            ErrorCode.GENERATION_NO_BINDER,
            f"No binder for property '{entity}.{prop}' of type {property_type}",
            {"entity": entity, "property": prop, "property_type": property_type},
        )


class GenerationError(TypedRecordsError):
    """Synthesis for an entity was abandoned."""

    @classmethod
    def entity_failed(cls, entity: str, reason: str) -> GenerationError:
        return cls(
            ErrorCode.GENERATION_FAILED,
            f"Generation failed for '{entity}': {reason}",
            {"entity": entity, "reason": reason},
        )


class DiagnosticKind(Enum):
    UNSUPPORTED_DEFAULT = "unsupported_default"
    UNPARSEABLE_DEFAULT = "unparseable_default"
    UNSUPPORTED_RELATIONSHIP_KEY = "unsupported_relationship_key"
    MISSING_RELATIONSHIP_TARGET = "missing_relationship_target"
    SKIPPED_VIEW = "skipped_view"


@dataclass(frozen=True)
class Diagnostic:
    """A non-fatal problem found while generating."""

    kind: DiagnosticKind
    entity: str
    message: str
    property: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind.value,
            "entity": self.entity,
            "property": self.property,
            "message": self.message,
        }


@dataclass
class Diagnostics:
    """Collects diagnostics for one generation run, logging each as it arrives."""

    items: list[Diagnostic] = field(default_factory=list)

    def add(
        self,
        kind: DiagnosticKind,
        entity: str,
        message: str,
        property: str | None = None,
    ) -> Diagnostic:
        diagnostic = Diagnostic(kind=kind, entity=entity, message=message, property=property)
        self.items.append(diagnostic)
        log.warning(
            "generation.diagnostic",
            kind=kind.value,
            entity=entity,
            property=property,
            message=message,
        )
        return diagnostic

    def of_kind(self, kind: DiagnosticKind) -> list[Diagnostic]:
        return [d for d in self.items if d.kind == kind]

    def for_entity(self, entity: str) -> list[Diagnostic]:
        return [d for d in self.items if d.entity == entity]

    def __len__(self) -> int:
        return len(self.items)

    def __iter__(self):  # type: ignore[no-untyped-def]
        return iter(self.items)
