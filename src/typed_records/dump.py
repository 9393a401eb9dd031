"""JSON serialization of generation results."""

from __future__ import annotations

import dataclasses
import json
from enum import Enum
from typing import Any

from typed_records import expressions
from typed_records.errors import Diagnostic, Diagnostics
from typed_records.generator import EntityOperations, GenerationResult
from typed_records.indices import StaticIndexTable
from typed_records.statements import ParameterIndexTable
from typed_records.types import ColumnType, PropertyType

_JSON_SAFE_INT = 2**53


def to_jsonable(value: Any) -> Any:
    """Convert a synthesized structure into plain JSON values.

    Expression nodes carry their class name under ``"node"``.
    """
    if value is None or isinstance(value, (bool, str, float)):
        return value
    if isinstance(value, int):
        # Large integers don't survive JSON number parsing
        if value > _JSON_SAFE_INT or value < -_JSON_SAFE_INT:
            return hex(value)
        return value
    if isinstance(value, bytes):
        return value.hex()
    if isinstance(value, Enum):
        return value.name
    if isinstance(value, (PropertyType, ColumnType)):
        return str(value)
    if isinstance(value, (StaticIndexTable, ParameterIndexTable)):
        return value.as_dict()
    if isinstance(value, Diagnostic):
        return value.to_dict()
    if isinstance(value, Diagnostics):
        return [d.to_dict() for d in value]
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        out = {f.name: to_jsonable(getattr(value, f.name)) for f in dataclasses.fields(value)}
        if type(value).__module__ == expressions.__name__:
            out["node"] = type(value).__name__
        return out
    if isinstance(value, dict):
        return {str(k): to_jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_jsonable(v) for v in value]
    raise TypeError(f"Cannot serialize {type(value).__name__}")


def bundle_to_dict(bundle: EntityOperations) -> dict[str, Any]:
    data = to_jsonable(bundle)
    data["name"] = bundle.name
    return data


def result_to_dict(result: GenerationResult) -> dict[str, Any]:
    return {
        "database": result.database.name,
        "user_version": result.database.user_version,
        "entities": [bundle_to_dict(b) for b in result.bundles],
        "diagnostics": to_jsonable(result.diagnostics),
    }


def dumps(value: GenerationResult | EntityOperations, indent: int | None = 2) -> str:
    """Serialize a result or a single bundle with stable key order."""
    if isinstance(value, GenerationResult):
        data = result_to_dict(value)
    else:
        data = bundle_to_dict(value)
    return json.dumps(data, indent=indent, sort_keys=True)


def list_entities(result: GenerationResult) -> str:
    """A short table of the entities and what they support."""
    lines = [f"Entities in {result.database.name}:", "-" * 60]
    for bundle in result.bundles:
        entity = bundle.entity
        ops = "".join(
            flag if enabled else "-"
            for flag, enabled in (
                ("I", entity.can_insert),
                ("U", entity.can_update),
                ("D", entity.can_delete),
            )
        )
        lines.append(
            f"  {entity.name:<24} {entity.kind:<6} {ops}  "
            f"{len(entity.properties):>3} props  "
            f"{len(bundle.finds):>2} finds  {len(bundle.fetches):>2} fetches"
        )
    if len(result.diagnostics):
        lines.append("")
        lines.append(f"{len(result.diagnostics)} diagnostics")
    return "\n".join(lines)
