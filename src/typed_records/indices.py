"""Column index tables for reading result rows.

The static table holds the ordinal of each property in the canonical select.
For arbitrary queries, ``resolve_indices`` maps the reported result column
names onto properties; properties missing from the result get ``-1``.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

from typed_records.model import Entity

ABSENT = -1


@dataclass(frozen=True)
class StaticIndexTable:
    """Property name to column ordinal in the canonical select."""

    indices: tuple[tuple[str, int], ...]

    def as_dict(self) -> dict[str, int]:
        return dict(self.indices)

    def __getitem__(self, name: str) -> int:
        for prop, index in self.indices:
            if prop == name:
                return index
        raise KeyError(name)


@dataclass(frozen=True)
class DynamicIndexLookup:
    """Properties in order, with the column names they are matched against."""

    properties: tuple[str, ...]
    external_names: tuple[str, ...]


def static_indices(entity: Entity) -> StaticIndexTable:
    return StaticIndexTable(tuple((p.name, i) for i, p in enumerate(entity.properties)))


def dynamic_lookup(entity: Entity) -> DynamicIndexLookup:
    return DynamicIndexLookup(
        properties=tuple(p.name for p in entity.properties),
        external_names=tuple(p.external_name for p in entity.properties),
    )


def resolve_indices(lookup: DynamicIndexLookup, column_names: Sequence[str]) -> dict[str, int]:
    """Map result column names to property indices.

    Each column goes to the first property whose external name matches it
    exactly. When a name repeats in the result the last column wins.
    """
    indices = {name: ABSENT for name in lookup.properties}
    for i, column in enumerate(column_names):
        for name, external_name in zip(lookup.properties, lookup.external_names):
            if external_name == column:
                indices[name] = i
                break
    return indices
