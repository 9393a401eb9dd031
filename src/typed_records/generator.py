"""Pipeline driver: one operations bundle per entity."""

from __future__ import annotations

import sqlite3
from dataclasses import dataclass, field
from pathlib import Path

import structlog

from typed_records.binding import positional_indices, synthesize_bind_chain
from typed_records.catalog import open_catalog, read_catalog
from typed_records.config import GeneratorConfig
from typed_records.errors import BindSynthesisError, Diagnostics, GenerationError
from typed_records.expressions import BindBlock, TerminalKind
from typed_records.extraction import Extract, synthesize_extracts
from typed_records.indices import DynamicIndexLookup, StaticIndexTable, dynamic_lookup, static_indices
from typed_records.model import DatabaseInfo, Entity, build_database_info
from typed_records.relationships import FetchSpec, FindSpec, synthesize_relationships
from typed_records.schema import build_schema
from typed_records.statements import ParameterIndexTable, Statements, build_statements

log = structlog.get_logger()


@dataclass(frozen=True)
class EntityOperations:
    """Everything an emitter needs to produce the data-access code of an entity."""

    entity: Entity
    static_indices: StaticIndexTable
    dynamic_lookup: DynamicIndexLookup
    statements: Statements
    extracts: tuple[Extract, ...]
    bind: BindBlock
    insert_bind: BindBlock | None = None
    update_bind: BindBlock | None = None
    delete_bind: BindBlock | None = None
    finds: tuple[FindSpec, ...] = ()
    fetches: tuple[FetchSpec, ...] = ()

    @property
    def name(self) -> str:
        return self.entity.name

    def find(self, name: str) -> FindSpec:
        for spec in self.finds:
            if spec.name == name:
                return spec
        raise KeyError(f"No find '{name}' on '{self.name}'")

    def fetch(self, key: str) -> FetchSpec:
        for spec in self.fetches:
            if spec.key == key:
                return spec
        raise KeyError(f"No fetch '{key}' on '{self.name}'")


@dataclass(frozen=True)
class GenerationResult:
    database: DatabaseInfo
    bundles: tuple[EntityOperations, ...]
    diagnostics: Diagnostics = field(default_factory=Diagnostics, compare=False)

    def __getitem__(self, name: str) -> EntityOperations:
        for bundle in self.bundles:
            if bundle.name == name:
                return bundle
        raise KeyError(f"Entity '{name}' not found")


def generate_entity(
    info: DatabaseInfo, entity: Entity, config: GeneratorConfig, diagnostics: Diagnostics
) -> EntityOperations:
    statements = build_statements(entity, config)
    properties = entity.properties

    def chain(table: ParameterIndexTable | None) -> BindBlock | None:
        if table is None:
            return None
        return synthesize_bind_chain(entity, properties, table, TerminalKind.EXECUTE, config)

    finds, fetches = synthesize_relationships(info, entity, config, diagnostics)
    return EntityOperations(
        entity=entity,
        static_indices=static_indices(entity),
        dynamic_lookup=dynamic_lookup(entity),
        statements=statements,
        extracts=synthesize_extracts(entity),
        bind=synthesize_bind_chain(
            entity, properties, positional_indices(properties), TerminalKind.CONTINUATION, config
        ),
        insert_bind=chain(statements.insert_parameters),
        update_bind=chain(statements.update_parameters),
        delete_bind=chain(statements.delete_parameters),
        finds=finds,
        fetches=fetches,
    )


def generate(info: DatabaseInfo, config: GeneratorConfig | None = None) -> GenerationResult:
    """Synthesize operation bundles for every entity in ``info``.

    Raises:
        GenerationError: An entity has a property we cannot bind.
    """
    config = config or GeneratorConfig()
    diagnostics = Diagnostics(list(info.diagnostics.items))
    bundles = []
    for entity in info.entities:
        try:
            bundles.append(generate_entity(info, entity, config, diagnostics))
        except BindSynthesisError as e:
            log.error("generation.entity_failed", entity=entity.name, error=str(e))
            raise GenerationError.entity_failed(entity.name, e.message) from e
        log.debug("generation.entity", entity=entity.name)
    log.info("generation.done", entities=len(bundles), diagnostics=len(diagnostics))
    return GenerationResult(database=info, bundles=tuple(bundles), diagnostics=diagnostics)


def generate_from_connection(
    connection: sqlite3.Connection,
    config: GeneratorConfig | None = None,
    *,
    name: str = "database",
) -> GenerationResult:
    """Read the catalog over ``connection`` and run the whole pipeline."""
    config = config or GeneratorConfig()
    diagnostics = Diagnostics()
    raw = read_catalog(connection, skip_internal_tables=config.skip_internal_tables)
    schema = build_schema(raw, diagnostics=diagnostics)
    info = build_database_info(schema, config, name=name, diagnostics=diagnostics)
    return generate(info, config)


def generate_from_path(path: Path | str, config: GeneratorConfig | None = None) -> GenerationResult:
    """Read a database file read-only and run the whole pipeline."""
    config = config or GeneratorConfig()
    path = Path(path)
    diagnostics = Diagnostics()
    raw = open_catalog(path, skip_internal_tables=config.skip_internal_tables)
    schema = build_schema(raw, diagnostics=diagnostics)
    info = build_database_info(schema, config, name=path.stem, diagnostics=diagnostics)
    return generate(info, config)
