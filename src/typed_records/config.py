"""Configuration models and loading.

Precedence, highest first:
1. Keyword overrides to ``load_config()``
2. Environment variables (``TYPED_RECORDS__SECTION__KEY``)
3. YAML config file
4. Built-in defaults (this file)

Examples:
    TYPED_RECORDS__LOGGING__LEVEL=DEBUG
    TYPED_RECORDS__GENERATOR__DATE_STORAGE=text
    TYPED_RECORDS__GENERATOR__READ_ONLY=true
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource, SettingsConfigDict

from typed_records.errors import ConfigError

LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]

PROPERTY_TYPE_NAMES = (
    "integer",
    "double",
    "string",
    "byte_array",
    "bool",
    "date",
    "binary_data",
    "url",
    "decimal",
    "uuid",
)


def _default_sql_type_property_types() -> dict[str, str]:
    return {
        "uuid": "uuid",
        "UUID": "uuid",
        "url": "url",
        "URL": "url",
        "DECIMAL": "decimal",
        "decimal": "decimal",
        "NUMERIC": "decimal",
        "numeric": "decimal",
        "TIMESTAMP": "date",
        "timestamp": "date",
        "DATETIME": "date",
        "datetime": "date",
    }


class LoggingConfig(BaseModel):
    """Logging configuration.

    Env vars:
        TYPED_RECORDS__LOGGING__LEVEL: Log level
        TYPED_RECORDS__LOGGING__FORMAT: console or json
    """

    level: LogLevel = "WARNING"
    format: Literal["json", "console"] = "console"
    destination: str = "stderr"  # stderr, stdout, or file path

    @field_validator("level", mode="before")
    @classmethod
    def normalize_level(cls, v: Any) -> Any:
        if isinstance(v, str):
            v = v.upper()
            if v == "WARN":
                return "WARNING"
        return v


class GeneratorConfig(BaseModel):
    """Knobs that change what gets synthesized.

    ``date_format`` is used for text date storage. Values with microseconds
    are written with ``.%f`` appended when the format has no ``%f``, and
    both forms are read back.

    Env vars:
        TYPED_RECORDS__GENERATOR__READ_ONLY
        TYPED_RECORDS__GENERATOR__DATE_STORAGE
        TYPED_RECORDS__GENERATOR__UUID_STORAGE
    """

    read_only: bool = False
    date_storage: Literal["epoch", "text"] = "epoch"
    date_format: str = "%Y-%m-%d %H:%M:%S"
    uuid_storage: Literal["text", "blob"] = "text"
    use_insert_returning: bool = True
    insert_returning_fallback: bool = True
    bool_true_tokens: list[str] = Field(default_factory=lambda: ["true", "YES", "1", "TRUE"])
    bool_false_tokens: list[str] = Field(default_factory=lambda: ["false", "NO", "0", "FALSE"])
    sql_type_property_types: dict[str, str] = Field(
        default_factory=_default_sql_type_property_types
    )
    column_suffix_property_types: dict[str, str] = Field(default_factory=dict)
    relationship_key_suffixes: list[str] = Field(
        default_factory=lambda: ["_id", "_ID", "Id", "ID", "id", "_fkey", "_fk"]
    )
    skip_internal_tables: bool = True

    @field_validator("sql_type_property_types", "column_suffix_property_types")
    @classmethod
    def validate_property_type_names(cls, v: dict[str, str]) -> dict[str, str]:
        for key, name in v.items():
            if name not in PROPERTY_TYPE_NAMES and not name.startswith("custom:"):
                raise ValueError(f"Unknown property type '{name}' for '{key}'")
        return v


class TypedRecordsConfig(BaseModel):
    """Root configuration."""

    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    generator: GeneratorConfig = Field(default_factory=GeneratorConfig)


def _load_yaml(path: Path) -> dict[str, Any]:
    if not path.exists():
        raise ConfigError.file_not_found(str(path))
    try:
        with path.open() as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigError.parse_error(str(path), str(e)) from e
    if not isinstance(data, dict):
        raise ConfigError.parse_error(str(path), "top level must be a mapping")
    return data


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    result = base.copy()
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


class _YamlSource(PydanticBaseSettingsSource):
    """Settings source that reads from pre-loaded YAML config."""

    def __init__(self, settings_cls: type[BaseSettings], yaml_config: dict[str, Any]) -> None:
        super().__init__(settings_cls)
        self._yaml_config = yaml_config

    def get_field_value(
        self,
        field: Any,  # noqa: ARG002
        field_name: str,
    ) -> tuple[Any, str, bool]:
        val = self._yaml_config.get(field_name)
        return val, field_name, val is not None

    def __call__(self) -> dict[str, Any]:
        return self._yaml_config


def _make_settings_class(yaml_config: dict[str, Any]) -> type[BaseSettings]:
    class TypedRecordsSettings(BaseSettings):
        """Env vars: TYPED_RECORDS__LOGGING__LEVEL, TYPED_RECORDS__GENERATOR__READ_ONLY, etc."""

        model_config = SettingsConfigDict(
            env_prefix="TYPED_RECORDS__",
            env_nested_delimiter="__",
            case_sensitive=False,
        )

        logging: LoggingConfig = LoggingConfig()
        generator: GeneratorConfig = GeneratorConfig()

        @classmethod
        def settings_customise_sources(
            cls,
            settings_cls: type[BaseSettings],
            init_settings: PydanticBaseSettingsSource,
            env_settings: PydanticBaseSettingsSource,
            dotenv_settings: PydanticBaseSettingsSource,  # noqa: ARG003
            file_secret_settings: PydanticBaseSettingsSource,  # noqa: ARG003
        ) -> tuple[PydanticBaseSettingsSource, ...]:
            return (init_settings, env_settings, _YamlSource(settings_cls, yaml_config))

    return TypedRecordsSettings


def load_config(path: Path | str | None = None, **kwargs: Any) -> TypedRecordsConfig:
    """Load config: defaults < YAML file < env vars < kwargs.

    Args:
        path: Optional YAML config file. A missing file is an error.
        **kwargs: Section overrides, e.g. ``generator={"read_only": True}``.

    Raises:
        ConfigError: On unreadable YAML or validation errors.
    """
    yaml_config: dict[str, Any] = {}
    if path is not None:
        yaml_config = _load_yaml(Path(path))

    settings_cls = _make_settings_class(yaml_config)
    try:
        settings = settings_cls(**kwargs)
        return TypedRecordsConfig(
            logging=settings.logging,  # type: ignore[attr-defined]
            generator=settings.generator,  # type: ignore[attr-defined]
        )
    except ValidationError as e:
        err = e.errors()[0]
        field = ".".join(str(loc) for loc in err["loc"])
        raise ConfigError.invalid_value(field, err.get("input"), err["msg"]) from e


def merge_overrides(config: GeneratorConfig, **overrides: Any) -> GeneratorConfig:
    """Return a copy of ``config`` with the non-None overrides applied."""
    updates = {k: v for k, v in overrides.items() if v is not None}
    if not updates:
        return config
    try:
        return GeneratorConfig.model_validate(_deep_merge(config.model_dump(), updates))
    except ValidationError as e:
        err = e.errors()[0]
        field = ".".join(str(loc) for loc in err["loc"])
        raise ConfigError.invalid_value(field, err.get("input"), err["msg"]) from e
