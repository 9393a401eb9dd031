"""Tests for default value resolution."""

from __future__ import annotations

from dataclasses import replace
from datetime import datetime, timezone

import pytest

from typed_records.config import GeneratorConfig
from typed_records.defaults import (
    Unsupported,
    baseline_default,
    effective_default,
    resolve_default,
)
from typed_records.errors import DiagnosticKind
from typed_records.expressions import (
    CurrentTimestamp,
    Literal,
    MakeCustom,
    MakeDate,
    MakeDecimal,
    MakeURL,
    MakeUUID,
    NoValue,
    TimestampForm,
)
from typed_records.model import Property
from typed_records.types import (
    DefaultKind,
    DefaultValue,
    PropertyType,
    PropertyTypeKind,
)


def make_property(kind, default, not_null=False, custom_name=None):
    return Property(
        name="p",
        external_name="p",
        property_type=PropertyType(kind, custom_name),
        is_not_null=not_null,
        default_value=default,
    )


def resolve(kind, default_kind, value=None, not_null=False, config=None):
    prop = make_property(kind, DefaultValue(default_kind, value), not_null)
    return resolve_default(prop, config or GeneratorConfig())


class TestBooleanDefaults:
    """The boolean default scenario, end to end through the catalog."""

    def test_true_token(self, model):
        info = model("CREATE TABLE t (flag BOOLEAN NOT NULL DEFAULT 'true');")
        flag = info["t"].property("flag")
        assert flag.property_type.kind == PropertyTypeKind.BOOL
        assert flag.resolved_default == Literal(True)

    def test_unknown_token_degrades(self, model):
        info = model("CREATE TABLE t (flag BOOLEAN NOT NULL DEFAULT 'maybe');")
        flag = info["t"].property("flag")
        assert flag.resolved_default is None
        assert effective_default(flag) == Literal(False)
        [diagnostic] = info.diagnostics.of_kind(DiagnosticKind.UNSUPPORTED_DEFAULT)
        assert diagnostic.property == "flag"

    def test_tokens_are_configurable(self):
        config = GeneratorConfig(bool_true_tokens=["on"], bool_false_tokens=["off"])
        assert resolve(PropertyTypeKind.BOOL, DefaultKind.TEXT, "on", config=config) == Literal(True)
        assert resolve(PropertyTypeKind.BOOL, DefaultKind.TEXT, "off", config=config) == Literal(False)
        assert isinstance(
            resolve(PropertyTypeKind.BOOL, DefaultKind.TEXT, "true", config=config), Unsupported
        )

    def test_numeric_bool(self):
        assert resolve(PropertyTypeKind.BOOL, DefaultKind.INTEGER, 0) == Literal(False)
        assert resolve(PropertyTypeKind.BOOL, DefaultKind.INTEGER, 5) == Literal(True)


class TestResolveDefault:
    """Tests for the default conversion matrix."""

    def test_no_default(self):
        assert resolve_default(make_property(PropertyTypeKind.INTEGER, None), GeneratorConfig()) is None

    def test_null(self):
        assert resolve(PropertyTypeKind.STRING, DefaultKind.NULL) == NoValue()
        assert isinstance(
            resolve(PropertyTypeKind.STRING, DefaultKind.NULL, not_null=True), Unsupported
        )

    def test_integer_targets(self):
        assert resolve(PropertyTypeKind.INTEGER, DefaultKind.INTEGER, 3) == Literal(3)
        assert resolve(PropertyTypeKind.INTEGER, DefaultKind.REAL, 2.0) == Literal(2)
        assert isinstance(resolve(PropertyTypeKind.INTEGER, DefaultKind.REAL, 2.5), Unsupported)
        assert resolve(PropertyTypeKind.INTEGER, DefaultKind.TEXT, "-12") == Literal(-12)
        assert isinstance(resolve(PropertyTypeKind.INTEGER, DefaultKind.TEXT, "abc"), Unsupported)

    def test_double_targets(self):
        assert resolve(PropertyTypeKind.DOUBLE, DefaultKind.INTEGER, 3) == Literal(3.0)
        assert resolve(PropertyTypeKind.DOUBLE, DefaultKind.TEXT, "1.5e2") == Literal(150.0)

    def test_string_targets(self):
        assert resolve(PropertyTypeKind.STRING, DefaultKind.TEXT, "x") == Literal("x")
        assert resolve(PropertyTypeKind.STRING, DefaultKind.INTEGER, 7) == Literal("7")
        assert isinstance(resolve(PropertyTypeKind.STRING, DefaultKind.BLOB, b"\x00"), Unsupported)

    def test_blob_targets(self):
        assert resolve(PropertyTypeKind.BYTE_ARRAY, DefaultKind.BLOB, b"\x01") == Literal(b"\x01")
        assert resolve(PropertyTypeKind.BINARY_DATA, DefaultKind.BLOB, b"") == Literal(b"")
        raw = bytes(range(16))
        assert resolve(PropertyTypeKind.UUID, DefaultKind.BLOB, raw) == MakeUUID(
            "00010203-0405-0607-0809-0a0b0c0d0e0f"
        )

    def test_date_targets(self):
        expected = datetime(2024, 1, 2, 3, 4, 5, tzinfo=timezone.utc).timestamp()
        assert resolve(PropertyTypeKind.DATE, DefaultKind.TEXT, "2024-01-02 03:04:05") == MakeDate(expected)
        assert resolve(PropertyTypeKind.DATE, DefaultKind.TEXT, "86400") == MakeDate(86400.0)
        assert resolve(PropertyTypeKind.DATE, DefaultKind.INTEGER, 60) == MakeDate(60.0)
        assert isinstance(resolve(PropertyTypeKind.DATE, DefaultKind.TEXT, "soon"), Unsupported)

    def test_current_time_keywords(self):
        assert resolve(PropertyTypeKind.DATE, DefaultKind.CURRENT_TIMESTAMP) == CurrentTimestamp(
            TimestampForm.INSTANT
        )
        assert resolve(PropertyTypeKind.DOUBLE, DefaultKind.CURRENT_TIMESTAMP) == CurrentTimestamp(
            TimestampForm.EPOCH
        )
        assert resolve(PropertyTypeKind.INTEGER, DefaultKind.CURRENT_TIMESTAMP) == CurrentTimestamp(
            TimestampForm.EPOCH_INT
        )
        assert resolve(PropertyTypeKind.STRING, DefaultKind.CURRENT_DATE) == CurrentTimestamp(
            TimestampForm.FORMATTED, "%Y-%m-%d"
        )
        assert isinstance(resolve(PropertyTypeKind.BOOL, DefaultKind.CURRENT_TIME), Unsupported)

    def test_url_decimal_uuid(self):
        assert resolve(PropertyTypeKind.URL, DefaultKind.TEXT, "https://example.com") == MakeURL(
            "https://example.com"
        )
        assert resolve(PropertyTypeKind.DECIMAL, DefaultKind.TEXT, "9.95") == MakeDecimal("9.95")
        assert isinstance(resolve(PropertyTypeKind.DECIMAL, DefaultKind.TEXT, "lots"), Unsupported)
        text = "12345678-1234-5678-1234-567812345678"
        assert resolve(PropertyTypeKind.UUID, DefaultKind.TEXT, text) == MakeUUID(text)
        assert isinstance(resolve(PropertyTypeKind.UUID, DefaultKind.TEXT, "nope"), Unsupported)

    def test_unsupported_reason(self):
        result = resolve(PropertyTypeKind.URL, DefaultKind.INTEGER, 1)
        assert isinstance(result, Unsupported)
        assert "url" in result.reason


class TestBaselineDefault:
    """Every property type has a baseline."""

    @pytest.mark.parametrize("kind", list(PropertyTypeKind))
    def test_always_defined(self, kind):
        property_type = PropertyType(kind, "Money" if kind == PropertyTypeKind.CUSTOM else None)
        assert baseline_default(property_type) is not None
        assert not isinstance(baseline_default(property_type), NoValue)

    def test_values(self):
        assert baseline_default(PropertyType(PropertyTypeKind.INTEGER)) == Literal(-1)
        assert baseline_default(PropertyType(PropertyTypeKind.STRING)) == Literal("")
        assert baseline_default(PropertyType(PropertyTypeKind.DATE)) == MakeDate(0.0)
        assert baseline_default(PropertyType(PropertyTypeKind.CUSTOM, "Money")) == MakeCustom("Money")


class TestEffectiveDefault:
    def test_resolved_wins(self):
        prop = make_property(PropertyTypeKind.INTEGER, None, not_null=True)
        prop = replace(prop, resolved_default=Literal(5))
        assert effective_default(prop) == Literal(5)

    def test_nullable_is_no_value(self):
        assert effective_default(make_property(PropertyTypeKind.INTEGER, None)) == NoValue()

    def test_not_null_is_baseline(self):
        prop = make_property(PropertyTypeKind.INTEGER, None, not_null=True)
        assert effective_default(prop) == Literal(-1)
