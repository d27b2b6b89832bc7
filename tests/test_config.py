"""Tests for config schema and loader."""

import json

import pytest

from sqlgate.config.loader import (
    apply_env_overrides,
    load_config,
    parse_bool,
    save_config,
)
from sqlgate.config.schema import Config, DatabaseConfig, SecurityConfig, ToolsConfig


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    for name in ("DB_ALLOW_MODIFICATIONS", "DB_ALLOW_STORED_PROCEDURES"):
        monkeypatch.delenv(name, raising=False)


class TestDatabaseConfig:
    def test_defaults(self):
        cfg = DatabaseConfig()
        assert cfg.type == "sqlite"
        assert cfg.host == "localhost"
        assert cfg.port is None
        assert cfg.database == ""

    def test_postgresql_type(self):
        cfg = DatabaseConfig(type="postgresql", host="pg.local", port=5432)
        assert cfg.type == "postgresql"
        assert cfg.port == 5432

    def test_invalid_type_rejected(self):
        with pytest.raises(Exception):
            DatabaseConfig(type="oracle")


class TestSecurityConfig:
    def test_defaults(self):
        cfg = SecurityConfig()
        assert cfg.allow_modifications is False
        assert cfg.allow_stored_procedures is False
        assert cfg.token_ttl_seconds == 300
        assert cfg.large_impact_threshold == 1000
        assert cfg.read_procedure_prefixes == ["Get", "Select", "Search", "Find", "List", "View"]
        assert cfg.audit_enabled is True
        assert cfg.audit_log_path == ""

    def test_ttl_must_be_positive(self):
        with pytest.raises(Exception):
            SecurityConfig(token_ttl_seconds=0)

    def test_threshold_non_negative(self):
        with pytest.raises(Exception):
            SecurityConfig(large_impact_threshold=-1)

    def test_prefix_lists_are_independent(self):
        a, b = SecurityConfig(), SecurityConfig()
        a.read_procedure_prefixes.append("Report")
        assert "Report" not in b.read_procedure_prefixes


class TestToolsConfig:
    def test_defaults(self):
        assert ToolsConfig().max_rows == 100

    def test_max_rows_minimum(self):
        with pytest.raises(Exception):
            ToolsConfig(max_rows=0)


class TestConfig:
    def test_defaults(self):
        cfg = Config()
        assert cfg.database.type == "sqlite"
        assert cfg.security.allow_modifications is False
        assert cfg.tools.max_rows == 100

    def test_nested_env(self, monkeypatch):
        monkeypatch.setenv("SQLGATE_SECURITY__ALLOW_MODIFICATIONS", "true")
        monkeypatch.setenv("SQLGATE_DATABASE__TYPE", "mysql")
        cfg = Config()
        assert cfg.security.allow_modifications is True
        assert cfg.database.type == "mysql"


class TestParseBool:
    @pytest.mark.parametrize("value", ["true", "TRUE", "yes", "1", "on", " True "])
    def test_truthy(self, value):
        assert parse_bool(value) is True

    @pytest.mark.parametrize("value", ["false", "no", "0", "off", "maybe"])
    def test_falsy(self, value):
        assert parse_bool(value, default=True) is False

    def test_unset_uses_default(self):
        assert parse_bool(None) is False
        assert parse_bool("", default=True) is True


class TestEnvOverrides:
    def test_enables_flags(self, monkeypatch):
        monkeypatch.setenv("DB_ALLOW_MODIFICATIONS", "true")
        monkeypatch.setenv("DB_ALLOW_STORED_PROCEDURES", "1")
        cfg = apply_env_overrides(Config())
        assert cfg.security.allow_modifications is True
        assert cfg.security.allow_stored_procedures is True

    def test_disables_configured_flag(self, monkeypatch):
        monkeypatch.setenv("DB_ALLOW_MODIFICATIONS", "false")
        cfg = Config(security=SecurityConfig(allow_modifications=True))
        assert apply_env_overrides(cfg).security.allow_modifications is False

    def test_unset_keeps_file_value(self):
        cfg = Config(security=SecurityConfig(allow_stored_procedures=True))
        assert apply_env_overrides(cfg).security.allow_stored_procedures is True


class TestLoader:
    def test_missing_file_gives_defaults(self, tmp_path):
        cfg = load_config(tmp_path / "missing.json")
        assert cfg.security.allow_modifications is False

    def test_round_trip(self, tmp_path):
        path = tmp_path / "config.json"
        cfg = Config()
        cfg.database.type = "postgresql"
        cfg.security.token_ttl_seconds = 60
        save_config(cfg, path)
        loaded = load_config(path)
        assert loaded.database.type == "postgresql"
        assert loaded.security.token_ttl_seconds == 60

    def test_save_creates_parent(self, tmp_path):
        path = tmp_path / "a" / "b" / "config.json"
        save_config(Config(), path)
        data = json.loads(path.read_text(encoding="utf-8"))
        assert data["security"]["allow_modifications"] is False

    def test_partial_file(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text(json.dumps({"security": {"allow_modifications": True}}))
        cfg = load_config(path)
        assert cfg.security.allow_modifications is True
        assert cfg.security.token_ttl_seconds == 300

    def test_invalid_json_falls_back(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text("{not json")
        assert load_config(path).database.type == "sqlite"

    def test_invalid_values_fall_back(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text(json.dumps({"tools": {"max_rows": 0}}))
        assert load_config(path).tools.max_rows == 100

    def test_env_override_applied_on_load(self, tmp_path, monkeypatch):
        path = tmp_path / "config.json"
        save_config(Config(), path)
        monkeypatch.setenv("DB_ALLOW_MODIFICATIONS", "yes")
        assert load_config(path).security.allow_modifications is True
