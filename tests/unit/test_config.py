"""Tests for configuration loading and validation."""

import pytest

from detective.config.loader import (
    CONFIG_DIR,
    _substitute_env_vars,
    _walk_and_substitute,
    load_config,
    load_yaml,
)
from detective.config.models import DatabaseConfig, DecoderConfig, DetectiveConfig
from detective.core.exceptions import ConfigurationError


class TestEnvSubstitution:
    def test_simple_var(self, monkeypatch):
        monkeypatch.setenv("TEST_VAR", "hello")
        assert _substitute_env_vars("${TEST_VAR}") == "hello"

    def test_var_with_default(self):
        assert _substitute_env_vars("${NONEXISTENT_VAR:fallback}") == "fallback"

    def test_empty_default(self):
        assert _substitute_env_vars("${NONEXISTENT_VAR:}") == ""

    def test_unset_without_default_left_alone(self):
        assert _substitute_env_vars("${NONEXISTENT_VAR}") == "${NONEXISTENT_VAR}"

    def test_walk_nested(self, monkeypatch):
        monkeypatch.setenv("DB_HOST", "myserver")
        data = {"db": {"host": "${DB_HOST}", "port": 1433}, "items": ["${DB_HOST}", "static"]}
        result = _walk_and_substitute(data)
        assert result["db"]["host"] == "myserver"
        assert result["items"][0] == "myserver"
        assert result["db"]["port"] == 1433


class TestLoadYaml:
    def test_load_valid_yaml(self, tmp_path):
        yaml_file = tmp_path / "test.yaml"
        yaml_file.write_text("key: value\nnested:\n  a: 1\n")
        result = load_yaml(yaml_file)
        assert result["nested"]["a"] == 1

    def test_load_empty_yaml(self, tmp_path):
        yaml_file = tmp_path / "empty.yaml"
        yaml_file.write_text("")
        assert load_yaml(yaml_file) == {}

    def test_non_mapping_rejected(self, tmp_path):
        yaml_file = tmp_path / "list.yaml"
        yaml_file.write_text("- a\n- b\n")
        with pytest.raises(ConfigurationError, match="must contain a mapping"):
            load_yaml(yaml_file)


class TestLoadConfig:
    def test_missing_file_gives_defaults(self, tmp_path):
        config = load_config(tmp_path / "absent.yaml")
        assert config == DetectiveConfig()

    def test_sections(self, tmp_path, monkeypatch):
        monkeypatch.setenv("WAITS_DB_HOST", "sql01")
        path = tmp_path / "detective.yaml"
        path.write_text(
            "database:\n"
            "  host: ${WAITS_DB_HOST}\n"
            "blocking:\n"
            "  output_format: grouped\n"
            "  min_blocking_seconds: 15\n"
            "thresholds:\n"
            "  blocking_depth_critical: 8\n"
        )
        config = load_config(path)
        assert config.database.host == "sql01"
        assert config.blocking.output_format == "grouped"
        assert config.blocking.min_blocking_seconds == 15
        assert config.thresholds.blocking_depth_critical == 8

    def test_env_var_selects_file(self, tmp_path, monkeypatch):
        path = tmp_path / "other.yaml"
        path.write_text("monitor:\n  poll_interval_seconds: 5\n")
        monkeypatch.setenv("DETECTIVE_CONFIG", str(path))
        assert load_config().monitor.poll_interval_seconds == 5

    def test_invalid_values(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("blocking:\n  output_format: xml\n")
        with pytest.raises(ConfigurationError, match="Invalid configuration"):
            load_config(path)

    def test_shipped_config_loads(self, monkeypatch):
        monkeypatch.delenv("DETECTIVE_MONITOR_ENABLED", raising=False)
        config = load_config(CONFIG_DIR / "detective.yaml")
        assert config.monitor.enabled is False
        assert config.database.port == 1433
        assert config.blocking.system_session_floor == 50


class TestPydanticModels:
    def test_database_config_defaults(self):
        cfg = DatabaseConfig()
        assert cfg.host == "sqlserver"
        assert cfg.port == 1433
        assert cfg.driver == "ODBC Driver 18 for SQL Server"

    def test_decoder_config_defaults(self):
        cfg = DecoderConfig()
        assert cfg.page_info_min_version == 15
        assert cfg.page_info_editions == [1, 2, 3, 4]

    def test_blocking_defaults(self):
        options = DetectiveConfig().blocking
        assert options.output_format == "tree"
        assert options.only_active_blocking is True
        assert options.max_depth == 32767
