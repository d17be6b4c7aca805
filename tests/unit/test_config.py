"""Tests for supervisor configuration loading."""

import os
from pathlib import Path

import pytest
from pydantic import ValidationError

from procguard.core.config import SupervisorConfig, load_config


class TestSupervisorConfig:
    def test_defaults(self):
        config = SupervisorConfig()

        assert config.default_timeout == 60.0
        assert config.default_grace_period is None
        assert config.event_channel_capacity == 2
        assert config.stream_channel_capacity == 512
        assert config.poll_interval == 0.1
        assert config.log_level == "INFO"

    def test_env_prefix_overrides(self, monkeypatch):
        monkeypatch.setenv("PROCGUARD_DEFAULT_TIMEOUT", "5")
        monkeypatch.setenv("PROCGUARD_DEFAULT_GRACE_PERIOD", "1.5")

        config = SupervisorConfig()

        assert config.default_timeout == 5.0
        assert config.default_grace_period == 1.5

    def test_log_level_is_normalized(self):
        assert SupervisorConfig(log_level="debug").log_level == "DEBUG"

    @pytest.mark.parametrize(
        "field,value",
        [
            ("event_channel_capacity", 0),
            ("stream_channel_capacity", -1),
            ("stream_limit", 0),
            ("poll_interval", 0),
            ("default_timeout", -5),
            ("default_grace_period", -1),
            ("log_level", "LOUD"),
        ],
    )
    def test_invalid_values_are_rejected(self, field, value):
        with pytest.raises(ValidationError):
            SupervisorConfig(**{field: value})

    def test_zero_grace_period_is_allowed(self):
        assert SupervisorConfig(default_grace_period=0).default_grace_period == 0


class TestLoadConfig:
    def test_missing_file_falls_back_to_defaults(self, tmp_path: Path):
        config = load_config(tmp_path / "absent.yaml")

        assert config == SupervisorConfig()

    def test_values_from_yaml(self, tmp_path: Path):
        path = tmp_path / "procguard.yaml"
        path.write_text("default_timeout: 12\ndefault_grace_period: 2\nstream_limit: 4096\n")

        config = load_config(path)

        assert config.default_timeout == 12.0
        assert config.default_grace_period == 2.0
        assert config.stream_limit == 4096

    def test_env_var_references_are_expanded(self, tmp_path: Path, monkeypatch):
        monkeypatch.setenv("PG_TEST_ENCODING", "latin-1")
        path = tmp_path / "procguard.yaml"
        path.write_text("encoding: ${PG_TEST_ENCODING}\n")

        assert load_config(path).encoding == "latin-1"

    def test_embedded_env_var_reference(self, tmp_path: Path, monkeypatch):
        monkeypatch.setenv("PG_TEST_CODEC", "utf")
        path = tmp_path / "procguard.yaml"
        path.write_text('encoding: "${PG_TEST_CODEC}-8"\n')

        assert load_config(path).encoding == "utf-8"

    def test_env_var_feeds_numeric_field(self, tmp_path: Path, monkeypatch):
        monkeypatch.setenv("PG_TEST_TIMEOUT", "7.5")
        path = tmp_path / "procguard.yaml"
        path.write_text("default_timeout: ${PG_TEST_TIMEOUT}\n")

        assert load_config(path).default_timeout == 7.5

    def test_changed_file_is_reloaded(self, tmp_path: Path):
        path = tmp_path / "procguard.yaml"
        path.write_text("default_timeout: 3\n")
        first = load_config(path)

        path.write_text("default_timeout: 4\n")
        stat = path.stat()
        os.utime(path, (stat.st_atime, stat.st_mtime + 10))

        assert first.default_timeout == 3.0
        assert load_config(path).default_timeout == 4.0

    def test_unset_env_var_is_kept_literally(self, tmp_path: Path, monkeypatch):
        monkeypatch.delenv("PG_TEST_UNSET", raising=False)
        path = tmp_path / "procguard.yaml"
        path.write_text("encoding: ${PG_TEST_UNSET}\n")

        assert load_config(path).encoding == "${PG_TEST_UNSET}"

    def test_empty_file_gives_defaults(self, tmp_path: Path):
        path = tmp_path / "procguard.yaml"
        path.write_text("")

        assert load_config(path) == SupervisorConfig()

    def test_non_mapping_is_rejected(self, tmp_path: Path):
        path = tmp_path / "procguard.yaml"
        path.write_text("- just\n- a list\n")

        with pytest.raises(ValueError):
            load_config(path)

    def test_unchanged_file_is_cached(self, tmp_path: Path):
        path = tmp_path / "procguard.yaml"
        path.write_text("default_timeout: 3\n")

        assert load_config(path) is load_config(path)

    def test_invalid_yaml_value_raises(self, tmp_path: Path):
        path = tmp_path / "procguard.yaml"
        path.write_text("event_channel_capacity: 0\n")

        with pytest.raises(ValidationError):
            load_config(path)
