# File: tests/test_config_loader.py

"""
Unit tests for configuration loading and logging setup (`atmos/config_loader.py`).

Each test passes its own tmp_path file to `load_config` so the LRU cache never
returns another test's result.
"""

import logging
import os

import pytest

from atmos import config_loader
from atmos.config_loader import get_setting, load_config, load_environment, setup_logging
from atmos.exceptions import ConfigError, ConfigFileNotFoundError


def test_load_config_reads_yaml(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text("gemini:\n  model: test-model\n", encoding="utf-8")
    assert load_config(str(path)) == {"gemini": {"model": "test-model"}}


def test_load_config_missing_file(tmp_path):
    with pytest.raises(ConfigFileNotFoundError) as excinfo:
        load_config(str(tmp_path / "missing.yaml"))
    assert "Configuration file not found" in str(excinfo.value)
    assert isinstance(excinfo.value, FileNotFoundError)


def test_load_config_invalid_yaml(tmp_path):
    path = tmp_path / "broken.yaml"
    path.write_text("gemini: [unclosed\n", encoding="utf-8")
    with pytest.raises(ConfigError) as excinfo:
        load_config(str(path))
    assert "Error parsing YAML" in str(excinfo.value)


def test_load_config_empty_file(tmp_path):
    path = tmp_path / "empty.yaml"
    path.write_text("", encoding="utf-8")
    assert load_config(str(path)) == {}


def test_load_config_rejects_non_mapping(tmp_path):
    path = tmp_path / "list.yaml"
    path.write_text("- a\n- b\n", encoding="utf-8")
    with pytest.raises(ConfigError):
        load_config(str(path))


def test_project_config_has_expected_sections():
    config = config_loader.get_config()
    for section in ("logging", "gemini", "cache", "autocomplete", "recent_searches", "app"):
        assert section in config


def test_get_setting(monkeypatch):
    monkeypatch.setattr(config_loader, 'CONFIG', {"cache": {"ttl_minutes": 5, "persist_path": None}, "app": None})
    assert get_setting("cache", "ttl_minutes") == 5
    assert get_setting("cache", "persist_path", "fallback") == "fallback"
    assert get_setting("cache", "missing", 7) == 7
    assert get_setting("app", "port", 8050) == 8050
    assert get_setting("nope", "key") is None


def test_setup_logging_configures_console_handler():
    root = logging.getLogger()
    saved_handlers, saved_level = root.handlers[:], root.level
    try:
        setup_logging({"logging": {"level": "DEBUG", "log_console_level": "WARNING", "log_to_file": False}})
        assert len(root.handlers) == 1
        assert root.handlers[0].level == logging.WARNING
        assert root.level == logging.DEBUG
    finally:
        for handler in root.handlers[:]:
            root.removeHandler(handler)
        for handler in saved_handlers:
            root.addHandler(handler)
        root.setLevel(saved_level)


def test_load_environment(tmp_path, monkeypatch):
    monkeypatch.delenv("ATMOS_TEST_SECRET", raising=False)
    assert load_environment(str(tmp_path / "missing.env")) is False

    env_file = tmp_path / ".env"
    env_file.write_text("ATMOS_TEST_SECRET=shh\n", encoding="utf-8")
    assert load_environment(str(env_file)) is True
    assert os.environ["ATMOS_TEST_SECRET"] == "shh"
    monkeypatch.delenv("ATMOS_TEST_SECRET")
