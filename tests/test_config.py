import json
import logging

import pytest

from tabletop_engine.config import (
    ENV_CRIT_THRESHOLD, ENV_HOOK_ERROR_MODE, ENV_SETTINGS_PATH, EngineSettings, HookErrorMode,
    ROOT_LOGGER_NAME, configure_logging, load_settings
)
from tabletop_engine.exceptions import ConfigurationError


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in (ENV_SETTINGS_PATH, ENV_HOOK_ERROR_MODE, ENV_CRIT_THRESHOLD):
        monkeypatch.delenv(name, raising=False)


def test_defaults():
    settings = EngineSettings()
    assert settings.default_crit_threshold == 7
    assert (settings.success_min, settings.success_max) == (4, 6)
    assert settings.auto_success_result == 999
    assert settings.hook_error_mode == HookErrorMode.LENIENT


def test_load_settings_from_file(tmp_path):
    path = tmp_path / "settings.json"
    path.write_text(json.dumps({"default_crit_threshold": 5, "hook_error_mode": "strict"}))
    settings = load_settings(str(path), use_env=False)
    assert settings.default_crit_threshold == 5
    assert settings.hook_error_mode == HookErrorMode.STRICT


def test_missing_file_falls_back_to_defaults(tmp_path, caplog):
    settings = load_settings(str(tmp_path / "absent.json"), use_env=False)
    assert settings == EngineSettings()
    assert "not found" in caplog.text


def test_bad_json_raises(tmp_path):
    path = tmp_path / "settings.json"
    path.write_text("{not json")
    with pytest.raises(ConfigurationError):
        load_settings(str(path), use_env=False)


def test_non_object_json_raises(tmp_path):
    path = tmp_path / "settings.json"
    path.write_text("[1, 2]")
    with pytest.raises(ConfigurationError):
        load_settings(str(path), use_env=False)


def test_invalid_values_raise(tmp_path):
    path = tmp_path / "settings.json"
    path.write_text(json.dumps({"hook_error_mode": "explode"}))
    with pytest.raises(ConfigurationError):
        load_settings(str(path), use_env=False)


def test_environment_overrides_file(tmp_path, monkeypatch):
    path = tmp_path / "settings.json"
    path.write_text(json.dumps({"default_crit_threshold": 5}))
    monkeypatch.setenv(ENV_SETTINGS_PATH, str(path))
    monkeypatch.setenv(ENV_CRIT_THRESHOLD, "6")
    monkeypatch.setenv(ENV_HOOK_ERROR_MODE, "STRICT")

    settings = load_settings()
    assert settings.default_crit_threshold == 6
    assert settings.hook_error_mode == HookErrorMode.STRICT


def test_non_integer_environment_value(monkeypatch):
    monkeypatch.setenv(ENV_CRIT_THRESHOLD, "high")
    with pytest.raises(ConfigurationError):
        load_settings()


def test_configure_logging_is_idempotent():
    configure_logging("DEBUG")
    configure_logging("WARNING")
    package_logger = logging.getLogger(ROOT_LOGGER_NAME)
    marked = [h for h in package_logger.handlers if getattr(h, "_tabletop_handler", False)]
    assert len(marked) == 1
    assert package_logger.level == logging.WARNING
