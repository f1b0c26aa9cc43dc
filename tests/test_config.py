import pytest

import config
from config import Config


def test_missing_api_key_is_only_a_warning(monkeypatch):
    monkeypatch.setattr(Config, "OPENAI_API_KEY", "")
    warnings = Config.validate_config()
    assert warnings == ["OPENAI_API_KEY is not set; AI calls will fail"]


def test_valid_config_has_no_warnings(monkeypatch):
    monkeypatch.setattr(Config, "OPENAI_API_KEY", "sk-test")
    assert Config.validate_config() == []


@pytest.mark.parametrize("name,value", [
    ("PORT", 0),
    ("OPENAI_TIMEOUT", 0),
    ("SIMULATION_TEMPERATURE", 2.5),
    ("GRADING_TEMPERATURE", -0.1),
])
def test_invalid_values_raise(monkeypatch, name, value):
    monkeypatch.setattr(Config, name, value)
    with pytest.raises(RuntimeError) as excinfo:
        Config.validate_config()
    assert name in str(excinfo.value)


def test_non_numeric_env_value_falls_back_and_is_reported(monkeypatch):
    monkeypatch.setattr(config, "_env_errors", [])
    monkeypatch.setenv("OPENAI_TIMEOUT", "soon")
    assert config._env_float("OPENAI_TIMEOUT", 60) == 60.0

    monkeypatch.setattr(Config, "OPENAI_API_KEY", "sk-test")
    with pytest.raises(RuntimeError) as excinfo:
        Config.validate_config()
    assert "OPENAI_TIMEOUT must be a number, got 'soon'" in str(excinfo.value)


def test_blank_env_value_uses_default(monkeypatch):
    monkeypatch.setattr(config, "_env_errors", [])
    monkeypatch.setenv("PORT", "  ")
    assert config._env_int("PORT", 5000) == 5000
    assert config._env_errors == []


def test_numeric_env_values_are_parsed(monkeypatch):
    monkeypatch.setenv("MAX_SESSIONS", "25")
    monkeypatch.setenv("GRADING_TEMPERATURE", "0.9")
    assert config._env_int("MAX_SESSIONS", 1000) == 25
    assert config._env_float("GRADING_TEMPERATURE", 0.4) == 0.9


@pytest.mark.parametrize("name", ["SESSION_TTL_SECONDS", "MAX_SESSIONS"])
def test_session_limits_must_be_positive(monkeypatch, name):
    monkeypatch.setattr(Config, name, 0)
    with pytest.raises(RuntimeError) as excinfo:
        Config.validate_config()
    assert name in str(excinfo.value)
