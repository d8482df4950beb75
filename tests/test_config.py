# tests/test_config.py
import pytest
from audition.core.config import Settings, EnvironmentType, get_settings

def test_settings_defaults():
    """Test default settings values."""
    settings = Settings()
    assert settings.APP_NAME == "Audition Platform"
    assert settings.ENVIRONMENT == EnvironmentType.DEVELOPMENT
    assert settings.DEBUG is True
    assert settings.HOST == "0.0.0.0"
    assert settings.PORT == 4000
    assert settings.API_PREFIX == "/api"

def test_audition_timing_defaults():
    """Test the audition clock defaults."""
    settings = Settings()
    assert settings.GLOBAL_TIME_LIMIT_SECONDS == 1800
    assert settings.DEFAULT_HARD_LIMIT_SECONDS == 90
    assert settings.OVERTIME_WARNING_SECONDS == 30
    assert settings.AUTO_START_RECORDING is True
    assert settings.ALLOW_NO_DEVICE is False

def test_settings_environment_override(test_env_vars):
    """Test environment variable overrides."""
    settings = Settings()
    assert settings.APP_NAME == "Audition Test"
    assert settings.ENVIRONMENT == EnvironmentType.TESTING

def test_timing_override(monkeypatch):
    monkeypatch.setenv("GLOBAL_TIME_LIMIT_SECONDS", "600")
    monkeypatch.setenv("ALLOW_NO_DEVICE", "true")
    settings = Settings()
    assert settings.GLOBAL_TIME_LIMIT_SECONDS == 600
    assert settings.ALLOW_NO_DEVICE is True

def test_get_settings_is_cached():
    assert get_settings() is get_settings()
