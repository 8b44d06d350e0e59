"""Tests for environment settings."""

import logging

import pytest
from unittest.mock import patch

from vaultflow.config import DEFAULT_MODEL_NAME, Settings, configure_logging


@pytest.fixture
def clean_env(monkeypatch):
    for name in (
        "LOG_LEVEL", "VAULTFLOW_VAULT_DIR", "VAULTFLOW_HISTORY_DIR", "GEMINI_API_KEY",
        "GEMINI_MODEL_NAME", "VAULTFLOW_HTTP_TIMEOUT", "VAULTFLOW_SHELL_TIMEOUT", "VAULTFLOW_CLIPBOARD_COMMAND",
    ):
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


def test_defaults(clean_env):
    settings = Settings.from_env(dotenv=False)
    assert settings.log_level == "INFO"
    assert settings.gemini_api_key is None
    assert settings.gemini_model_name == DEFAULT_MODEL_NAME
    assert settings.http_timeout == 30.0
    assert settings.clipboard_command == ""


def test_values_from_environment(clean_env):
    clean_env.setenv("LOG_LEVEL", "debug")
    clean_env.setenv("VAULTFLOW_VAULT_DIR", "/vault")
    clean_env.setenv("GEMINI_API_KEY", "key")
    clean_env.setenv("VAULTFLOW_SHELL_TIMEOUT", "5")
    clean_env.setenv("VAULTFLOW_CLIPBOARD_COMMAND", "pbcopy")
    settings = Settings.from_env(dotenv=False)
    assert settings.log_level == "DEBUG"
    assert settings.vault_dir == "/vault"
    assert settings.gemini_api_key == "key"
    assert settings.shell_timeout == 5.0
    assert settings.clipboard_command == "pbcopy"


def test_invalid_timeout(clean_env):
    clean_env.setenv("VAULTFLOW_HTTP_TIMEOUT", "soon")
    with pytest.raises(ValueError, match="VAULTFLOW_HTTP_TIMEOUT"):
        Settings.from_env(dotenv=False)


def test_dotenv_loaded_only_when_requested(clean_env):
    with patch("vaultflow.config.load_dotenv") as mock_load:
        Settings.from_env()
        Settings.from_env(dotenv=False)
    mock_load.assert_called_once_with()


def test_configure_logging_level(clean_env):
    with patch("vaultflow.config.logging.basicConfig") as mock_config:
        configure_logging("warning")
    assert mock_config.call_args.kwargs["level"] == logging.WARNING


def test_configure_logging_from_env(clean_env):
    clean_env.setenv("LOG_LEVEL", "debug")
    with patch("vaultflow.config.logging.basicConfig") as mock_config:
        configure_logging()
    assert mock_config.call_args.kwargs["level"] == logging.DEBUG
