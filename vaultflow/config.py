"""
Settings

Environment-driven configuration. Values come from the process environment,
optionally seeded from a ``.env`` file.
"""

import logging
import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DEFAULT_MODEL_NAME = "gemini-2.5-flash"


def configure_logging(level: Optional[str] = None):
    """Apply LOG_LEVEL (or ``level``) to the root logger."""
    log_level = (level or os.getenv("LOG_LEVEL", "INFO")).upper()
    logging.basicConfig(
        level=getattr(logging, log_level, logging.INFO),
        format=LOG_FORMAT,
    )


def _float_env(name: str, default: float) -> float:
    value = os.getenv(name)
    if not value:
        return default
    try:
        return float(value)
    except ValueError:
        raise ValueError(f"{name} must be a number, got '{value}'")


@dataclass
class Settings:
    log_level: str = "INFO"
    vault_dir: str = "."
    history_dir: str = "./.vaultflow_history"
    gemini_api_key: Optional[str] = None
    gemini_model_name: str = DEFAULT_MODEL_NAME
    http_timeout: float = 30.0
    shell_timeout: float = 30.0
    clipboard_command: str = ""

    @classmethod
    def from_env(cls, dotenv: bool = True) -> "Settings":
        """
        Build settings from the environment.

        Args:
            dotenv: Load a ``.env`` file first (existing variables win)
        """
        if dotenv:
            load_dotenv()
        return cls(
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
            vault_dir=os.getenv("VAULTFLOW_VAULT_DIR", "."),
            history_dir=os.getenv("VAULTFLOW_HISTORY_DIR", "./.vaultflow_history"),
            gemini_api_key=os.getenv("GEMINI_API_KEY") or None,
            gemini_model_name=os.getenv("GEMINI_MODEL_NAME", DEFAULT_MODEL_NAME),
            http_timeout=_float_env("VAULTFLOW_HTTP_TIMEOUT", 30.0),
            shell_timeout=_float_env("VAULTFLOW_SHELL_TIMEOUT", 30.0),
            clipboard_command=os.getenv("VAULTFLOW_CLIPBOARD_COMMAND", ""),
        )
