"""Pytest configuration for backend tests.

This file is automatically loaded by pytest and sets up:
1. Loading of .env file for local overrides
2. Logging configuration with third-party library suppression
3. MLflow tracing switched off so no spans are exported
"""

import os
from pathlib import Path

import mlflow
from dotenv import load_dotenv

# tests/conftest.py -> tests -> project_root
_project_root = Path(__file__).resolve().parent.parent

# Load .env file
_env_file = _project_root / ".env"
if _env_file.exists():
    load_dotenv(_env_file)

from consulting_agents.middleware.logging import setup_logging  # noqa: E402

_log_level = os.environ.get("LOG_LEVEL", "INFO").upper()
setup_logging(log_level=_log_level, log_format="text")

mlflow.tracing.disable()
