"""Environment-driven configuration for the triage engine and its entry points."""
import logging
import os
from pathlib import Path

PACKAGE_DATA_DIR = Path(__file__).resolve().parent / "data"
DEFAULT_OUTPUT_DIR = "outputs/conversations"

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
_SUPPORTED_LOG_LEVELS = ("debug", "info", "warning", "error", "critical")


def _normalize_choice(env_name: str, supported: tuple, default: str) -> str:
    raw = os.environ.get(env_name, default).strip().lower()
    if raw in supported:
        return raw
    supported_values = ", ".join(supported)
    raise ValueError(
        f"Unsupported {env_name} value '{raw}'. Supported values: {supported_values}."
    )


def get_data_dir() -> Path:
    """Directory holding conditions.json, questions.json and ruleset.json."""
    override = os.environ.get("TRIAGE_DATA_DIR", "").strip()
    return Path(override) if override else PACKAGE_DATA_DIR


def get_output_dir() -> Path:
    """Directory where per-turn conversation files are written."""
    override = os.environ.get("TRIAGE_OUTPUT_DIR", "").strip()
    return Path(override or DEFAULT_OUTPUT_DIR)


def get_log_level() -> int:
    level_name = _normalize_choice("TRIAGE_LOG_LEVEL", _SUPPORTED_LOG_LEVELS, "info")
    return getattr(logging, level_name.upper())


def configure_logging() -> None:
    """Configure root logging for an entry point (app.py, main.py)."""
    logging.basicConfig(level=get_log_level(), format=LOG_FORMAT)
