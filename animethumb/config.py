"""Environment-driven configuration and logging setup."""
from __future__ import annotations

import logging
import os
import pathlib
from dataclasses import dataclass
from typing import Mapping, Optional

API_URL = "https://openrouter.ai/api/v1/chat/completions"
DEFAULT_MODEL = "google/gemini-3-pro-image-preview"
DEFAULT_TIMEOUT = 60.0
DEFAULT_LOG_LEVEL = "INFO"
DEFAULT_ENV_FILE = ".env"

API_KEY_ENV = "OPENROUTER_API_KEY"
MODEL_ENV = "ANIMETHUMB_MODEL"
TIMEOUT_ENV = "ANIMETHUMB_TIMEOUT"
LOG_LEVEL_ENV = "ANIMETHUMB_LOG_LEVEL"
ENV_FILE_ENV = "ANIMETHUMB_ENV_FILE"

LOG_LEVEL_NAMES = {
    "CRITICAL",
    "ERROR",
    "WARNING",
    "INFO",
    "DEBUG",
}

logger = logging.getLogger("animethumb.config")


def normalize_log_level(value: str) -> str:
    """Normalize user-provided log level strings."""

    upper_value = value.strip().upper()
    if upper_value == "WARN":
        upper_value = "WARNING"
    if upper_value not in LOG_LEVEL_NAMES:
        valid = ", ".join(sorted(LOG_LEVEL_NAMES))
        raise ValueError(f"Invalid log level '{value}'. Choose one of: {valid}")
    return upper_value


def configure_logging(level_name: str) -> None:
    """Configure root logging once based on the requested level."""

    level = getattr(logging, level_name, logging.INFO)
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(threadName)s %(name)s: %(message)s",
    )


def load_env_file(path: pathlib.Path) -> None:
    """Load environment variables from a .env style file if it exists.

    Variables already present in the environment are left untouched.
    """

    if not path.exists():
        return

    for line in path.read_text().splitlines():
        stripped = line.strip()
        if not stripped or stripped.startswith("#"):
            continue
        if "=" not in stripped:
            continue
        key, value = stripped.split("=", 1)
        key = key.strip()
        value = value.strip().strip("\"'")
        os.environ.setdefault(key, value)


@dataclass(frozen=True)
class Settings:
    """Runtime settings read from the environment."""

    api_key: Optional[str]
    model: str = DEFAULT_MODEL
    api_url: str = API_URL
    timeout: float = DEFAULT_TIMEOUT
    log_level: str = DEFAULT_LOG_LEVEL

    @property
    def has_credentials(self) -> bool:
        return bool(self.api_key)


def _parse_timeout(raw: Optional[str]) -> float:
    if raw is None or not raw.strip():
        return DEFAULT_TIMEOUT
    try:
        timeout = float(raw)
    except ValueError:
        logger.warning("Ignoring invalid %s=%r; using %.0fs", TIMEOUT_ENV, raw, DEFAULT_TIMEOUT)
        return DEFAULT_TIMEOUT
    if timeout <= 0:
        logger.warning("Ignoring non-positive %s=%r; using %.0fs", TIMEOUT_ENV, raw, DEFAULT_TIMEOUT)
        return DEFAULT_TIMEOUT
    return timeout


def load_settings(environ: Optional[Mapping[str, str]] = None) -> Settings:
    """Build settings from ``environ`` (defaults to ``os.environ``).

    A missing API key is not an error here; the session reports it when the
    user tries to generate. Invalid optional values fall back to defaults.
    """

    env = os.environ if environ is None else environ
    api_key = (env.get(API_KEY_ENV) or "").strip() or None
    model = (env.get(MODEL_ENV) or "").strip() or DEFAULT_MODEL
    raw_level = env.get(LOG_LEVEL_ENV) or DEFAULT_LOG_LEVEL
    try:
        log_level = normalize_log_level(raw_level)
    except ValueError as exc:
        logger.warning("%s; using %s", exc, DEFAULT_LOG_LEVEL)
        log_level = DEFAULT_LOG_LEVEL
    return Settings(
        api_key=api_key,
        model=model,
        timeout=_parse_timeout(env.get(TIMEOUT_ENV)),
        log_level=log_level,
    )
