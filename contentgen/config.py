"""Process configuration for the content generation layer.

Values come from the environment; a `.env` file at the working directory is
loaded once at import without overriding variables that are already set.
"""
from __future__ import annotations
import logging
import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

from .errors import ErrorKind, GenerationError

load_dotenv(override=False)

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.openai.com/v1"
DEFAULT_MODEL = "gpt-4"
DEFAULT_MAX_TOKENS = 3000
DEFAULT_TEMPERATURE = 0.7
DEFAULT_RETRY_BUDGET = 2
DEFAULT_ATTEMPT_TIMEOUT_S = 30.0

PLACEHOLDER_KEYS = ("your-openai-api-key-here",)

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


@dataclass(frozen=True)
class Settings:
    api_key: Optional[str] = None
    base_url: str = DEFAULT_BASE_URL
    model: str = DEFAULT_MODEL
    max_tokens: int = DEFAULT_MAX_TOKENS
    temperature: float = DEFAULT_TEMPERATURE
    retry_budget: int = DEFAULT_RETRY_BUDGET
    attempt_timeout_s: float = DEFAULT_ATTEMPT_TIMEOUT_S
    usage_log_path: Optional[str] = None
    log_level: str = "INFO"


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning("Ignoring malformed %s=%r, using %s", name, raw, default)
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning("Ignoring malformed %s=%r, using %s", name, raw, default)
        return default


def get_settings() -> Settings:
    retry_budget = _env_int("GENERATION_RETRY_BUDGET", DEFAULT_RETRY_BUDGET)
    if retry_budget < 0:
        logger.warning("GENERATION_RETRY_BUDGET must be >= 0, using %s", DEFAULT_RETRY_BUDGET)
        retry_budget = DEFAULT_RETRY_BUDGET
    return Settings(
        api_key=os.getenv("OPENAI_API_KEY"),
        base_url=(os.getenv("OPENAI_BASE_URL") or DEFAULT_BASE_URL).rstrip("/"),
        model=os.getenv("OPENAI_MODEL") or DEFAULT_MODEL,
        max_tokens=_env_int("OPENAI_MAX_TOKENS", DEFAULT_MAX_TOKENS),
        temperature=_env_float("OPENAI_TEMPERATURE", DEFAULT_TEMPERATURE),
        retry_budget=retry_budget,
        attempt_timeout_s=_env_float("GENERATION_ATTEMPT_TIMEOUT_S", DEFAULT_ATTEMPT_TIMEOUT_S),
        usage_log_path=os.getenv("USAGE_LOG_PATH") or None,
        log_level=(os.getenv("LOG_LEVEL") or "INFO").upper(),
    )


def api_key_configured(settings: Settings) -> bool:
    key = (settings.api_key or "").strip()
    return bool(key) and key not in PLACEHOLDER_KEYS


def require_api_key(settings: Settings) -> str:
    if not api_key_configured(settings):
        raise GenerationError(
            ErrorKind.CONFIGURATION,
            "API key not configured. Please set OPENAI_API_KEY in your environment.",
        )
    return (settings.api_key or "").strip()


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(level=getattr(logging, level.upper(), logging.INFO), format=LOG_FORMAT)
