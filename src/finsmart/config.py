"""Configuration management for the budgeting dashboard.

Values come from environment variables so deployments can supply the
advice API key without it ever reaching the persisted state.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from .storage import DEFAULT_DATA_FILE

DEFAULT_ADVICE_MODEL = "gpt-4o-mini"
DEFAULT_ADVICE_TEMPERATURE = 0.4
DEFAULT_LOG_LEVEL = "WARNING"


@dataclass(frozen=True)
class Settings:
    data_file: Path
    api_key: Optional[str]
    advice_model: str = DEFAULT_ADVICE_MODEL
    advice_temperature: float = DEFAULT_ADVICE_TEMPERATURE
    log_level: str = DEFAULT_LOG_LEVEL

    @property
    def log_level_number(self) -> int:
        level = logging.getLevelName(self.log_level.upper())
        return level if isinstance(level, int) else logging.WARNING


def _float_from_env(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def load_settings(data_file: str | Path | None = None) -> Settings:
    """Read settings from the environment; ``data_file`` overrides the env path."""
    path = data_file or os.getenv("FINSMART_DATA_FILE") or DEFAULT_DATA_FILE
    return Settings(
        data_file=Path(path),
        api_key=os.getenv("OPENAI_API_KEY") or None,
        advice_model=os.getenv("FINSMART_ADVICE_MODEL") or DEFAULT_ADVICE_MODEL,
        advice_temperature=_float_from_env(
            "FINSMART_ADVICE_TEMPERATURE", DEFAULT_ADVICE_TEMPERATURE
        ),
        log_level=os.getenv("FINSMART_LOG_LEVEL") or DEFAULT_LOG_LEVEL,
    )
