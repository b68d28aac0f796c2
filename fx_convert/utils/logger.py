"""Logging utilities for the fx_convert package."""

from __future__ import annotations

import logging
import os
from typing import Optional

LOG_LEVEL_ENV = "FX_LOG_LEVEL"
LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

_ROOT: Optional[logging.Logger] = None


def _level_from_env(default: int = logging.INFO) -> int:
    raw = os.environ.get(LOG_LEVEL_ENV, "").strip().upper()
    if not raw:
        return default
    level = logging.getLevelName(raw)
    return level if isinstance(level, int) else default


def get_logger(name: str = "fx_convert") -> logging.Logger:
    """Return a named logger, configuring the ``fx_convert`` root once.

    The level comes from ``FX_LOG_LEVEL`` (default ``INFO``).
    """
    global _ROOT
    if _ROOT is None:
        logging.basicConfig(level=_level_from_env(), format=LOG_FORMAT)
        _ROOT = logging.getLogger("fx_convert")
    return logging.getLogger(name)


def set_log_level(level: int | str) -> None:
    """Change the level of every ``fx_convert`` logger at runtime."""

    if isinstance(level, str):
        resolved = logging.getLevelName(level.upper())
        if not isinstance(resolved, int):
            raise ValueError(f"Unknown log level: {level!r}")
        level = resolved
    get_logger().setLevel(level)


__all__ = ["LOG_LEVEL_ENV", "get_logger", "set_log_level"]
