"""Runtime logging helpers."""

from __future__ import annotations

import os
import sys
from logging import Handler
from typing import Literal

from loguru import logger
from rich.console import Console
from rich.logging import RichHandler

LogProfile = Literal["default", "rich"]

_PROFILE_FORMATS: dict[LogProfile, str] = {
    "rich": "{message}",
    "default": "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level:<7} | {name}:{function}:{line} | {message}",
}
_CONFIGURED: tuple[LogProfile, str] | None = None


def _build_rich_handler() -> Handler:
    return RichHandler(
        console=Console(stderr=True),
        show_level=True,
        show_time=False,
        show_path=False,
        markup=False,
        rich_tracebacks=False,
    )


def resolve_level(*, verbose: bool = False) -> str:
    """``FI_LOG_LEVEL`` wins; otherwise DEBUG when verbose and WARNING by default."""
    explicit = os.getenv("FI_LOG_LEVEL")
    if explicit:
        return explicit.upper()
    return "DEBUG" if verbose else "WARNING"


def configure_logging(*, verbose: bool = False, profile: LogProfile = "default") -> None:
    """Configure process-level logging once per profile and level.

    Logs always go to stderr so stdout stays clean for answers and JSON.
    """
    global _CONFIGURED
    level = resolve_level(verbose=verbose)
    if _CONFIGURED == (profile, level):
        return

    logger.remove()
    if profile == "rich":
        logger.add(
            _build_rich_handler(),
            level=level,
            format=_PROFILE_FORMATS[profile],
            backtrace=False,
            diagnose=False,
        )
    else:
        logger.add(
            sys.stderr,
            level=level,
            format=_PROFILE_FORMATS[profile],
            backtrace=False,
            diagnose=False,
        )
    _CONFIGURED = (profile, level)
