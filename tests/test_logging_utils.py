from __future__ import annotations

from typing import Any

import pytest
from rich.logging import RichHandler

from ficli import logging_utils
from ficli.logging_utils import configure_logging, resolve_level


@pytest.fixture
def sinks(monkeypatch: pytest.MonkeyPatch) -> list[tuple[Any, dict[str, Any]]]:
    added: list[tuple[Any, dict[str, Any]]] = []
    monkeypatch.setattr(logging_utils, "_CONFIGURED", None)
    monkeypatch.setattr(logging_utils.logger, "remove", lambda *args: None)
    monkeypatch.setattr(logging_utils.logger, "add", lambda sink, **kwargs: added.append((sink, kwargs)))
    return added


def test_resolve_level(monkeypatch: pytest.MonkeyPatch) -> None:
    assert resolve_level() == "WARNING"
    assert resolve_level(verbose=True) == "DEBUG"
    monkeypatch.setenv("FI_LOG_LEVEL", "info")
    assert resolve_level(verbose=True) == "INFO"


def test_rich_profile_installs_rich_handler(sinks: list[tuple[Any, dict[str, Any]]]) -> None:
    configure_logging(profile="rich")
    sink, options = sinks[0]
    assert isinstance(sink, RichHandler)
    assert options["format"] == "{message}"
    assert options["level"] == "WARNING"


def test_configure_is_idempotent_per_profile_and_level(sinks: list[tuple[Any, dict[str, Any]]]) -> None:
    configure_logging()
    configure_logging()
    configure_logging(verbose=True)
    assert len(sinks) == 2
    assert sinks[1][1]["level"] == "DEBUG"
