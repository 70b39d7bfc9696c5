from __future__ import annotations

import os
from pathlib import Path
from typing import Any

import pytest

from ficli.config import Settings

_ENV_KEYS = ("OPENROUTER_API_KEY", "OPENAI_API_KEY", "EXA_API_KEY", "HISTFILE")


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch: pytest.MonkeyPatch, tmp_path_factory: pytest.TempPathFactory) -> None:
    for key in list(os.environ):
        if key.startswith("FI_") or key in _ENV_KEYS:
            monkeypatch.delenv(key, raising=False)
    config_home = tmp_path_factory.mktemp("xdg")
    monkeypatch.setenv("XDG_CONFIG_HOME", str(config_home))
    monkeypatch.chdir(tmp_path_factory.mktemp("cwd"))


@pytest.fixture
def repo(tmp_path: Path) -> Path:
    root = tmp_path / "repo"
    (root / ".git").mkdir(parents=True)
    (root / "src").mkdir()
    (root / "README.md").write_text("# Demo\n\nRun `make test` to test.\n", encoding="utf-8")
    (root / "notes.txt").write_text("FICLI_MARKER lives here\nnothing else\n", encoding="utf-8")
    (root / "src" / "app.py").write_text("import os\n\nMARKER = 'ficli_marker'\n", encoding="utf-8")
    (root / ".env").write_text("API_KEY=FICLI_MARKER_SECRET\n", encoding="utf-8")
    return root


def make_settings(**overrides: Any) -> Settings:
    values: dict[str, Any] = {"model": "test-model", "no_history": True, "json_output": True}
    values.update(overrides)
    return Settings(_env_file=None, **values)
