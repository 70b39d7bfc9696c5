from __future__ import annotations

from pathlib import Path

import pytest

from ficli.config import (
    DEFAULT_MAX_STEPS,
    DEFAULT_TIMEOUT_SECONDS,
    Settings,
    ToolLimits,
    config_file_path,
    load_settings,
)
from ficli.errors import ConfigurationError


def test_defaults() -> None:
    settings = Settings(_env_file=None)
    assert settings.model == "openrouter/auto"
    assert settings.max_steps == DEFAULT_MAX_STEPS
    assert settings.shell_allow == []
    assert not settings.allowlist()
    assert settings.tool_limits.grep_max_results == 200
    assert settings.api_key is None


def test_env_overrides_defaults(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("FI_MODEL", "env-model")
    monkeypatch.setenv("FI_MAX_STEPS", "3")
    monkeypatch.setenv("FI_TOOL_LIMITS__GREP_MAX_BYTES", "1234")
    settings = Settings(_env_file=None)
    assert settings.model == "env-model"
    assert settings.max_steps == 3
    assert settings.tool_limits.grep_max_bytes == 1234


def test_explicit_overrides_win_and_none_falls_through(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("FI_MODEL", "env-model")
    monkeypatch.setenv("FI_MAX_STEPS", "4")
    settings = load_settings(model="flag-model", max_steps=None)
    assert settings.model == "flag-model"
    assert settings.max_steps == 4


def test_shell_allow_splits_commas(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("FI_SHELL_ALLOW", "git status, ls ,,make test")
    settings = Settings(_env_file=None)
    assert settings.shell_allow == ["git status", "ls", "make test"]
    assert settings.allowlist().describe() == ["git status", "ls", "make test"]


def test_non_positive_values_fall_back_to_defaults() -> None:
    settings = Settings(_env_file=None, max_steps=0, timeout_seconds=-1, history_lines=-5)
    assert settings.max_steps == DEFAULT_MAX_STEPS
    assert settings.timeout_seconds == DEFAULT_TIMEOUT_SECONDS
    assert settings.history_lines == 0

    limits = ToolLimits(grep_max_results=0, shell_max_bytes=-1, web_max_bytes=10)
    assert limits.grep_max_results == 200
    assert limits.shell_max_bytes == 20 * 1024
    assert limits.web_max_bytes == 10


def test_quiet_implies_no_plan() -> None:
    assert Settings(_env_file=None, quiet=True).no_plan is True
    assert Settings(_env_file=None).no_plan is False


@pytest.mark.parametrize("variable", ["FI_API_KEY", "OPENROUTER_API_KEY", "OPENAI_API_KEY"])
def test_api_key_aliases(monkeypatch: pytest.MonkeyPatch, variable: str) -> None:
    monkeypatch.setenv(variable, "sk-test")
    assert Settings(_env_file=None).api_key == "sk-test"


def test_exa_key_from_plain_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("EXA_API_KEY", "exa-test")
    assert Settings(_env_file=None).exa_api_key == "exa-test"


def test_dotenv_file_is_read(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.chdir(tmp_path)
    (tmp_path / ".env").write_text("FI_MODEL=dotenv-model\n", encoding="utf-8")
    assert Settings().model == "dotenv-model"


def test_yaml_config_file_has_lowest_precedence(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    config = tmp_path / "fi.yaml"
    config.write_text("model: file-model\nmax_steps: 5\nshell_allow: [ls, git log]\n", encoding="utf-8")
    monkeypatch.setenv("FI_CONFIG_FILE", str(config))
    monkeypatch.setenv("FI_MAX_STEPS", "2")

    assert config_file_path() == config
    settings = Settings(_env_file=None)
    assert settings.model == "file-model"
    assert settings.max_steps == 2
    assert settings.shell_allow == ["ls", "git log"]


def test_config_file_discovered_under_xdg(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path))
    assert config_file_path() is None
    (tmp_path / "fi").mkdir()
    (tmp_path / "fi" / "config.yml").write_text("no_web: true\n", encoding="utf-8")
    assert config_file_path() == tmp_path / "fi" / "config.yml"
    assert Settings(_env_file=None).no_web is True


def test_invalid_values_raise_configuration_error(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("FI_MAX_STEPS", "many")
    with pytest.raises(ConfigurationError, match="invalid configuration"):
        load_settings()


def test_runs_path(tmp_path: Path) -> None:
    assert Settings(_env_file=None, runs_dir=tmp_path).runs_path() == tmp_path
    assert Settings(_env_file=None).runs_path().parts[-3:] == ("share", "fi", "runs")


def test_log_profile_from_env(monkeypatch: pytest.MonkeyPatch) -> None:
    assert Settings(_env_file=None).log_profile == "default"
    monkeypatch.setenv("FI_LOG_PROFILE", "rich")
    assert Settings(_env_file=None).log_profile == "rich"
    monkeypatch.setenv("FI_LOG_PROFILE", "fancy")
    with pytest.raises(ConfigurationError):
        load_settings()
