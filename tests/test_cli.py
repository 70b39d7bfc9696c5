from __future__ import annotations

import json
import stat
from pathlib import Path

import pytest
from typer.testing import CliRunner

from ficli.cli import app
from ficli.llm.mock import MOCK_ANSWER


@pytest.fixture
def runner(monkeypatch: pytest.MonkeyPatch) -> CliRunner:
    monkeypatch.setenv("FI_LOG_LEVEL", "CRITICAL")
    return CliRunner()


def test_json_run_with_mock_client(runner: CliRunner, repo: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("FI_MOCK_LLM", "1")
    result = runner.invoke(app, ["--json", "--no-history", "--repo", str(repo / "src"), "what", "is", "this?"])

    assert result.exit_code == 0, result.output
    data = json.loads(result.stdout)
    assert data["status"] == "success"
    assert data["question"] == "what is this?"
    assert data["repo_root"] == str(repo.resolve())
    assert data["final_answer"] == MOCK_ANSWER
    assert data["steps_used"] == 2
    assert [call["tool_name"] for call in data["tool_calls"]] == ["grep"]
    assert data["events"][0]["type"] == "run.started"
    assert data["events"][-1]["type"] == "run.finished"


def test_plain_output_streams_final_answer(runner: CliRunner, repo: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("FI_MOCK_LLM", "1")
    result = runner.invoke(app, ["--no-history", "--repo", str(repo), "where?"])

    assert result.exit_code == 0, result.output
    assert "Plan:" in result.stdout
    assert "Tool: grep (started)" in result.stdout
    assert "Final Answer:" in result.stdout
    assert MOCK_ANSWER in result.stdout


def test_quiet_prints_only_the_answer(runner: CliRunner, repo: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("FI_MOCK_LLM", "1")
    result = runner.invoke(app, ["-q", "--no-history", "--repo", str(repo), "where?"])

    assert result.exit_code == 0, result.output
    assert "Final Answer:" not in result.stdout
    assert "Tool:" not in result.stdout
    assert result.stdout.strip() == MOCK_ANSWER


def test_log_file_mirrors_output(runner: CliRunner, repo: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("FI_MOCK_LLM", "1")
    result = runner.invoke(app, ["--no-history", "--repo", str(repo), "--log-file", "run.log", "where?"])

    assert result.exit_code == 0, result.output
    logged = (repo / "run.log").read_text(encoding="utf-8")
    assert "Final Answer:" in logged
    assert MOCK_ANSWER in logged


def test_missing_api_key_exits_2(runner: CliRunner, repo: Path) -> None:
    result = runner.invoke(app, ["--json", "--repo", str(repo), "hello"])
    assert result.exit_code == 2


def test_invalid_configuration_exits_1(runner: CliRunner, repo: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("FI_MAX_STEPS", "lots")
    result = runner.invoke(app, ["--repo", str(repo), "hello"])
    assert result.exit_code == 1


def test_partial_run_exits_1_with_result(runner: CliRunner, repo: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("FI_MOCK_LLM", "1")
    result = runner.invoke(
        app, ["--json", "--no-plan", "--no-history", "--max-steps", "1", "--repo", str(repo), "where?"]
    )

    assert result.exit_code == 1
    data = json.loads(result.stdout)
    assert data["status"] == "partial"
    assert data["error"] == "max steps reached"
    assert "max steps" in data["final_answer"].lower()


def test_persist_runs_writes_owner_only_file(
    runner: CliRunner, repo: Path, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    runs_dir = tmp_path / "runs"
    monkeypatch.setenv("FI_MOCK_LLM", "1")
    monkeypatch.setenv("FI_RUNS_DIR", str(runs_dir))
    result = runner.invoke(app, ["--json", "--no-history", "--persist-runs", "--repo", str(repo), "where?"])

    assert result.exit_code == 0, result.output
    run_id = json.loads(result.stdout)["run_id"]
    saved = runs_dir / f"{run_id}.json"
    assert json.loads(saved.read_text(encoding="utf-8"))["run_id"] == run_id
    assert stat.S_IMODE(saved.stat().st_mode) == 0o600
