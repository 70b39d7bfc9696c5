from __future__ import annotations

import json
from pathlib import Path

import pytest

from ficli.repo import build_repo_context, find_repo_root, is_denylisted
from ficli.repo.denylist import ripgrep_exclude_globs
from ficli.utils.history import load_shell_history, normalize_history_line


def test_find_repo_root_walks_up(repo: Path) -> None:
    assert find_repo_root(repo / "src") == repo
    assert find_repo_root(repo / "src" / "app.py") == repo


def test_find_repo_root_falls_back_to_start(tmp_path: Path) -> None:
    plain = tmp_path / "plain"
    plain.mkdir()
    assert find_repo_root(plain) == plain


@pytest.mark.parametrize(
    "path",
    [".env", ".env.local", "config/server.pem", "keys/id_rsa.pub", "home/.aws/credentials", ".npmrc", "cert.P12"],
)
def test_denylisted_paths(path: str) -> None:
    assert is_denylisted(path)


@pytest.mark.parametrize("path", ["README.md", "src/env.py", "docs/keys.md", "aws/credentials.md"])
def test_ordinary_paths_are_allowed(path: str) -> None:
    assert not is_denylisted(path)


def test_ripgrep_globs_are_negated() -> None:
    globs = ripgrep_exclude_globs()
    assert "!.env*" in globs
    assert all(glob.startswith("!") for glob in globs)


def test_context_summary_lists_layout_and_snippets(repo: Path) -> None:
    (repo / "Makefile").write_text("test:\n\tpytest\n", encoding="utf-8")
    summary = build_repo_context(repo).summary()

    assert summary.startswith(f"Repo root: {repo}\n")
    assert "- README.md: true" in summary
    assert "- go.mod: false" in summary
    assert "- src/: true" in summary
    assert "--- Makefile ---" in summary
    assert "Run `make test` to test." in summary
    assert "FICLI_MARKER_SECRET" not in summary


def test_context_extracts_package_json_fields(repo: Path) -> None:
    package = {"name": "demo", "scripts": {"test": "vitest"}, "description": "drop me", "version": "1.0.0"}
    (repo / "package.json").write_text(json.dumps(package), encoding="utf-8")
    ctx = build_repo_context(repo)
    snippet = next(item for item in ctx.snippets if item.path == "package.json")
    assert json.loads(snippet.snippet) == {"name": "demo", "scripts": {"test": "vitest"}}


def test_context_redacts_snippets_and_warns_on_env_example(repo: Path) -> None:
    (repo / "README.md").write_text("export API_KEY=abc123\n", encoding="utf-8")
    (repo / ".env.example").write_text("API_KEY=\n", encoding="utf-8")
    ctx = build_repo_context(repo)
    summary = ctx.summary()
    assert "abc123" not in summary
    assert "API_KEY=[REDACTED]" in summary
    assert "--- .env.example" not in summary
    assert any(".env.example" in warning for warning in ctx.warnings)


def test_context_respects_byte_budget(repo: Path) -> None:
    (repo / "README.md").write_text("x" * 500, encoding="utf-8")
    (repo / "Makefile").write_text("y" * 500, encoding="utf-8")
    ctx = build_repo_context(repo, context_max_bytes=600)
    assert ctx.byte_count <= 600
    assert any(snippet.truncated for snippet in ctx.snippets)


def test_normalize_history_line_formats() -> None:
    assert normalize_history_line(": 1680000000:0;git status") == "git status"
    assert normalize_history_line("- cmd: make test") == "make test"
    assert normalize_history_line("when: 1680000000") == ""
    assert normalize_history_line("ls -la") == "ls -la"


def test_load_shell_history_keeps_last_lines_redacted(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    history = tmp_path / "history"
    history.write_text(
        "- cmd: ls\n  when: 1\n- cmd: export TOKEN=abc\n  when: 2\n- cmd: make test\n  when: 3\n",
        encoding="utf-8",
    )
    monkeypatch.setenv("HISTFILE", str(history))
    assert load_shell_history(2) == ["export TOKEN=[REDACTED]", "make test"]
    assert load_shell_history(0) == []


def test_missing_history_file_is_empty(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("HISTFILE", str(tmp_path / "missing"))
    assert load_shell_history(10) == []
