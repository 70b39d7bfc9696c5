"""Repository summary injected into the prompt as one opaque text blob."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path

from loguru import logger

from ficli.repo.denylist import is_denylisted
from ficli.utils.redact import redact_secrets
from ficli.utils.truncate import truncate_bytes

KEY_FILES = (
    "package.json",
    "pnpm-lock.yaml",
    "yarn.lock",
    "package-lock.json",
    "go.mod",
    "pyproject.toml",
    "requirements.txt",
    "setup.py",
    "Dockerfile",
    "docker-compose.yml",
    "Makefile",
    "README.md",
    ".env.example",
    "tsconfig.json",
)
FRAMEWORK_DIRS = ("app", "pages", "src", "server", "api")
PACKAGE_JSON_KEYS = (
    "name",
    "private",
    "packageManager",
    "scripts",
    "dependencies",
    "devDependencies",
    "peerDependencies",
)

# file name -> number of leading lines to keep (0 keeps the byte-limited file)
_SNIPPET_LINES: dict[str, int] = {
    "README.md": 80,
    "pyproject.toml": 80,
    "requirements.txt": 40,
    "pnpm-lock.yaml": 40,
    "yarn.lock": 40,
    "package-lock.json": 40,
    "go.mod": 80,
    "Dockerfile": 80,
    "docker-compose.yml": 80,
    "Makefile": 80,
    "tsconfig.json": 0,
}
DEFAULT_MAX_FILE_BYTES = 32 * 1024


@dataclass
class FileSnippet:
    path: str
    snippet: str
    truncated: bool = False


@dataclass
class RepoContext:
    """Summary of repository layout and key files."""

    repo_root: Path
    top_level: list[str] = field(default_factory=list)
    key_files: dict[str, bool] = field(default_factory=dict)
    framework_indicators: dict[str, bool] = field(default_factory=dict)
    snippets: list[FileSnippet] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    byte_count: int = 0
    context_max_bytes: int = 0

    def add_snippet(self, path: Path, raw: str) -> None:
        if not raw:
            return
        try:
            rel = path.relative_to(self.repo_root).as_posix()
        except ValueError:
            rel = path.name
        text = redact_secrets(raw)
        truncated = False
        if self.context_max_bytes > 0:
            remaining = self.context_max_bytes - self.byte_count
            if remaining <= 0:
                return
            text, truncated = truncate_bytes(text, remaining)
            self.byte_count += len(text.encode("utf-8"))
        self.snippets.append(FileSnippet(path=rel, snippet=text, truncated=truncated))

    def summary(self) -> str:
        lines = [f"Repo root: {self.repo_root}"]
        if self.top_level:
            lines.append("Top-level entries:")
            lines.extend(f"- {entry}" for entry in self.top_level)
        if self.key_files:
            lines.append("Key files:")
            lines.extend(f"- {name}: {str(found).lower()}" for name, found in sorted(self.key_files.items()))
        if self.framework_indicators:
            lines.append("Framework indicators:")
            lines.extend(
                f"- {name}: {str(found).lower()}" for name, found in sorted(self.framework_indicators.items())
            )
        if self.snippets:
            lines.append("Snippets:")
            for snippet in self.snippets:
                marker = " (truncated)" if snippet.truncated else ""
                lines.append(f"--- {snippet.path}{marker} ---")
                lines.append(snippet.snippet)
        if self.warnings:
            lines.append("Warnings:")
            lines.extend(f"- {warning}" for warning in self.warnings)
        return "\n".join(lines) + "\n"


def read_file_limited(path: Path, max_bytes: int) -> str:
    if is_denylisted(path):
        return ""
    limit = max_bytes if max_bytes > 0 else DEFAULT_MAX_FILE_BYTES
    try:
        with path.open("rb") as handle:
            data = handle.read(limit)
    except OSError:
        return ""
    return data.decode("utf-8", errors="replace")


def read_first_lines(path: Path, max_lines: int, max_bytes: int) -> str:
    if is_denylisted(path):
        return ""
    kept: list[str] = []
    size = 0
    try:
        with path.open(encoding="utf-8", errors="replace") as handle:
            for raw in handle:
                line = raw.rstrip("\n")
                if max_lines > 0 and len(kept) >= max_lines:
                    break
                if max_bytes > 0 and size + len(line) > max_bytes:
                    break
                kept.append(line)
                size += len(line)
    except OSError:
        return ""
    return "\n".join(kept)


def extract_package_json(path: Path, max_bytes: int) -> str:
    content = read_file_limited(path, max_bytes)
    if not content:
        return ""
    try:
        data = json.loads(content)
    except json.JSONDecodeError:
        return content
    if not isinstance(data, dict):
        return content
    filtered = {key: data[key] for key in PACKAGE_JSON_KEYS if key in data}
    return json.dumps(filtered, indent=2)


def build_repo_context(repo_root: Path, *, context_max_bytes: int = 0, max_file_bytes: int = 0) -> RepoContext:
    """Collect top-level layout, key-file presence and redacted snippets."""
    root = Path(repo_root)
    ctx = RepoContext(repo_root=root, context_max_bytes=context_max_bytes)

    try:
        ctx.top_level = sorted(entry.name for entry in root.iterdir())
    except OSError as exc:
        logger.warning("repo.context.list_failed root={} error={}", root, exc)

    for name in KEY_FILES:
        ctx.key_files[name] = (root / name).is_file()
    for name in FRAMEWORK_DIRS:
        ctx.framework_indicators[f"{name}/"] = (root / name).is_dir()

    next_configs = sorted(root.glob("next.config.*"))
    ctx.key_files["next.config.*"] = bool(next_configs)
    for match in next_configs:
        ctx.add_snippet(match, read_file_limited(match, max_file_bytes))

    if ctx.key_files["package.json"]:
        path = root / "package.json"
        ctx.add_snippet(path, extract_package_json(path, max_file_bytes))

    for name, max_lines in _SNIPPET_LINES.items():
        if not ctx.key_files.get(name):
            continue
        path = root / name
        if max_lines:
            ctx.add_snippet(path, read_first_lines(path, max_lines, max_file_bytes))
        else:
            ctx.add_snippet(path, read_file_limited(path, max_file_bytes))

    if ctx.key_files[".env.example"]:
        ctx.warnings.append("Detected .env.example but contents are redacted by denylist policy.")

    return ctx
