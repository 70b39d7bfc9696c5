"""Regex search over repository files."""

from __future__ import annotations

import fnmatch
import os
import re
import shutil
import subprocess
import time
from pathlib import Path

from loguru import logger
from pydantic import BaseModel, ConfigDict, Field

from ficli.errors import ToolExecutionError, ToolValidationError
from ficli.repo.denylist import is_denylisted, ripgrep_exclude_globs
from ficli.tools.base import Meta, Tool, ToolResult
from ficli.utils.redact import redact_lines
from ficli.utils.truncate import preview, truncate_lines_and_bytes

BINARY_SNIFF_BYTES = 8000
FALLBACK_WARNING = "rg not found; using Python fallback"


class GrepInput(BaseModel):
    """Search for a regex pattern in repository files."""

    model_config = ConfigDict(extra="forbid")

    pattern: str = Field(..., description="Regular expression to search for")
    paths: list[str] = Field(default_factory=list, description="Files or directories relative to the repo root")
    globs: list[str] = Field(default_factory=list, description="Glob filters, e.g. '*.py' or '!tests/**'")
    case_sensitive: bool = Field(default=False, description="Match case exactly")
    max_results: int | None = Field(default=None, ge=1, description="Maximum matching lines to return")


class GrepOutput(BaseModel):
    matches: list[str]
    truncated: bool
    duration_ms: int
    warning: str | None = None


def _escapes(rel: str) -> bool:
    return rel == os.pardir or rel.startswith(os.pardir + os.sep)


def sanitize_paths(paths: list[str], repo_root: Path) -> list[str]:
    """Resolve ``paths`` against ``repo_root`` and drop the unsafe ones.

    A path is dropped when it escapes the root, either lexically or through
    a symlink, or names a denylisted file. ripgrep searches explicitly named
    files regardless of ``--glob`` excludes, so the denylist is applied here.
    Returns paths relative to the root, in input order.
    """
    root = os.path.normpath(str(repo_root))
    real_root = os.path.realpath(root)
    kept: list[str] = []
    for raw in paths:
        if not raw or not raw.strip():
            continue
        candidate = os.path.normpath(raw if os.path.isabs(raw) else os.path.join(root, raw))
        rel = os.path.relpath(candidate, root)
        if _escapes(rel) or _escapes(os.path.relpath(os.path.realpath(candidate), real_root)):
            logger.debug("grep.path.dropped path={}", raw)
            continue
        if is_denylisted(rel):
            logger.debug("grep.path.denied path={}", raw)
            continue
        kept.append(rel)
    return kept


def _matches_any_glob(rel_path: str, globs: list[str]) -> bool:
    include = [glob for glob in globs if glob.strip() and not glob.startswith("!")]
    exclude = [glob[1:] for glob in globs if glob.startswith("!") and len(glob) > 1]
    name = rel_path.rsplit("/", 1)[-1]

    def hit(pattern: str) -> bool:
        flat = pattern.replace("**/", "*").replace("**", "*")
        return fnmatch.fnmatch(rel_path, flat) or fnmatch.fnmatch(name, flat)

    if any(hit(pattern) for pattern in exclude):
        return False
    return not include or any(hit(pattern) for pattern in include)


def _is_binary(head: bytes) -> bool:
    return b"\x00" in head


class GrepTool(Tool[GrepInput]):
    """Pattern search backed by ripgrep, with an in-process fallback."""

    name = "grep"
    description = "Search for a regex pattern in repository files using ripgrep when available."
    input_model = GrepInput

    def __init__(self, rg_path: str | None = None, *, use_ripgrep: bool = True) -> None:
        if rg_path is None and use_ripgrep:
            rg_path = shutil.which("rg")
        self.rg_path = rg_path if use_ripgrep else None

    def run(self, params: GrepInput, meta: Meta) -> ToolResult:
        if not params.pattern.strip():
            raise ToolValidationError("pattern is required")
        max_results = params.max_results or meta.max_results

        start = time.monotonic()
        if self.rg_path:
            matches = self._run_ripgrep(params, meta)
            warning = None
        else:
            # one extra match lets the line budget report whether more exist
            matches = self._run_fallback(params, meta, max_results + 1 if max_results > 0 else 0)
            warning = FALLBACK_WARNING

        lines, truncated, byte_count = truncate_lines_and_bytes(redact_lines(matches), max_results, meta.max_bytes)
        duration_ms = int((time.monotonic() - start) * 1000)
        output = GrepOutput(matches=lines, truncated=truncated, duration_ms=duration_ms, warning=warning)
        return ToolResult(
            tool_name=self.name,
            payload=output.model_dump(exclude_none=True),
            preview=preview("\n".join(lines)),
            line_count=len(lines),
            byte_count=byte_count,
            truncated=truncated,
            duration_ms=duration_ms,
        )

    def _ripgrep_args(self, params: GrepInput, meta: Meta) -> list[str]:
        args = ["--no-heading", "--line-number", "--color", "never"]
        if not params.case_sensitive:
            args.append("--ignore-case")
        for glob in params.globs:
            if glob.strip():
                args.extend(["--glob", glob])
        for deny in ripgrep_exclude_globs():
            args.extend(["--glob", deny])
        args.extend(["-e", params.pattern, "--"])
        args.extend(sanitize_paths(params.paths, meta.repo_root) or ["."])
        return args

    def _run_ripgrep(self, params: GrepInput, meta: Meta) -> list[str]:
        command = [str(self.rg_path), *self._ripgrep_args(params, meta)]
        try:
            completed = subprocess.run(  # noqa: S603
                command,
                cwd=meta.repo_root,
                capture_output=True,
                text=True,
                encoding="utf-8",
                errors="replace",
                timeout=meta.timeout_seconds or None,
                check=False,
            )
        except subprocess.TimeoutExpired as exc:
            raise ToolExecutionError(f"rg timed out after {meta.timeout_seconds:g}s") from exc
        except OSError as exc:
            raise ToolExecutionError(f"rg failed to start: {exc}") from exc

        if completed.returncode == 1:
            return []
        if completed.returncode != 0:
            raise ToolExecutionError(f"rg failed: exit status {completed.returncode}: {completed.stderr.strip()}")
        return [line for line in completed.stdout.splitlines() if line]

    def _run_fallback(self, params: GrepInput, meta: Meta, limit: int) -> list[str]:
        flags = 0 if params.case_sensitive else re.IGNORECASE
        try:
            regex = re.compile(params.pattern, flags)
        except re.error as exc:
            raise ToolValidationError(f"invalid pattern: {exc}") from exc

        root = Path(meta.repo_root)
        started = time.monotonic()
        roots = [root / rel for rel in sanitize_paths(params.paths, root)] or [root]
        matches: list[str] = []

        def timed_out() -> bool:
            return bool(meta.timeout_seconds) and time.monotonic() - started > meta.timeout_seconds

        for base in roots:
            for path in self._walk(base):
                if timed_out():
                    raise ToolExecutionError(f"search timed out after {meta.timeout_seconds:g}s")
                rel = path.relative_to(root).as_posix()
                if is_denylisted(rel):
                    continue
                if params.globs and not _matches_any_glob(rel, params.globs):
                    continue
                if self._scan_file(path, rel, regex, matches, limit):
                    return matches
        return matches

    @staticmethod
    def _walk(base: Path):
        if base.is_file():
            yield base
            return
        for dirpath, dirnames, filenames in os.walk(base):
            dirnames[:] = sorted(name for name in dirnames if not name.startswith("."))
            for filename in sorted(filenames):
                path = Path(dirpath) / filename
                # symlinks are not followed, matching ripgrep
                if path.is_symlink():
                    continue
                yield path

    @staticmethod
    def _scan_file(path: Path, rel: str, regex: re.Pattern[str], matches: list[str], max_results: int) -> bool:
        """Append matching lines; return True once ``max_results`` is reached."""
        try:
            with path.open("rb") as handle:
                if _is_binary(handle.read(BINARY_SNIFF_BYTES)):
                    return False
                handle.seek(0)
                for lineno, raw in enumerate(handle, start=1):
                    line = raw.decode("utf-8", errors="replace").rstrip("\r\n")
                    if regex.search(line):
                        matches.append(f"{rel}:{lineno}:{line}")
                        if max_results > 0 and len(matches) >= max_results:
                            return True
        except OSError:
            return False
        return False
