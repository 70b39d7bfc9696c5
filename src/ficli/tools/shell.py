"""Restricted command execution for model-chosen shell commands.

Commands are split with :func:`split_command` and executed from that exact
argument vector; no shell ever sees the raw string.
"""

from __future__ import annotations

import os
import re
import subprocess
import time
from collections.abc import Iterable
from dataclasses import dataclass, field
from pathlib import Path

from loguru import logger
from pydantic import BaseModel, ConfigDict, Field

from ficli.errors import ToolExecutionError, ToolValidationError
from ficli.tools.base import Meta, Tool, ToolResult
from ficli.tools.tokenizer import split_command
from ficli.utils.redact import redact_secrets
from ficli.utils.truncate import byte_len, preview, truncate_bytes

INTERACTIVE_COMMANDS = frozenset(
    {"vim", "vi", "nvim", "nano", "emacs", "less", "more", "man", "top", "htop", "ssh", "sftp", "telnet"}
)
NETWORK_COMMANDS = frozenset({"curl", "wget", "ssh", "scp", "sftp", "rsync", "ftp", "nc", "netcat", "ncat", "telnet"})
DESTRUCTIVE_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"(?i)\brm\b[^|;&]*\s(-[a-z]*r[a-z]*|--recursive)\b"),
    re.compile(r"(?i)\bmkfs(\.\w+)?\b"),
    re.compile(r"(?i)\bdd\b[^|;&]*\bof=/dev/"),
    re.compile(r"(?i)>\s*/dev/(sd|hd|nvme|disk|mmcblk)"),
    re.compile(r"(?i)\b(shutdown|reboot|halt|poweroff)\b"),
    re.compile(r"(?i)\bkill\s+-9\b"),
    re.compile(r":\(\)\s*\{"),
    re.compile(r"(?i)\bchmod\s+(-[a-z]*R[a-z]*|--recursive)\s+0?777\s+/"),
    re.compile(r"(>|>>)\s*/(etc|bin|usr|var|lib|sbin|boot|System|Library)\b"),
)
DEFAULT_PATH = "/usr/local/bin:/usr/bin:/bin"


@dataclass(frozen=True)
class Allowlist:
    """Ordered command prefixes a command must start with to be permitted."""

    entries: tuple[tuple[str, ...], ...] = ()

    @classmethod
    def from_strings(cls, prefixes: Iterable[str]) -> Allowlist:
        entries: list[tuple[str, ...]] = []
        for prefix in prefixes:
            tokens = tuple(split_command(prefix))
            if tokens and tokens not in entries:
                entries.append(tokens)
        return cls(entries=tuple(entries))

    def __bool__(self) -> bool:
        return bool(self.entries)

    def permits(self, tokens: list[str]) -> bool:
        folded = [token.casefold() for token in tokens]
        for entry in self.entries:
            if len(entry) > len(folded):
                continue
            if all(expected.casefold() == actual for expected, actual in zip(entry, folded, strict=False)):
                return True
        return False

    def describe(self) -> list[str]:
        return [" ".join(entry) for entry in self.entries]


@dataclass(frozen=True)
class CommandPolicy:
    """Fixed interactive, network and destructive-command rules."""

    interactive: frozenset[str] = INTERACTIVE_COMMANDS
    network: frozenset[str] = NETWORK_COMMANDS
    destructive: tuple[re.Pattern[str], ...] = field(default=DESTRUCTIVE_PATTERNS)

    def validate(self, command: str, tokens: list[str], allowlist: Allowlist, *, unsafe: bool) -> None:
        """Raise :class:`ToolValidationError` if the command may not run."""
        if not tokens:
            raise ToolValidationError("command is required")
        name = os.path.basename(tokens[0]).lower()

        if name in self.interactive:
            raise ToolValidationError(f"interactive commands are not allowed: {tokens[0]}")
        if unsafe:
            return

        if not allowlist:
            raise ToolValidationError("shell is disabled: no allowlisted commands are configured")
        if not allowlist.permits(tokens):
            raise ToolValidationError(f"command not allowlisted: {' '.join(tokens[:2])}")
        if name in self.network:
            raise ToolValidationError(f"network commands are blocked by default: {tokens[0]}")
        # Check the argv that will run as well as the raw text; quoting can hide flags.
        joined = " ".join(tokens)
        for pattern in self.destructive:
            if pattern.search(command) or pattern.search(joined):
                raise ToolValidationError("blocked potentially destructive command")


DEFAULT_POLICY = CommandPolicy()


class ShellInput(BaseModel):
    """Run an allowlisted command in the repository."""

    model_config = ConfigDict(extra="forbid")

    command: str = Field(..., description="Command line to run; it is not passed through a shell")
    cwd: str | None = Field(default=None, description="Working directory relative to the repo root")


class ShellOutput(BaseModel):
    stdout: str
    stderr: str
    exit_code: int
    duration_ms: int
    truncated: bool


def resolve_cwd(repo_root: Path, cwd: str) -> Path:
    root = os.path.normpath(str(repo_root))
    candidate = cwd if os.path.isabs(cwd) else os.path.join(root, cwd)
    resolved = os.path.normpath(candidate)
    rel = os.path.relpath(resolved, root)
    if rel == os.pardir or rel.startswith(os.pardir + os.sep):
        raise ToolValidationError("cwd must stay within repo root")
    return Path(resolved)


def minimal_env() -> dict[str, str]:
    """Environment for child processes; nothing secret is inherited."""
    return {
        "PATH": os.environ.get("PATH") or DEFAULT_PATH,
        "HOME": os.environ.get("HOME", "/"),
        "LANG": "C.UTF-8",
        "LC_ALL": "C.UTF-8",
        "GIT_TERMINAL_PROMPT": "0",
        "PAGER": "cat",
        "GIT_PAGER": "cat",
    }


class ShellTool(Tool[ShellInput]):
    """Allowlisted command runner with a hard timeout."""

    name = "shell"
    description = "Run a safe local shell command with allowlist and timeouts."
    input_model = ShellInput

    def __init__(self, allowlist: Allowlist | None = None, policy: CommandPolicy = DEFAULT_POLICY) -> None:
        self.allowlist = allowlist or Allowlist()
        self.policy = policy

    def run(self, params: ShellInput, meta: Meta) -> ToolResult:
        if not params.command.strip():
            raise ToolValidationError("command is required")
        tokens = split_command(params.command)
        self.policy.validate(params.command, tokens, self.allowlist, unsafe=meta.unsafe_shell)

        cwd = Path(meta.repo_root)
        if params.cwd and params.cwd.strip():
            cwd = resolve_cwd(meta.repo_root, params.cwd)

        start = time.monotonic()
        try:
            completed = subprocess.run(  # noqa: S603
                tokens,
                cwd=cwd,
                env=minimal_env(),
                stdin=subprocess.DEVNULL,
                capture_output=True,
                text=True,
                encoding="utf-8",
                errors="replace",
                timeout=meta.timeout_seconds or None,
                check=False,
            )
        except subprocess.TimeoutExpired as exc:
            raise ToolExecutionError(f"command timed out after {meta.timeout_seconds:g}s") from exc
        except OSError as exc:
            raise ToolExecutionError(f"failed to start command: {exc}") from exc
        duration_ms = int((time.monotonic() - start) * 1000)

        stdout, stdout_cut = truncate_bytes(redact_secrets(completed.stdout or ""), meta.max_bytes)
        stderr, stderr_cut = truncate_bytes(redact_secrets(completed.stderr or ""), meta.max_bytes)
        truncated = stdout_cut or stderr_cut
        if completed.returncode != 0:
            logger.debug("shell.exit name={} code={}", tokens[0], completed.returncode)

        output = ShellOutput(
            stdout=stdout,
            stderr=stderr,
            exit_code=completed.returncode,
            duration_ms=duration_ms,
            truncated=truncated,
        )
        shown = preview(f"{stdout}\n{stderr}".strip())
        return ToolResult(
            tool_name=self.name,
            payload=output.model_dump(),
            preview=shown,
            line_count=shown.count("\n") + 1 if shown else 0,
            byte_count=byte_len(stdout) + byte_len(stderr),
            truncated=truncated,
            duration_ms=duration_ms,
        )
