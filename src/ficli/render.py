"""Plain-text terminal rendering of run events."""

from __future__ import annotations

import threading
from pathlib import Path
from typing import IO

from rich.console import Console

from ficli.events import (
    BaseEvent,
    FinalAnswerReady,
    ModelDelta,
    PlanGenerated,
    RunError,
    RunStarted,
    ToolCallFinished,
    ToolCallStarted,
)


class StdoutRenderer:
    """Event sink that prints progress and the answer using Rich."""

    def __init__(
        self,
        console: Console | None = None,
        *,
        verbose: bool = False,
        quiet: bool = False,
        no_plan: bool = False,
        log_file: Path | None = None,
    ) -> None:
        self.console: Console = console or Console(highlight=False, soft_wrap=True)
        self.verbose = verbose
        self.quiet = quiet
        self.no_plan = no_plan
        self._log_handle: IO[str] | None = None
        self._log_console: Console | None = None
        if log_file is not None:
            self._log_handle = log_file.open("w", encoding="utf-8")
            self._log_console = Console(file=self._log_handle, no_color=True, highlight=False, soft_wrap=True)
        self._print_lock = threading.Lock()
        self._printed_final_header = False
        self._streamed: list[str] = []
        self._ended_with_newline = False

    def __call__(self, event: BaseEvent) -> None:
        with self._print_lock:
            self._render(event)

    def close(self) -> None:
        if self._log_handle is not None:
            self._log_handle.close()
            self._log_handle = None
            self._log_console = None

    def _render(self, event: BaseEvent) -> None:
        if isinstance(event, RunStarted):
            if self.quiet:
                return
            self._print(
                f"fi v{event.version} | repo: {event.repo_root} | model: {event.model} | run: {event.run_id}",
                style="bold",
            )
            self._print(f"Started: {event.started_at.isoformat(timespec='seconds')}", style="dim")
        elif isinstance(event, PlanGenerated):
            if self.quiet or self.no_plan:
                return
            self._print("\nPlan:", style="bold")
            for item in event.plan:
                self._print(f"- {item}")
        elif isinstance(event, ToolCallStarted):
            if self.quiet:
                return
            self._print(f"\nTool: {event.tool_name} (started)", style="cyan")
            if self.verbose:
                self._print(f"Input: {event.input}", style="dim")
        elif isinstance(event, ToolCallFinished):
            if self.quiet:
                return
            style = "green" if event.status == "success" else "red"
            self._print(
                f"Tool: {event.tool_name} ({event.status}, {event.duration_ms}ms, lines={event.line_count}, "
                f"bytes={event.byte_count}, truncated={event.truncated})",
                style=style,
            )
            if self.verbose and event.preview:
                self._print("Preview:", style="dim")
                for line in event.preview.split("\n"):
                    self._print(f"  {line}", style="dim")
        elif isinstance(event, ModelDelta):
            self._final_header()
            if event.delta:
                self._print(event.delta, end="")
                self._streamed.append(event.delta)
                self._ended_with_newline = event.delta.endswith("\n")
        elif isinstance(event, FinalAnswerReady):
            if self._streamed:
                if not self._ended_with_newline:
                    self._print("")
                # an interrupted stream leaves only a fragment on screen
                if not event.answer.endswith("".join(self._streamed).strip()):
                    self._print(event.answer)
                return
            self._final_header()
            self._print(event.answer)
        elif isinstance(event, RunError):
            self._print(f"\nError: {event.message}", style="bold red")

    def _final_header(self) -> None:
        if self._printed_final_header:
            return
        if not self.quiet:
            self._print("\nFinal Answer:", style="bold")
        self._printed_final_header = True

    def _print(self, text: str, *, style: str | None = None, end: str = "\n") -> None:
        self.console.print(text, style=style, end=end, markup=False)
        if self._log_console is not None:
            self._log_console.print(text, end=end, markup=False)
