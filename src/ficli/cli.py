"""Command line entry point: ``fi QUESTION...``."""

from __future__ import annotations

from pathlib import Path

import typer
from loguru import logger

from ficli.agent.core import Agent, RunResult
from ficli.config import Settings, load_settings
from ficli.errors import AgentRunError, ApiKeyNotConfiguredError, ConfigurationError
from ficli.events import EventSink
from ficli.llm import Client, MockClient, OpenAIClient
from ficli.logging_utils import configure_logging
from ficli.render import StdoutRenderer
from ficli.repo import build_repo_context, find_repo_root
from ficli.runs import persist_run
from ficli.tools import build_tools

app = typer.Typer(
    name="fi",
    help="Terminal-native agent that answers questions about a local repository.",
    add_completion=False,
)


def _flag(value: bool) -> bool | None:
    """Unset boolean flags must not override the environment or config file."""
    return True if value else None


def _build_client(settings: Settings) -> Client:
    if settings.mock_llm:
        return MockClient()
    if not settings.api_key:
        raise ApiKeyNotConfiguredError("FI_API_KEY is required (or OPENROUTER_API_KEY / OPENAI_API_KEY)")
    return OpenAIClient(
        settings.api_key,
        base_url=settings.base_url,
        http_referer=settings.http_referer,
        title=settings.title,
    )


def _resolve_log_file(log_file: Path | None, repo_root: Path) -> Path | None:
    if log_file is None:
        return None
    path = log_file.expanduser()
    return path if path.is_absolute() else repo_root / path


@app.command()
def ask(
    question: list[str] = typer.Argument(..., help="Question about the repository"),  # noqa: B008
    model: str | None = typer.Option(None, "--model", help="Model name"),
    max_steps: int | None = typer.Option(None, "--max-steps", help="Maximum model round-trips"),
    repo: Path | None = typer.Option(None, "--repo", help="Repository path"),  # noqa: B008
    timeout: float | None = typer.Option(None, "--timeout", help="Overall run timeout in seconds"),
    unsafe_shell: bool = typer.Option(False, "--unsafe-shell", help="Allow any non-interactive shell command"),
    shell_allow: list[str] | None = typer.Option(None, "--shell-allow", help="Allowed command prefix (repeatable)"),  # noqa: B008
    no_web: bool = typer.Option(False, "--no-web", help="Disable web search"),
    no_plan: bool = typer.Option(False, "--no-plan", help="Skip plan generation"),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Only print the final answer"),
    json_output: bool = typer.Option(False, "--json", help="Print the run result as JSON only"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show tool inputs, previews and debug logs"),
    log_file: Path | None = typer.Option(None, "--log-file", help="Mirror plain-text output to a file"),  # noqa: B008
    history_lines: int | None = typer.Option(None, "--history-lines", help="Shell history lines to include"),
    no_history: bool = typer.Option(False, "--no-history", help="Do not include shell history"),
    persist_runs: bool = typer.Option(False, "--persist-runs", help="Save the run result as JSON"),
) -> None:
    """Answer a question about the repository with cited evidence."""
    try:
        settings = load_settings(
            model=model,
            max_steps=max_steps,
            repo=repo,
            timeout_seconds=timeout,
            unsafe_shell=_flag(unsafe_shell),
            shell_allow=shell_allow or None,
            no_web=_flag(no_web),
            no_plan=_flag(no_plan),
            quiet=_flag(quiet),
            json_output=_flag(json_output),
            verbose=_flag(verbose),
            log_file=log_file,
            history_lines=history_lines,
            no_history=_flag(no_history),
            persist_runs=_flag(persist_runs),
        )
    except ConfigurationError as exc:
        typer.echo(str(exc), err=True)
        raise typer.Exit(1) from exc

    configure_logging(verbose=settings.verbose, profile=settings.log_profile)
    try:
        client = _build_client(settings)
    except ApiKeyNotConfiguredError as exc:
        typer.echo(str(exc), err=True)
        raise typer.Exit(2) from exc

    result, exit_code = _run(" ".join(question), settings, client)
    if settings.persist_runs:
        persist_run(result, settings.runs_path())
    if settings.json_output:
        typer.echo(result.model_dump_json(indent=2))
    raise typer.Exit(exit_code)


def _run(question: str, settings: Settings, client: Client) -> tuple[RunResult, int]:
    repo_root = find_repo_root(settings.repo.expanduser().resolve())
    limits = settings.tool_limits
    context = build_repo_context(
        repo_root,
        context_max_bytes=limits.context_max_bytes,
        max_file_bytes=limits.max_file_bytes,
    )
    registry = build_tools(
        allowlist=settings.allowlist(),
        unsafe_shell=settings.unsafe_shell,
        exa_api_key=None if settings.no_web else settings.exa_api_key,
    )
    logger.debug("tools.registered names={}", registry.names())

    sinks: list[EventSink] = []
    renderer: StdoutRenderer | None = None
    if not settings.json_output:
        try:
            renderer = StdoutRenderer(
                verbose=settings.verbose,
                quiet=settings.quiet,
                no_plan=settings.no_plan,
                log_file=_resolve_log_file(settings.log_file, repo_root),
            )
        except OSError as exc:
            typer.echo(f"cannot open log file: {exc}", err=True)
            raise typer.Exit(1) from exc
        sinks.append(renderer)

    agent = Agent(client, registry, settings, on_event=sinks)
    try:
        return agent.run(question, repo_root=repo_root, repo_context=context.summary()), 0
    except AgentRunError as exc:
        logger.debug("run.error status={} error={}", exc.result.status.value, exc)
        return exc.result, 1
    finally:
        if renderer is not None:
            renderer.close()


def main() -> None:
    app()


if __name__ == "__main__":
    main()
