"""Run log persistence."""

from __future__ import annotations

import os
from pathlib import Path

from loguru import logger

from ficli.agent.core import RunResult


def persist_run(result: RunResult, runs_dir: Path) -> Path | None:
    """Write ``result`` to ``<runs_dir>/<run_id>.json`` readable only by the owner.

    Failures are logged and reported as ``None``; they never fail the run.
    """
    path = runs_dir / f"{result.run_id}.json"
    try:
        runs_dir.mkdir(parents=True, exist_ok=True)
        fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            handle.write(result.model_dump_json(indent=2))
            handle.write("\n")
    except OSError as exc:
        logger.warning("run.persist.error path={} error={}", path, exc)
        return None
    logger.debug("run.persist path={}", path)
    return path
