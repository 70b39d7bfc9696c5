"""Exa-backed web search."""

from __future__ import annotations

import json
import time
from collections.abc import Callable
from typing import Any
from urllib import error as urllib_error
from urllib.request import Request, urlopen

from loguru import logger
from pydantic import BaseModel, ConfigDict, Field

from ficli.errors import ToolExecutionError, ToolValidationError
from ficli.tools.base import Meta, Tool, ToolResult
from ficli.utils.redact import redact_secrets

EXA_SEARCH_URL = "https://api.exa.ai/search"
WEB_USER_AGENT = "fi-cli/0.3 (+https://exa.ai)"
MAX_RETRIES = 2
RETRY_BACKOFF_SECONDS = 0.5
SNIPPET_START = 1200
SNIPPET_FLOOR = 200
PREVIEW_RESULTS = 3


class ExaSearchInput(BaseModel):
    """Search the web via Exa."""

    model_config = ConfigDict(extra="forbid")

    query: str = Field(..., description="Search query")
    num_results: int = Field(default=5, ge=1, le=10, description="Number of results to return")
    include_text: bool = Field(default=True, description="Include page text snippets")


class ExaResult(BaseModel):
    title: str = ""
    url: str = ""
    snippet: str = ""


class ExaOutput(BaseModel):
    results: list[ExaResult]
    duration_ms: int = 0
    truncated: bool = False


def _encoded_size(results: list[ExaResult]) -> int:
    return len(ExaOutput(results=results).model_dump_json().encode("utf-8"))


def fit_results(results: list[ExaResult], max_bytes: int) -> tuple[list[ExaResult], bool, int]:
    """Shrink ``results`` until their JSON encoding fits ``max_bytes``.

    Snippets are cut to 1200 characters, halving while the limit stays at or
    above 200; after that trailing results are dropped, always keeping one.
    """
    if max_bytes <= 0:
        return results, False, _encoded_size(results)

    fitted = [item.model_copy() for item in results]
    truncated = False
    limit = SNIPPET_START
    while limit >= SNIPPET_FLOOR:
        for item in fitted:
            if len(item.snippet) > limit:
                item.snippet = item.snippet[:limit]
                truncated = True
        size = _encoded_size(fitted)
        if size <= max_bytes:
            return fitted, truncated, size
        limit //= 2

    while len(fitted) > 1:
        fitted.pop()
        truncated = True
        size = _encoded_size(fitted)
        if size <= max_bytes:
            return fitted, truncated, size
    return fitted, truncated, _encoded_size(fitted)


def build_preview(results: list[ExaResult]) -> str:
    rows: list[str] = []
    for item in results[:PREVIEW_RESULTS]:
        rows.append(f"{item.title} - {item.url}")
        if item.snippet:
            rows.append(item.snippet)
    return "\n".join(rows).strip()


class ExaSearchTool(Tool[ExaSearchInput]):
    """Web search through the Exa API."""

    name = "exa_search"
    description = "Search the web via Exa and return titles, URLs, and snippets."
    input_model = ExaSearchInput

    def __init__(self, api_key: str, *, opener: Callable[..., Any] = urlopen) -> None:
        self.api_key = api_key
        self._opener = opener

    def run(self, params: ExaSearchInput, meta: Meta) -> ToolResult:
        if not self.api_key.strip():
            raise ToolExecutionError("EXA_API_KEY is missing")
        if not params.query.strip():
            raise ToolValidationError("query is required")

        payload: dict[str, Any] = {"query": params.query, "numResults": params.num_results}
        if params.include_text:
            payload["contents"] = {"text": True}

        start = time.monotonic()
        data = self._post(payload, meta.timeout_seconds or None)
        raw_results = data.get("results") if isinstance(data, dict) else None
        results = [
            ExaResult(
                title=redact_secrets(str(item.get("title") or "")),
                url=redact_secrets(str(item.get("url") or "")),
                snippet=redact_secrets(str(item.get("text") or "")),
            )
            for item in (raw_results or [])
            if isinstance(item, dict)
        ]

        results, truncated, byte_count = fit_results(results, meta.max_bytes)
        duration_ms = int((time.monotonic() - start) * 1000)
        output = ExaOutput(results=results, duration_ms=duration_ms, truncated=truncated)
        shown = build_preview(results)
        return ToolResult(
            tool_name=self.name,
            payload=output.model_dump(),
            preview=shown,
            line_count=shown.count("\n") + 1 if shown else 0,
            byte_count=byte_count,
            truncated=truncated,
            duration_ms=duration_ms,
        )

    def _post(self, payload: dict[str, Any], timeout: float | None) -> Any:
        request = Request(  # noqa: S310
            EXA_SEARCH_URL,
            data=json.dumps(payload).encode("utf-8"),
            headers={
                "Content-Type": "application/json",
                "x-api-key": self.api_key,
                "User-Agent": WEB_USER_AGENT,
            },
            method="POST",
        )

        attempt = 0
        while True:
            try:
                with self._opener(request, timeout=timeout) as response:
                    body = response.read().decode("utf-8", errors="replace")
                break
            except urllib_error.HTTPError as exc:
                detail = exc.read().decode("utf-8", errors="replace").strip()
                if exc.code < 500 or attempt >= MAX_RETRIES:
                    raise ToolExecutionError(f"exa search failed: http {exc.code}: {redact_secrets(detail)}") from exc
            except (urllib_error.URLError, OSError) as exc:
                if attempt >= MAX_RETRIES:
                    raise ToolExecutionError(f"exa search failed: {exc!s}") from exc
            attempt += 1
            logger.debug("exa.search.retry attempt={}", attempt)
            time.sleep(RETRY_BACKOFF_SECONDS * attempt)

        try:
            return json.loads(body)
        except json.JSONDecodeError as exc:
            raise ToolExecutionError(f"invalid json response: {exc!s}") from exc
