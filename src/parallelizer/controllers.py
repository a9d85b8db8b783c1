"""Controllers for batch CLI commands."""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from parallelizer.batch import BatchRequest, BatchRequestError, build_tasks, parse_batch_request
from parallelizer.config import Settings
from parallelizer.errors import ConfigurationError, CriticalFailureError
from parallelizer.http.fetcher import BoundedFetcher
from parallelizer.polling.orchestrator import BatchOrchestrator

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class RunBatchCommand:
    """CLI input for one batch run."""

    request_text: str
    detailed: bool | None = None
    max_concurrency: int | None = None


@dataclass(slots=True)
class BatchCliResult:
    """Rendered output lines plus the process exit code."""

    exit_code: int
    lines: list[str] = field(default_factory=list)


class BatchCliController:
    """Parses a batch request, runs it, and renders the JSON result."""

    def __init__(self, fetcher_factory: Callable[[], BoundedFetcher] = BoundedFetcher) -> None:
        self.fetcher_factory = fetcher_factory

    def run_batch(self, command: RunBatchCommand) -> BatchCliResult:
        try:
            settings = Settings.from_env()
            settings.validate()
        except ValueError as error:
            return _error_result(f"Invalid settings: {error}")

        try:
            payload = json.loads(command.request_text)
        except json.JSONDecodeError as error:
            return _error_result(f"Batch request is not valid JSON: {error}")

        try:
            request = parse_batch_request(payload, settings=settings)
            detailed = request.detailed_response if command.detailed is None else command.detailed
            max_concurrency = _resolve_concurrency(command.max_concurrency, settings)
            output = asyncio.run(
                self._run(request, detailed=detailed, max_concurrency=max_concurrency),
            )
        except (BatchRequestError, ConfigurationError) as error:
            return _error_result(str(error))
        except CriticalFailureError as error:
            logger.error("Batch aborted: %s", error)
            return _error_result(str(error))

        return BatchCliResult(exit_code=0, lines=[json.dumps(output, indent=2, default=str)])

    async def _run(
        self,
        request: BatchRequest,
        *,
        detailed: bool,
        max_concurrency: int | None,
    ) -> list[Any]:
        async with self.fetcher_factory() as fetcher:
            orchestrator = BatchOrchestrator(
                build_tasks(request, fetcher=fetcher),
                max_concurrency=max_concurrency,
            )
            await orchestrator.run()
        if detailed:
            return [response.to_dict() for response in orchestrator.results()]
        return orchestrator.results_data()


def _resolve_concurrency(override: int | None, settings: Settings) -> int | None:
    if override is None:
        return settings.batch.max_concurrency
    return override or None


def _error_result(message: str) -> BatchCliResult:
    return BatchCliResult(exit_code=1, lines=[json.dumps({"error": message})])
