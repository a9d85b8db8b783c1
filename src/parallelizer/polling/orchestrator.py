"""Run a batch of endpoint tasks concurrently and collect their responses in order."""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable, Iterable, Sequence
from contextlib import AbstractAsyncContextManager, nullcontext
from dataclasses import dataclass
from enum import Enum
from typing import Any, TypeVar

from parallelizer.polling.models import EndpointResponse
from parallelizer.polling.task import EndpointTask

logger = logging.getLogger(__name__)

T = TypeVar("T")


class OrchestratorState(str, Enum):
    """Lifecycle of one orchestrator instance."""

    NOT_RUN = "not_run"
    RUNNING = "running"
    COMPLETED = "completed"


@dataclass(slots=True)
class BatchSummary:
    """Counters for one batch run; observability only."""

    total: int = 0
    with_data: int = 0
    failed: int = 0
    total_errors: int = 0


class BatchOrchestrator:
    """Fans out ``execute()`` then ``run_transform()`` over every task and memoizes the result.

    The memo is a stale read with no expiry: a second ``run()`` returns it
    unchanged unless ``force=True``. ``run()`` calls on one instance must be
    sequential.
    """

    def __init__(
        self,
        tasks: Sequence[EndpointTask],
        *,
        max_concurrency: int | None = None,
    ) -> None:
        if max_concurrency is not None and max_concurrency <= 0:
            raise ValueError(f"max_concurrency must be positive or None, got {max_concurrency}")
        self.tasks = list(tasks)
        self.max_concurrency = max_concurrency
        self.state = OrchestratorState.NOT_RUN
        self._results: list[EndpointResponse] = []
        self._summary = BatchSummary()

    async def run(self, force: bool = False) -> list[EndpointResponse]:
        if self._results and not force:
            logger.info("Returning memoized results for %d endpoints", len(self._results))
            return self._results

        self._reset()
        self.state = OrchestratorState.RUNNING
        started_at = time.monotonic()
        try:
            await self._fetch_all()
            self._results = await self._transform_all()
        except BaseException:
            self.state = OrchestratorState.NOT_RUN
            raise
        self.state = OrchestratorState.COMPLETED
        logger.info(
            "Batch of %d endpoints finished in %.0fms",
            len(self.tasks),
            (time.monotonic() - started_at) * 1000,
        )
        return self._results

    def results(self) -> list[EndpointResponse]:
        return self._results

    def results_data(self) -> list[Any]:
        """Project ``data`` from each response, dropping falsy values and flattening lists."""

        flattened: list[Any] = []
        for response in self._results:
            if not response.data:
                continue
            if isinstance(response.data, list):
                flattened.extend(response.data)
            else:
                flattened.append(response.data)
        return flattened

    def summary(self) -> BatchSummary:
        return self._summary

    def _reset(self) -> None:
        self._results = []
        self._summary = BatchSummary()

    async def _fetch_all(self) -> None:
        fetch_started_at = time.monotonic()
        logger.info("Polling %d endpoints in parallel", len(self.tasks))
        responses = await self._gather(task.execute for task in self.tasks)

        summary = BatchSummary(total=len(responses))
        for response in responses:
            summary.total_errors += len(response.request.errors)
            if response.data:
                summary.with_data += 1
            if response.request.has_failed:
                summary.failed += 1
        self._summary = summary

        if summary.total_errors:
            logger.warning("Total errors across batch: %d", summary.total_errors)
        logger.info(
            "Fetched data from %d of %d endpoints in %.0fms",
            summary.with_data,
            summary.total,
            (time.monotonic() - fetch_started_at) * 1000,
        )

    async def _transform_all(self) -> list[EndpointResponse]:
        transform_started_at = time.monotonic()
        responses = await self._gather(task.run_transform for task in self.tasks)
        logger.info(
            "Transformed %d responses in %.0fms",
            len(responses),
            (time.monotonic() - transform_started_at) * 1000,
        )
        return responses

    async def _gather(self, factories: Iterable[Callable[[], Awaitable[T]]]) -> list[T]:
        """Run coroutine factories concurrently, preserving order.

        If one raises, the remaining siblings are cancelled before re-raising.
        """

        limiter = self._limiter()
        pending = [asyncio.create_task(_limited(limiter, factory)) for factory in factories]
        try:
            return list(await asyncio.gather(*pending))
        except BaseException:
            for task in pending:
                task.cancel()
            await asyncio.gather(*pending, return_exceptions=True)
            raise

    def _limiter(self) -> AbstractAsyncContextManager[Any]:
        if self.max_concurrency is None:
            return nullcontext()
        return asyncio.Semaphore(self.max_concurrency)


async def _limited(
    limiter: AbstractAsyncContextManager[Any],
    factory: Callable[[], Awaitable[T]],
) -> T:
    async with limiter:
        return await factory()
