"""Poll-until-complete state machine for one endpoint."""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable, Sequence
from typing import Any

from parallelizer.errors import (
    ConfigurationError,
    CriticalFailureError,
    PathResolutionError,
    TransformationError,
)
from parallelizer.http.fetcher import BoundedFetcher
from parallelizer.polling.models import (
    MAX_DELAY_MS,
    MAX_EXECUTION_TIME_MS,
    MAX_RETRIES_LIMIT,
    MIN_DELAY_MS,
    SUPPORTED_METHODS,
    EndpointConfig,
    EndpointResponse,
    ErrorKind,
    RequestInfo,
    ResultKind,
    TaskError,
    classify_result,
)
from parallelizer.polling.paths import lookup_path, resolve_path
from parallelizer.polling.transform import TransformDirective, apply_to_result

logger = logging.getLogger(__name__)

CallFunction = Callable[[int], Awaitable[Any]]
"""Async callable receiving the zero-based attempt number and returning a decoded payload."""


class EndpointTask:
    """Owns one endpoint's configuration and its mutable execution state.

    ``execute()`` resets the runtime state before polling, so a task can be
    re-run by a forced orchestrator run without inheriting stale counters.
    """

    def __init__(
        self,
        config: EndpointConfig,
        *,
        fetcher: BoundedFetcher | None = None,
        call: CallFunction | None = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self.config = config
        self.call = call or self._default_call
        self._fetcher = fetcher
        self._clock = clock
        self._sleep = sleep
        self._attempts = 0
        self._errors: list[TaskError] = []
        self._result: Any = None
        self._transformed = False
        self._execution_started_at = 0.0
        self._execution_finished_at = 0.0
        self._transformation_started_at = 0.0
        self._transformation_finished_at = 0.0

    @property
    def url(self) -> str:
        return self.config.url

    @property
    def attempts(self) -> int:
        return self._attempts

    @property
    def errors(self) -> list[TaskError]:
        return list(self._errors)

    @property
    def result(self) -> Any:
        return self._result

    @property
    def result_kind(self) -> ResultKind:
        return classify_result(self._result)

    @property
    def is_transformed(self) -> bool:
        return self._transformed

    def validate(self) -> None:
        """Raise ConfigurationError naming the first violated constraint."""

        config = self.config
        policy = config.retry
        if not isinstance(config.url, str) or not config.url.startswith("http"):
            raise ConfigurationError(f"Invalid URL: {config.url!r}")
        if not callable(self.call):
            raise ConfigurationError("Invalid call function: expected an async callable")
        if not isinstance(config.transform, Sequence) or not all(
            isinstance(directive, TransformDirective) for directive in config.transform
        ):
            raise ConfigurationError("Invalid transform: expected a list of transform directives")
        if not isinstance(config.success_key, str) or not config.success_key:
            raise ConfigurationError("Invalid successKey: expected a non-empty field path")
        if config.data_key is not None and (
            not isinstance(config.data_key, str) or not config.data_key
        ):
            raise ConfigurationError(
                f"Invalid dataKey {config.data_key!r}: expected a non-empty field path",
            )
        if config.method not in SUPPORTED_METHODS:
            raise ConfigurationError(
                f"Invalid method {config.method!r}: expected one of {sorted(SUPPORTED_METHODS)}",
            )
        max_execution_time = policy.max_execution_time_ms
        if max_execution_time is not None and (
            not _is_int(max_execution_time)
            or not 0 < max_execution_time <= MAX_EXECUTION_TIME_MS
        ):
            raise ConfigurationError(
                f"Invalid maxExecutionTime {max_execution_time!r}: "
                f"expected milliseconds in (0, {MAX_EXECUTION_TIME_MS}]",
            )
        if not _is_int(policy.delay_ms) or not MIN_DELAY_MS <= policy.delay_ms <= MAX_DELAY_MS:
            raise ConfigurationError(
                f"Invalid delay {policy.delay_ms!r}: "
                f"expected milliseconds in [{MIN_DELAY_MS}, {MAX_DELAY_MS}]",
            )
        if max_execution_time is not None and max_execution_time < policy.delay_ms:
            raise ConfigurationError(
                f"Invalid maxExecutionTime {max_execution_time}: "
                f"must not be shorter than delay {policy.delay_ms}",
            )
        if not _is_int(policy.max_retries) or not 0 < policy.max_retries <= MAX_RETRIES_LIMIT:
            raise ConfigurationError(
                f"Invalid maxRetries {policy.max_retries!r}: expected (0, {MAX_RETRIES_LIMIT}]",
            )

    async def execute(self) -> EndpointResponse:
        """Validate, then poll the endpoint until it completes or exhausts its budget."""

        self.validate()
        self._reset()
        self._execution_started_at = self._clock()
        try:
            self._result = await self._poll_until_complete()
        finally:
            self._execution_finished_at = self._clock()
        return self.response()

    async def run_transform(self) -> EndpointResponse:
        """Apply the configured transform once; failures are recorded, never raised."""

        if self._result is None or not self.config.transform or self._transformed:
            return self.response()

        self._transformation_started_at = self._clock()
        try:
            self._result = apply_to_result(self._result, self.config.transform)
            self._transformed = True
        except Exception as exc:  # noqa: BLE001
            error = TransformationError(
                f"Error transforming data from {self.url}: {exc}",
                url=self.url,
            )
            logger.warning("%s", error)
            self._errors.append(TaskError(kind=ErrorKind.TRANSFORMATION, message=error.message))
        finally:
            self._transformation_finished_at = self._clock()
        return self.response()

    def response(self) -> EndpointResponse:
        return EndpointResponse(
            data=self._result,
            request=RequestInfo(
                url=self.url,
                attempts=self._attempts,
                execution_time_ms=self.execution_time_ms(),
                transformation_time_ms=self.transformation_time_ms(),
                has_failed=self.has_failed(),
                fetched_from_cache=False,
                errors=list(self._errors),
            ),
        )

    def has_failed(self) -> bool:
        if self._attempts == 0:
            return False
        policy = self.config.retry
        if self._attempts >= policy.max_retries:
            return True
        return bool(
            policy.max_execution_time_ms
            and self.execution_time_ms() > policy.max_execution_time_ms,
        )

    def error_count(self) -> int:
        return len(self._errors)

    def execution_time_ms(self) -> int:
        return _duration_ms(self._execution_started_at, self._execution_finished_at)

    def transformation_time_ms(self) -> int:
        return _duration_ms(self._transformation_started_at, self._transformation_finished_at)

    def _reset(self) -> None:
        self._attempts = 0
        self._errors = []
        self._result = None
        self._transformed = False
        self._transformation_started_at = 0.0
        self._transformation_finished_at = 0.0

    async def _poll_until_complete(self) -> Any:
        policy = self.config.retry
        success_key = self.config.success_key
        started_at = self._clock()
        while True:
            elapsed_ms = (self._clock() - started_at) * 1000
            if policy.max_execution_time_ms and elapsed_ms > policy.max_execution_time_ms:
                self._record(
                    ErrorKind.EXECUTION_TIME_LIMIT,
                    f"Max execution time reached, waited for {policy.max_execution_time_ms}ms "
                    f"for {self.url} to return the successKey {success_key!r}",
                )
                logger.info("Gave up on %s after %d attempts: time limit", self.url, self._attempts)
                return None

            attempt = self._attempts
            self._attempts += 1
            payload = await self._call_once(attempt)
            if lookup_path(payload, success_key):
                logger.debug("%s completed on attempt %d", self.url, self._attempts)
                return self._project(payload)

            if self._attempts >= policy.max_retries:
                self._record(
                    ErrorKind.RETRY_LIMIT,
                    f"Max retries reached, tried {self._attempts} times "
                    f"to get {self.url} to return the successKey {success_key!r}",
                )
                logger.info(
                    "Gave up on %s after %d attempts: retry limit",
                    self.url,
                    self._attempts,
                )
                return None

            logger.debug(
                "%s not complete after attempt %d/%d; retrying in %dms",
                self.url,
                self._attempts,
                policy.max_retries,
                policy.delay_ms,
            )
            await self._sleep(policy.delay_ms / 1000)

    async def _call_once(self, attempt: int) -> Any:
        try:
            return await self.call(attempt)
        except Exception as exc:
            self._record(ErrorKind.FETCH, str(exc))
            if self.config.retry.fail_critically:
                logger.error("Critical endpoint %s failed: %s", self.url, exc)
                raise CriticalFailureError(
                    f"Callback error fetching data from {self.url}: {exc}",
                    url=self.url,
                ) from exc
            return {self.config.success_key: False}

    def _project(self, payload: Any) -> Any:
        data_key = self.config.data_key
        if not data_key:
            return payload
        try:
            return resolve_path(payload, data_key)
        except PathResolutionError as exc:
            self._record(
                ErrorKind.PROJECTION,
                f"Completed response from {self.url} has no dataKey {data_key!r}: {exc}",
            )
            return None

    async def _default_call(self, attempt: int) -> Any:  # noqa: ARG002
        if self._fetcher is not None:
            return await self._fetch(self._fetcher)
        async with BoundedFetcher() as fetcher:
            return await self._fetch(fetcher)

    async def _fetch(self, fetcher: BoundedFetcher) -> Any:
        return await fetcher.fetch_json(
            self.url,
            method=self.config.method,
            headers=self.config.headers,
            body=self.config.body,
            timeout_ms=self.config.retry.max_execution_time_ms,
        )

    def _record(self, kind: ErrorKind, message: str) -> None:
        self._errors.append(TaskError(kind=kind, message=message))


def _is_int(value: object) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _duration_ms(started_at: float, finished_at: float) -> int:
    return max(0, round((finished_at - started_at) * 1000))
