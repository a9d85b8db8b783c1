"""Domain models for endpoint polling: configuration, errors, and response records."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from parallelizer.http.headers import sanitize_headers
from parallelizer.polling.transform import TransformDirective

DEFAULT_SUCCESS_KEY = "isComplete"
DEFAULT_DELAY_MS = 200
DEFAULT_MAX_RETRIES = 5
DEFAULT_MAX_EXECUTION_TIME_MS = 8_000

MIN_DELAY_MS = 100
MAX_DELAY_MS = 60_000
MAX_EXECUTION_TIME_MS = 60_000
MAX_RETRIES_LIMIT = 10

SUPPORTED_METHODS = frozenset({"GET", "POST", "PUT", "PATCH", "DELETE"})


class ErrorKind(str, Enum):
    """Kinds of per-task errors, serialized with their wire names."""

    FETCH = "fetch"
    RETRY_LIMIT = "retryLimit"
    EXECUTION_TIME_LIMIT = "executionTimeLimit"
    TRANSFORMATION = "transformation"
    PROJECTION = "projection"


class ResultKind(str, Enum):
    """Shape of a task's result payload."""

    SCALAR = "scalar"
    SEQUENCE = "sequence"
    ABSENT = "absent"


def classify_result(payload: Any) -> ResultKind:
    if payload is None:
        return ResultKind.ABSENT
    if isinstance(payload, list):
        return ResultKind.SEQUENCE
    return ResultKind.SCALAR


@dataclass(frozen=True, slots=True)
class RetryPolicy:
    """Polling cadence and budget for one endpoint."""

    delay_ms: int = DEFAULT_DELAY_MS
    max_retries: int = DEFAULT_MAX_RETRIES
    max_execution_time_ms: int | None = DEFAULT_MAX_EXECUTION_TIME_MS
    fail_critically: bool = False


@dataclass(frozen=True, slots=True)
class EndpointConfig:
    """Fully resolved call contract for one endpoint."""

    url: str
    method: str = "GET"
    body: Any = None
    headers: Mapping[str, str] = field(default_factory=dict)
    success_key: str = DEFAULT_SUCCESS_KEY
    data_key: str | None = None
    transform: tuple[TransformDirective, ...] = ()
    retry: RetryPolicy = field(default_factory=RetryPolicy)

    @classmethod
    def build(
        cls,
        url: str,
        *,
        method: str | None = None,
        body: Any = None,
        headers: Mapping[str, object] | None = None,
        success_key: str | None = None,
        data_key: str | None = None,
        transform: tuple[TransformDirective, ...] = (),
        retry: RetryPolicy | None = None,
    ) -> EndpointConfig:
        """Construct a config with sanitized headers and defaults for omitted fields."""

        return cls(
            url=url,
            method=(method or "GET").upper(),
            body=body,
            headers=sanitize_headers(headers),
            success_key=success_key or DEFAULT_SUCCESS_KEY,
            data_key=data_key or None,
            transform=tuple(transform),
            retry=retry or RetryPolicy(),
        )


@dataclass(frozen=True, slots=True)
class TaskError:
    """One recorded failure on a task."""

    kind: ErrorKind
    message: str

    def to_dict(self) -> dict[str, str]:
        return {"kind": self.kind.value, "message": self.message}


@dataclass(slots=True)
class RequestInfo:
    """Execution metadata reported alongside a task's data."""

    url: str
    attempts: int
    execution_time_ms: int
    transformation_time_ms: int
    has_failed: bool
    fetched_from_cache: bool
    errors: list[TaskError]

    def to_dict(self) -> dict[str, object]:
        return {
            "url": self.url,
            "attempts": self.attempts,
            "executionTime": self.execution_time_ms,
            "transformationTime": self.transformation_time_ms,
            "hasFailed": self.has_failed,
            "fetchedFromCache": self.fetched_from_cache,
            "errors": [error.to_dict() for error in self.errors],
        }


@dataclass(slots=True)
class EndpointResponse:
    """Response record for one endpoint in a batch."""

    data: Any
    request: RequestInfo

    def to_dict(self) -> dict[str, object]:
        return {"data": self.data, "request": self.request.to_dict()}
