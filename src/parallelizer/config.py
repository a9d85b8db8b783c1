"""Runtime configuration for batch polling."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field

from parallelizer.polling.models import (
    DEFAULT_DELAY_MS,
    DEFAULT_MAX_EXECUTION_TIME_MS,
    DEFAULT_MAX_RETRIES,
    DEFAULT_SUCCESS_KEY,
)

DEFAULT_MAX_BATCH_SIZE = 100


@dataclass(slots=True)
class BatchSettings:
    """Batch admission and fan-out settings."""

    max_batch_size: int = DEFAULT_MAX_BATCH_SIZE
    # None means unbounded fan-out.
    max_concurrency: int | None = DEFAULT_MAX_BATCH_SIZE


@dataclass(slots=True)
class TaskDefaults:
    """Lowest-precedence values for endpoint fields a batch request omits."""

    success_key: str = DEFAULT_SUCCESS_KEY
    delay_ms: int = DEFAULT_DELAY_MS
    max_retries: int = DEFAULT_MAX_RETRIES
    max_execution_time_ms: int | None = DEFAULT_MAX_EXECUTION_TIME_MS
    fail_critically: bool = False


@dataclass(slots=True)
class Settings:
    """Application settings grouped by concern."""

    batch: BatchSettings = field(default_factory=BatchSettings)
    task_defaults: TaskDefaults = field(default_factory=TaskDefaults)
    log_level: str = "WARNING"

    @classmethod
    def from_env(cls) -> Settings:
        """Load settings from ``PARALLELIZER_*`` environment variables."""

        max_batch_size = int(
            os.getenv("PARALLELIZER_MAX_BATCH_SIZE", str(DEFAULT_MAX_BATCH_SIZE)),
        )
        return cls(
            batch=BatchSettings(
                max_batch_size=max_batch_size,
                max_concurrency=_optional_positive_int(
                    os.getenv("PARALLELIZER_MAX_CONCURRENCY", str(max_batch_size)),
                ),
            ),
            task_defaults=TaskDefaults(
                success_key=os.getenv("PARALLELIZER_DEFAULT_SUCCESS_KEY", DEFAULT_SUCCESS_KEY),
                delay_ms=int(os.getenv("PARALLELIZER_DEFAULT_DELAY_MS", str(DEFAULT_DELAY_MS))),
                max_retries=int(
                    os.getenv("PARALLELIZER_DEFAULT_MAX_RETRIES", str(DEFAULT_MAX_RETRIES)),
                ),
                max_execution_time_ms=_optional_positive_int(
                    os.getenv(
                        "PARALLELIZER_DEFAULT_MAX_EXECUTION_TIME_MS",
                        str(DEFAULT_MAX_EXECUTION_TIME_MS),
                    ),
                ),
                fail_critically=_env_bool("PARALLELIZER_DEFAULT_FAIL_CRITICALLY", default=False),
            ),
            log_level=os.getenv("PARALLELIZER_LOG_LEVEL", "WARNING").strip().upper(),
        )

    def validate(self) -> None:
        """Raise ValueError if settings cannot drive a batch run."""

        if self.batch.max_batch_size <= 0:
            raise ValueError("PARALLELIZER_MAX_BATCH_SIZE must be > 0.")
        if self.batch.max_concurrency is not None and self.batch.max_concurrency <= 0:
            raise ValueError("PARALLELIZER_MAX_CONCURRENCY must be > 0, or 0 for unbounded.")
        if not self.task_defaults.success_key:
            raise ValueError("PARALLELIZER_DEFAULT_SUCCESS_KEY must not be empty.")
        if not isinstance(logging.getLevelName(self.log_level), int):
            raise ValueError(f"Invalid PARALLELIZER_LOG_LEVEL: {self.log_level!r}")


def _optional_positive_int(raw: str) -> int | None:
    """Parse an int where ``0`` (or an empty value) means "no limit"."""

    value = raw.strip()
    if not value:
        return None
    try:
        parsed = int(value)
    except ValueError as error:
        raise ValueError(f"Invalid integer setting: {raw!r}") from error
    return parsed or None


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "on"}:
        return True
    if normalized in {"0", "false", "no", "off"}:
        return False
    raise ValueError(f"Invalid boolean value for {name}: {value!r}")
