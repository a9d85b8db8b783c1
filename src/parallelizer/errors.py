"""Exception taxonomy shared by the fetch, polling, and batch layers."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(slots=True)
class ParallelizerError(Exception):
    """Base error with a stable machine-readable code."""

    message: str
    code: str = "parallelizer_error"

    def __str__(self) -> str:
        return self.message


@dataclass(slots=True)
class ConfigurationError(ParallelizerError, ValueError):
    """Endpoint configuration failed validation before any network call."""

    code: str = "configuration_error"


@dataclass(slots=True)
class FetchError(ParallelizerError):
    """One outbound request failed: transport error, timeout, or undecodable body."""

    code: str = "fetch_error"
    url: str | None = None


@dataclass(slots=True)
class TransformationError(ParallelizerError):
    """Applying a transform to a completed payload raised."""

    code: str = "transformation_error"
    url: str | None = None


@dataclass(slots=True)
class CriticalFailureError(ParallelizerError):
    """A fail-critically endpoint could not be fetched; aborts the whole batch."""

    code: str = "critical_failure"
    url: str | None = None


@dataclass(slots=True)
class PathResolutionError(ParallelizerError, LookupError):
    """A dot-separated field path does not exist in the payload."""

    code: str = "path_resolution_error"
    path: str = ""
    segment: str = ""
