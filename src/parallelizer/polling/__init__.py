"""Endpoint polling core: per-endpoint state machine and batch orchestration."""

from parallelizer.polling.models import (
    EndpointConfig,
    EndpointResponse,
    ErrorKind,
    RequestInfo,
    ResultKind,
    RetryPolicy,
    TaskError,
)
from parallelizer.polling.orchestrator import BatchOrchestrator, BatchSummary, OrchestratorState
from parallelizer.polling.paths import lookup_path, resolve_path
from parallelizer.polling.task import EndpointTask
from parallelizer.polling.transform import TransformDirective, apply_transform

__all__ = [
    "BatchOrchestrator",
    "BatchSummary",
    "EndpointConfig",
    "EndpointResponse",
    "EndpointTask",
    "ErrorKind",
    "OrchestratorState",
    "RequestInfo",
    "ResultKind",
    "RetryPolicy",
    "TaskError",
    "TransformDirective",
    "apply_transform",
    "lookup_path",
    "resolve_path",
]
