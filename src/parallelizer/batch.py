"""Request layer: turn a batch request document into validated endpoint tasks.

Field precedence for each endpoint, highest first: the endpoint's own
fields, its group's defaults, the request-level ``defaults``, then the
configured task defaults.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from parallelizer.config import Settings, TaskDefaults
from parallelizer.errors import ConfigurationError
from parallelizer.http.fetcher import BoundedFetcher
from parallelizer.polling.models import EndpointConfig, RetryPolicy
from parallelizer.polling.task import EndpointTask
from parallelizer.polling.transform import parse_directives

ENDPOINT_FIELDS = frozenset(
    {
        "url",
        "method",
        "body",
        "headers",
        "successKey",
        "dataKey",
        "transform",
        "delay",
        "maxRetries",
        "maxExecutionTime",
        "failCritically",
    },
)


class BatchRequestError(ValueError):
    """The batch request document is malformed or exceeds limits."""


@dataclass(slots=True)
class BatchRequest:
    """Parsed batch: fully resolved endpoint configs in input order."""

    endpoints: tuple[EndpointConfig, ...]
    detailed_response: bool = False


def parse_batch_request(payload: Any, *, settings: Settings) -> BatchRequest:
    if not isinstance(payload, Mapping):
        raise BatchRequestError("Invalid data")
    entries = payload.get("endpoints")
    if not isinstance(entries, list):
        raise BatchRequestError("Invalid data")
    if not entries:
        raise BatchRequestError("No endpoints")
    if len(entries) > settings.batch.max_batch_size:
        raise BatchRequestError(
            f"Too many endpoints: {len(entries)} > {settings.batch.max_batch_size}",
        )

    request_defaults = _defaults_block(payload.get("defaults"), label="defaults")
    groups = payload.get("groups") or {}
    if not isinstance(groups, Mapping):
        raise BatchRequestError("Invalid groups: expected an object keyed by group name")
    group_defaults = {
        name: _defaults_block(block, label=f"group {name!r}") for name, block in groups.items()
    }

    base = _wire_defaults(settings.task_defaults)
    endpoints: list[EndpointConfig] = []
    for index, entry in enumerate(entries):
        if not isinstance(entry, Mapping):
            raise BatchRequestError(f"Invalid endpoint at index {index}: expected an object")
        group_name = entry.get("group")
        if group_name is not None and not isinstance(group_name, str):
            raise BatchRequestError(f"Invalid group at index {index}: expected a group name")
        if group_name is not None and group_name not in group_defaults:
            raise BatchRequestError(f"Unknown group {group_name!r} at index {index}")
        merged = {
            **base,
            **request_defaults,
            **group_defaults.get(group_name, {}),
            **_endpoint_fields(entry),
        }
        endpoints.append(_build_config(merged))

    return BatchRequest(
        endpoints=tuple(endpoints),
        detailed_response=bool(payload.get("detailedResponse", False)),
    )


def build_tasks(
    request: BatchRequest,
    *,
    fetcher: BoundedFetcher | None = None,
) -> list[EndpointTask]:
    """Construct and validate one task per endpoint before any network activity."""

    tasks = [EndpointTask(config, fetcher=fetcher) for config in request.endpoints]
    for task in tasks:
        task.validate()
    return tasks


def _defaults_block(raw: Any, *, label: str) -> dict[str, Any]:
    if raw is None:
        return {}
    if not isinstance(raw, Mapping):
        raise BatchRequestError(f"Invalid {label}: expected an object")
    return _endpoint_fields(raw)


def _endpoint_fields(raw: Mapping[str, Any]) -> dict[str, Any]:
    return {key: value for key, value in raw.items() if key in ENDPOINT_FIELDS}


def _wire_defaults(defaults: TaskDefaults) -> dict[str, Any]:
    return {
        "successKey": defaults.success_key,
        "delay": defaults.delay_ms,
        "maxRetries": defaults.max_retries,
        "maxExecutionTime": defaults.max_execution_time_ms,
        "failCritically": defaults.fail_critically,
    }


def _build_config(fields: Mapping[str, Any]) -> EndpointConfig:
    headers = fields.get("headers")
    if headers is not None and not isinstance(headers, Mapping):
        raise ConfigurationError(f"Invalid headers for {fields.get('url')!r}: expected an object")
    method = fields.get("method")
    if method is not None and not isinstance(method, str):
        raise ConfigurationError(f"Invalid method for {fields.get('url')!r}: {method!r}")
    return EndpointConfig.build(
        fields.get("url"),
        method=method,
        body=fields.get("body"),
        headers=headers,
        success_key=fields.get("successKey"),
        data_key=fields.get("dataKey"),
        transform=parse_directives(fields.get("transform")),
        retry=RetryPolicy(
            delay_ms=fields.get("delay"),
            max_retries=fields.get("maxRetries"),
            max_execution_time_ms=fields.get("maxExecutionTime"),
            fail_critically=bool(fields.get("failCritically", False)),
        ),
    )
