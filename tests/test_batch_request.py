from __future__ import annotations

import allure
import pytest

from parallelizer.batch import BatchRequestError, build_tasks, parse_batch_request
from parallelizer.config import BatchSettings, Settings, TaskDefaults
from parallelizer.errors import ConfigurationError
from parallelizer.polling.transform import TransformDirective

pytestmark = [
    allure.epic("Batch Requests"),
    allure.feature("Parsing & Defaults"),
]


def _settings(**batch: int) -> Settings:
    return Settings(batch=BatchSettings(**batch), task_defaults=TaskDefaults(delay_ms=250))


def test_endpoint_fields_override_group_and_request_defaults() -> None:
    request = parse_batch_request(
        {
            "defaults": {"delay": 500, "maxRetries": 4, "successKey": "done"},
            "groups": {"slow": {"delay": 2_000, "maxExecutionTime": 30_000}},
            "endpoints": [
                {"url": "https://jobs.example.com/a"},
                {"url": "https://jobs.example.com/b", "group": "slow"},
                {"url": "https://jobs.example.com/c", "group": "slow", "delay": 1_000},
            ],
        },
        settings=_settings(),
    )

    a, b, c = request.endpoints
    assert (a.retry.delay_ms, a.retry.max_retries, a.success_key) == (500, 4, "done")
    assert a.retry.max_execution_time_ms == 8_000
    assert (b.retry.delay_ms, b.retry.max_execution_time_ms) == (2_000, 30_000)
    assert (c.retry.delay_ms, c.retry.max_execution_time_ms) == (1_000, 30_000)
    assert c.retry.max_retries == 4


def test_settings_defaults_apply_when_request_is_silent() -> None:
    request = parse_batch_request(
        {"endpoints": [{"url": "https://jobs.example.com/a"}]},
        settings=_settings(),
    )

    config = request.endpoints[0]
    assert config.retry.delay_ms == 250
    assert config.retry.max_retries == 5
    assert config.success_key == "isComplete"
    assert config.method == "GET"
    assert config.retry.fail_critically is False
    assert request.detailed_response is False


def test_endpoint_fields_are_parsed_into_config() -> None:
    request = parse_batch_request(
        {
            "detailedResponse": True,
            "endpoints": [
                {
                    "url": "https://jobs.example.com/search",
                    "method": "post",
                    "body": {"city": "Porto"},
                    "headers": {"Authorization": "Bearer t", "X-Forwarded-For": "1.2.3.4"},
                    "dataKey": "results",
                    "failCritically": True,
                    "transform": [
                        {"key": "name", "valueKey": "hotel.name"},
                        {"key": "source", "value": "porto-feed"},
                    ],
                },
            ],
        },
        settings=_settings(),
    )

    config = request.endpoints[0]
    assert request.detailed_response is True
    assert config.method == "POST"
    assert config.body == {"city": "Porto"}
    assert config.headers == {"Authorization": "Bearer t"}
    assert config.data_key == "results"
    assert config.retry.fail_critically is True
    assert config.transform == (
        TransformDirective("name", source_path="hotel.name"),
        TransformDirective("source", literal="porto-feed"),
    )


@pytest.mark.parametrize(
    ("payload", "message"),
    [
        ([], "Invalid data"),
        ({"endpoints": {"url": "https://jobs.example.com"}}, "Invalid data"),
        ({"endpoints": []}, "No endpoints"),
        ({"endpoints": ["https://jobs.example.com"]}, "Invalid endpoint at index 0"),
        (
            {"endpoints": [{"url": "https://jobs.example.com", "group": "missing"}]},
            "Unknown group 'missing'",
        ),
        (
            {"endpoints": [{"url": "https://jobs.example.com", "group": ["a"]}]},
            "Invalid group at index 0",
        ),
        (
            {"defaults": "fast", "endpoints": [{"url": "https://jobs.example.com"}]},
            "Invalid defaults",
        ),
    ],
)
def test_malformed_requests_are_rejected(payload: object, message: str) -> None:
    with pytest.raises(BatchRequestError, match=message):
        parse_batch_request(payload, settings=_settings())


def test_batch_size_limit_is_enforced() -> None:
    payload = {"endpoints": [{"url": f"https://jobs.example.com/{i}"} for i in range(3)]}

    with pytest.raises(BatchRequestError, match="Too many endpoints"):
        parse_batch_request(payload, settings=_settings(max_batch_size=2))


def test_build_tasks_validates_every_config_up_front() -> None:
    request = parse_batch_request(
        {
            "endpoints": [
                {"url": "https://jobs.example.com/a"},
                {"url": "https://jobs.example.com/b", "delay": 50},
            ],
        },
        settings=_settings(),
    )

    with pytest.raises(ConfigurationError, match="Invalid delay 50"):
        build_tasks(request)


def test_build_tasks_keeps_input_order() -> None:
    urls = [f"https://jobs.example.com/{i}" for i in range(4)]
    request = parse_batch_request(
        {"endpoints": [{"url": url} for url in urls]},
        settings=_settings(),
    )

    assert [task.url for task in build_tasks(request)] == urls


def test_invalid_headers_type_is_a_configuration_error() -> None:
    with pytest.raises(ConfigurationError, match="Invalid headers"):
        parse_batch_request(
            {"endpoints": [{"url": "https://jobs.example.com", "headers": ["X-A: 1"]}]},
            settings=_settings(),
        )
