from __future__ import annotations

import json
from pathlib import Path

import allure
import httpx
import pytest
from click.testing import CliRunner

from parallelizer import main
from parallelizer.http.fetcher import BoundedFetcher
from parallelizer.main import parallelizer

pytestmark = [
    allure.epic("Batch Requests"),
    allure.feature("CLI"),
]

JOBS = {
    "https://jobs.example.com/done": [{"isComplete": True, "hotels": [{"id": 1}, {"id": 2}]}],
    "https://jobs.example.com/later": [
        {"isComplete": False},
        {"isComplete": True, "hotels": [{"id": 3}]},
    ],
    "https://jobs.example.com/never": [{"isComplete": False}],
}


@pytest.fixture()
def mock_jobs(monkeypatch):
    served: dict[str, int] = {}

    def _handler(request: httpx.Request) -> httpx.Response:
        url = str(request.url)
        if url not in JOBS:
            raise httpx.ConnectError("connection refused", request=request)
        index = served.get(url, 0)
        served[url] = index + 1
        script = JOBS[url]
        return httpx.Response(200, json=script[min(index, len(script) - 1)])

    monkeypatch.setattr(
        main.BATCH_CONTROLLER,
        "fetcher_factory",
        lambda: BoundedFetcher(transport=httpx.MockTransport(_handler)),
    )
    monkeypatch.delenv("PARALLELIZER_MAX_BATCH_SIZE", raising=False)
    monkeypatch.delenv("PARALLELIZER_MAX_CONCURRENCY", raising=False)
    return served


def _write_batch(tmp_path: Path, payload: dict) -> Path:
    path = tmp_path / "batch.json"
    path.write_text(json.dumps(payload), encoding="utf-8")
    return path


def _batch(*urls: str, **extra: object) -> dict:
    return {
        "defaults": {"delay": 100, "maxRetries": 2, "dataKey": "hotels"},
        "endpoints": [{"url": url} for url in urls],
        **extra,
    }


def test_run_prints_flattened_data(tmp_path: Path, mock_jobs) -> None:
    path = _write_batch(
        tmp_path,
        _batch(
            "https://jobs.example.com/done",
            "https://jobs.example.com/never",
            "https://jobs.example.com/later",
        ),
    )

    result = CliRunner().invoke(parallelizer, ["run", str(path)])

    assert result.exit_code == 0, result.output
    assert json.loads(result.stdout) == [{"id": 1}, {"id": 2}, {"id": 3}]
    assert mock_jobs["https://jobs.example.com/never"] == 2


def test_run_detailed_flag_prints_response_records(tmp_path: Path, mock_jobs) -> None:
    path = _write_batch(
        tmp_path,
        _batch("https://jobs.example.com/later", "https://jobs.example.com/never"),
    )

    result = CliRunner().invoke(parallelizer, ["run", str(path), "--detailed"])

    assert result.exit_code == 0, result.output
    records = json.loads(result.stdout)
    assert [record["request"]["url"] for record in records] == [
        "https://jobs.example.com/later",
        "https://jobs.example.com/never",
    ]
    assert records[0]["request"]["attempts"] == 2
    assert records[0]["request"]["hasFailed"] is True
    assert records[1]["data"] is None
    assert records[1]["request"]["errors"][0]["kind"] == "retryLimit"


def test_run_honors_detailed_response_in_request(tmp_path: Path, mock_jobs) -> None:
    path = _write_batch(
        tmp_path,
        _batch("https://jobs.example.com/done", detailedResponse=True),
    )

    result = CliRunner().invoke(parallelizer, ["run", str(path), "--max-concurrency", "0"])

    assert result.exit_code == 0, result.output
    assert json.loads(result.stdout)[0]["data"] == [{"id": 1}, {"id": 2}]


def test_run_reads_stdin(mock_jobs) -> None:
    result = CliRunner().invoke(
        parallelizer,
        ["run", "-"],
        input=json.dumps(_batch("https://jobs.example.com/done")),
    )

    assert result.exit_code == 0, result.output
    assert json.loads(result.stdout) == [{"id": 1}, {"id": 2}]


def test_run_reports_critical_failure_as_error_payload(tmp_path: Path, mock_jobs) -> None:
    payload = _batch("https://jobs.example.com/done")
    payload["endpoints"].append({"url": "https://jobs.example.com/gone", "failCritically": True})
    path = _write_batch(tmp_path, payload)

    result = CliRunner().invoke(parallelizer, ["run", str(path)])

    assert result.exit_code == 1
    error = json.loads(result.stdout)["error"]
    assert "https://jobs.example.com/gone" in error


@pytest.mark.parametrize(
    ("payload", "message"),
    [
        ({"endpoints": []}, "No endpoints"),
        ({"endpoints": [{"url": "https://jobs.example.com/done", "delay": 5}]}, "Invalid delay"),
        (
            {"endpoints": [{"url": "https://jobs.example.com/done", "dataKey": 5}]},
            "Invalid dataKey",
        ),
        (
            {"endpoints": [{"url": "https://jobs.example.com/done", "group": ["a"]}]},
            "Invalid group at index 0",
        ),
    ],
)
def test_run_reports_invalid_requests(tmp_path: Path, mock_jobs, payload, message) -> None:
    path = _write_batch(tmp_path, payload)

    result = CliRunner().invoke(parallelizer, ["run", str(path)])

    assert result.exit_code == 1
    assert message in json.loads(result.stdout)["error"]
    assert mock_jobs == {}


def test_run_rejects_non_json_input(tmp_path: Path, mock_jobs) -> None:
    path = tmp_path / "batch.json"
    path.write_text("{not json", encoding="utf-8")

    result = CliRunner().invoke(parallelizer, ["run", str(path)])

    assert result.exit_code == 1
    assert "not valid JSON" in json.loads(result.stdout)["error"]


def test_version_option() -> None:
    result = CliRunner().invoke(parallelizer, ["--version"])

    assert result.exit_code == 0
    assert "parallelizer" in result.output


@pytest.mark.parametrize(
    ("name", "value"),
    [
        ("PARALLELIZER_MAX_BATCH_SIZE", "many"),
        ("PARALLELIZER_DEFAULT_FAIL_CRITICALLY", "maybe"),
        ("PARALLELIZER_LOG_LEVEL", "LOUD"),
    ],
)
def test_run_reports_invalid_settings(tmp_path: Path, mock_jobs, monkeypatch, name, value) -> None:
    monkeypatch.setenv(name, value)
    path = _write_batch(tmp_path, _batch("https://jobs.example.com/done"))

    result = CliRunner().invoke(parallelizer, ["run", str(path)])

    assert result.exit_code == 1
    assert "Invalid settings" in json.loads(result.stdout)["error"]
    assert mock_jobs == {}
