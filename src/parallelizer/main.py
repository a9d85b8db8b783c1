"""CLI entrypoint for parallelizer."""

import logging
import sys
from typing import TextIO

import rich_click as click

from parallelizer import __version__
from parallelizer.config import Settings
from parallelizer.controllers import BatchCliController, RunBatchCommand

click.rich_click.USE_MARKDOWN = True
BATCH_CONTROLLER = BatchCliController()
LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


@click.group()
@click.version_option(version=__version__, prog_name="parallelizer")
def parallelizer() -> None:
    """Poll long-running HTTP jobs in parallel until each reports completion."""


@parallelizer.command("run")
@click.argument("batch_file", type=click.File("r"), default="-")
@click.option(
    "--detailed/--data-only",
    default=None,
    help="Return full response records or only the data. Overrides `detailedResponse`.",
)
@click.option(
    "--max-concurrency",
    type=click.IntRange(min=0),
    default=None,
    help="Endpoints polled at once; 0 means unbounded. Defaults to PARALLELIZER_MAX_CONCURRENCY.",
)
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    default=None,
    help="Logging level. Defaults to PARALLELIZER_LOG_LEVEL.",
)
def run_batch(
    batch_file: TextIO,
    detailed: bool | None,
    max_concurrency: int | None,
    log_level: str | None,
) -> None:
    """Run one batch request read from BATCH_FILE (or stdin) and print the JSON result."""

    _configure_logging(log_level or _settings_log_level())
    result = BATCH_CONTROLLER.run_batch(
        RunBatchCommand(
            request_text=batch_file.read(),
            detailed=detailed,
            max_concurrency=max_concurrency,
        ),
    )
    _emit_lines(result.lines)
    if result.exit_code:
        sys.exit(result.exit_code)


def _settings_log_level() -> str:
    # Malformed settings are reported by the controller as an error payload.
    try:
        settings = Settings.from_env()
        settings.validate()
    except ValueError:
        return "WARNING"
    return settings.log_level


def _configure_logging(level: str) -> None:
    logging.basicConfig(level=level.upper(), format=LOG_FORMAT, stream=sys.stderr)


def _emit_lines(lines: list[str]) -> None:
    for line in lines:
        click.echo(line)


if __name__ == "__main__":  # pragma: no cover
    parallelizer()
