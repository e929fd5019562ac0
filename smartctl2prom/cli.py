"""Typer CLI entrypoint."""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import replace
from pathlib import Path
from typing import IO

import typer

from smartctl2prom.core.config import Settings, load_settings
from smartctl2prom.core.errors import InputReadError, Smartctl2PromError
from smartctl2prom.core.exporter import SmartMetrics, write_textfile
from smartctl2prom.core.model import Record
from smartctl2prom.core.stream import FORMATS, decode

app = typer.Typer(help="Convert smartctl reports into Prometheus textfile metrics")

_FORMAT_HELP = "Input format: json (smartctl --json) or text (smartctl -a)"
_INPUT_HELP = "Read reports from this file instead of standard input"
_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def _settings(config: Path | None, fmt: str | None, log_level: str | None) -> Settings:
    settings = load_settings(config)
    level = (log_level or settings.log_level).upper()
    if level not in _LOG_LEVELS:
        raise typer.BadParameter(f"expected one of {', '.join(_LOG_LEVELS)}", param_hint="--log-level")
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")
    chosen = fmt or settings.format
    if chosen not in FORMATS:
        raise typer.BadParameter(f"expected one of {', '.join(FORMATS)}", param_hint="--format")
    return replace(settings, format=chosen, log_level=level)


@contextmanager
def _open_input(path: Path | None) -> Iterator[IO[bytes]]:
    if path is None or str(path) == "-":
        yield typer.get_binary_stream("stdin")
        return
    try:
        stream = path.open("rb")
    except OSError as exc:
        raise InputReadError(f"Could not open {path}: {exc}") from exc
    with stream:
        yield stream


def _summary(record: Record) -> str:
    status = "PASSED" if record.smart_status.passed else "FAILED"
    name = record.device.name or "<unnamed>"
    return (
        f"{name} {record.model_name} serial={record.serial_number}: {status}, "
        f"{len(record.ata_smart_attributes.table)} attributes, "
        f"{record.temperature.current} C, {record.power_on_time.hours} h"
    )


@app.command("export")
def export(
    output: Path = typer.Argument(..., help="Textfile to write, e.g. for node_exporter"),
    input_path: Path | None = typer.Option(None, "--input", "-i", help=_INPUT_HELP),
    fmt: str | None = typer.Option(None, "--format", "-f", help=_FORMAT_HELP),
    config: Path | None = typer.Option(None, "--config", help="Settings file"),
    log_level: str | None = typer.Option(None, "--log-level", help="Logging level"),
) -> None:
    """Decode reports and write their metrics to OUTPUT.

    Reports that fail to decode are logged and skipped.
    """
    try:
        settings = _settings(config, fmt, log_level)
        metrics = SmartMetrics()
        with _open_input(input_path) as stream, decode(stream, settings.format) as results:
            observed, skipped = metrics.observe_all(results)
        write_textfile(output, metrics.registry)
        message = f"Wrote metrics for {observed} report(s) to {output}"
        if skipped:
            message += f" ({skipped} skipped)"
        typer.echo(message)
    except Smartctl2PromError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None


@app.command("show")
def show(
    input_path: Path | None = typer.Option(None, "--input", "-i", help=_INPUT_HELP),
    fmt: str | None = typer.Option(None, "--format", "-f", help=_FORMAT_HELP),
    config: Path | None = typer.Option(None, "--config", help="Settings file"),
    log_level: str | None = typer.Option(None, "--log-level", help="Logging level"),
) -> None:
    """Print a one-line summary for every decoded report."""
    try:
        settings = _settings(config, fmt, log_level)
        with _open_input(input_path) as stream, decode(stream, settings.format) as results:
            for result in results:
                if result.record is None:
                    typer.echo(f"Warning: skipped report: {result.error}", err=True)
                    continue
                typer.echo(_summary(result.record))
    except Smartctl2PromError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None


def run() -> None:
    app()


if __name__ == "__main__":
    run()
