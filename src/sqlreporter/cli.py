"""CLI entry point for sqlreporter."""

import itertools
import logging
import sys
from datetime import UTC, datetime
from pathlib import Path

import click

from sqlreporter.config import (
    ENV_MAP,
    REGISTRY,
    ConfigEntry,
    SettingValue,
    effective_value,
    load_settings,
    raw_value,
    resolve_entry,
    serialize_value,
)
from sqlreporter.errors import ReporterError
from sqlreporter.models.parameter import Parameter
from sqlreporter.models.report import (
    OutputFormat,
    ProcedureReport,
    QueryReport,
    ReportDefinition,
)


def parse_param(spec: str) -> Parameter:
    """Parse ``name=value`` or ``name:type=value`` into a Parameter."""
    name, sep, value = spec.partition("=")
    if not sep or not name.strip():
        raise click.BadParameter(f"Expected name=value or name:type=value, got {spec!r}")
    name, _, data_type = name.partition(":")
    try:
        return Parameter(name.strip(), data_type.strip() or "string", value)
    except ValueError as e:
        raise click.BadParameter(str(e)) from e


def _resolve_or_exit(entry: ConfigEntry) -> tuple[SettingValue, str]:
    try:
        return effective_value(entry)
    except ValueError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)


def _display(entry: ConfigEntry, value: SettingValue, source: str) -> str:
    if entry.secret and source == "env":
        return "********"
    return serialize_value(value) or "(empty)"


def _shell_quote(text: str) -> str:
    return "'" + text.replace("'", "'\\''") + "'"


# ---------------------------------------------------------------------------
# CLI
# ---------------------------------------------------------------------------


@click.group()
def main() -> None:
    """Run SQL reports and export or email the results."""


# ---- config group --------------------------------------------------------


@main.group("config")
def config_group() -> None:
    """Inspect the settings read from SQLREPORTER_* variables."""


@config_group.command("list")
def config_list() -> None:
    """Print every setting by section, with where its value came from."""
    for section, entries in itertools.groupby(REGISTRY, key=lambda e: e.section):
        click.secho(f"[{section}]", bold=True)
        for entry in entries:
            value, source = _resolve_or_exit(entry)
            tag = click.style(f"[{source}]", fg="cyan" if source == "env" else "yellow")
            click.echo(f"  {entry.key} = {_display(entry, value, source)}  {tag}")
            click.secho(f"    {entry.description} (${ENV_MAP[entry.key]})", dim=True)
        click.echo()


@config_group.command("get")
@click.argument("key")
def config_get(key: str) -> None:
    """Print the effective value of KEY."""
    entry = resolve_entry(key)
    if entry is None:
        click.echo(f"Unknown setting: {key}", err=True)
        sys.exit(1)
    value, source = _resolve_or_exit(entry)
    click.echo(_display(entry, value, source))


@config_group.command("export")
@click.argument("output_file", type=click.Path(dir_okay=False, path_type=Path))
def config_export(output_file: Path) -> None:
    """Write the settings to OUTPUT_FILE as a shell script of exports.

    Settings left at their default are written commented out.
    """
    stamp = datetime.now(UTC).isoformat(timespec="seconds")
    lines = ["#!/bin/sh", f"# sqlreporter settings, exported {stamp}", ""]
    for entry in REGISTRY:
        var = ENV_MAP[entry.key]
        raw = raw_value(entry.key)
        if raw is None:
            lines.append(f"# export {var}={_shell_quote(serialize_value(entry.default))}")
        else:
            lines.append(f"export {var}={_shell_quote(raw)}")

    output_file.write_text("\n".join(lines) + "\n", encoding="utf-8")
    output_file.chmod(output_file.stat().st_mode | 0o111)
    click.echo(f"Wrote {len(REGISTRY)} settings to {output_file}")


# ---- run -----------------------------------------------------------------


@main.command("run")
@click.option("--query", "query", help="SQL text to run")
@click.option("--procedure", "procedure", help="Table macro (stored procedure) to call")
@click.option(
    "--param",
    "params",
    multiple=True,
    help="Bind parameter as name=value or name:type=value",
)
@click.option(
    "--format",
    "fmt",
    type=click.Choice([f.value for f in OutputFormat if f != OutputFormat.UNSET]),
    default=OutputFormat.CSV.value,
    show_default=True,
)
@click.option("--file-name", default=None, help="Output file name (default: random)")
@click.option("--email", "emails", multiple=True, help="Recipient address (repeatable)")
@click.option("--include-columns/--no-include-columns", default=True, help="CSV header line")
def run_command(
    query: str | None,
    procedure: str | None,
    params: tuple[str, ...],
    fmt: str,
    file_name: str | None,
    emails: tuple[str, ...],
    include_columns: bool,
) -> None:
    """Run a report against the configured database and export it."""
    from sqlreporter.client import ReporterClient

    if bool(query) == bool(procedure):
        click.echo("Provide exactly one of --query or --procedure", err=True)
        sys.exit(2)

    try:
        settings = load_settings()
    except ValueError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)
    logging.basicConfig(
        level=str(settings["logging.level"]).upper(),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    parameters = [parse_param(p) for p in params]
    default_recipients = settings["smtp.default_recipients"]
    recipients = list(emails) or (
        list(default_recipients) if isinstance(default_recipients, list) else []
    )
    output_format = OutputFormat(fmt)

    report: ReportDefinition
    if query:
        report = QueryReport(
            query,
            output_format=output_format,
            parameters=parameters,
            recipients=recipients,
            save_to_disk=True,
        )
    else:
        assert procedure is not None
        report = ProcedureReport(
            procedure,
            output_format=output_format,
            parameters=parameters,
            recipients=recipients,
            save_to_disk=True,
        )

    options: dict[str, object] = {"file_name": file_name}
    if output_format == OutputFormat.CSV:
        options["include_columns"] = include_columns

    with ReporterClient.from_settings(settings) as client:
        try:
            result = client.run_report(report)
            path = client.export(result, **options)
            click.echo(f"{result.row_count} row(s) in {result.elapsed_ms}ms -> {path}")
            if report.recipients:
                client.send_report(result, attachment_path=path)
                click.echo(f"Emailed {len(report.recipients)} recipient(s)")
        except ReporterError as e:
            click.echo(f"Error: {e}", err=True)
            sys.exit(1)
