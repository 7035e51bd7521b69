"""Query service for running report definitions against DuckDB."""

import asyncio
import logging
import time
from typing import Any

import duckdb

from sqlreporter.db import ConnectionManager
from sqlreporter.errors import (
    ConnectionUnavailableError,
    DatabaseFailureError,
    InvalidReportError,
)
from sqlreporter.models.report import (
    ProcedureReport,
    QueryReport,
    ReportDefinition,
    SupportsConfigured,
    describe_report,
    validate_report,
)
from sqlreporter.models.result import ReportResultSet

log = logging.getLogger(__name__)

FETCH_BATCH_SIZE = 1000


def build_command(report: ReportDefinition) -> tuple[str, dict[str, Any] | None]:
    """Build the SQL text and bind parameters for a report.

    Stored procedures are DuckDB table macros, called with one positional
    placeholder per parameter in declaration order.
    """
    params = {p.bind_name: p.bind_value() for p in report.parameters}

    match report:
        case QueryReport(query=query):
            sql = query.strip().rstrip(";").rstrip()
        case ProcedureReport(procedure_name=name):
            args = ", ".join(f"${p.bind_name}" for p in report.parameters)
            sql = f"SELECT * FROM {name.strip()}({args})"
        case _:
            raise TypeError(f"Not a report definition: {report!r}")

    return sql, params or None


def bind_columns(
    command: duckdb.DuckDBPyConnection,
    sql: str,
    params: dict[str, Any] | None,
) -> list[tuple[str, str]] | None:
    """Bind a command and return its column names and types without fetching rows.

    Names come back exactly as the statement produces them, duplicates
    included.  Returns None for statements with no result set, which DuckDB
    runs while binding.
    """
    relation = command.sql(sql, params=params)
    if relation is None:
        return None
    return [(str(name), str(type_)) for name, type_ in zip(relation.columns, relation.types)]


def _elapsed_ms(start_time: float) -> int:
    return int((time.monotonic() - start_time) * 1000)


class QueryExecutor:
    """Runs report definitions and materializes their results in memory."""

    def __init__(
        self,
        connections: ConnectionManager,
        notifier: SupportsConfigured | None = None,
    ) -> None:
        self.connections = connections
        self.notifier = notifier

    def _check_report(self, report: ReportDefinition) -> None:
        error = validate_report(report, self.notifier)
        if error:
            raise InvalidReportError(
                f"Report is invalid: {error}. Check all required values are set "
                "and that the notifier is configured if there are recipients."
            )

    def _fail(
        self,
        report: ReportDefinition,
        start_time: float,
        error: Exception,
    ) -> Exception:
        log.error(
            "Error running %s after %dms: %s",
            describe_report(report),
            _elapsed_ms(start_time),
            error,
        )
        if isinstance(error, duckdb.Error):
            return DatabaseFailureError(f"Query error: {error}")
        return error

    # ------------------------------------------------------------------
    # Blocking path
    # ------------------------------------------------------------------

    def run(self, report: ReportDefinition) -> ReportResultSet:
        """Run a report and return its fully populated result set."""
        self._check_report(report)

        if not self.connections.check_healthy():
            raise ConnectionUnavailableError(
                "Database connection could not be opened, check it has been configured"
            )

        result = ReportResultSet(report=report)
        start_time = time.monotonic()
        try:
            sql, params = build_command(report)
            command = self.connections.cursor()
            try:
                columns = bind_columns(command, sql, params)
                for name, type_name in columns or []:
                    result.add_column(name, type_name)

                # A statement without a result set already ran while binding
                if columns is not None:
                    command.execute(sql, params)
                    while True:
                        batch = command.fetchmany(FETCH_BATCH_SIZE)
                        if not batch:
                            break
                        for row in batch:
                            result.add_row(row)
            finally:
                command.close()
        except Exception as e:
            failure = self._fail(report, start_time, e)
            if failure is e:
                raise
            raise failure from e

        result.finish(_elapsed_ms(start_time))
        log.info(
            "Ran %s: %d columns, %d rows in %dms",
            describe_report(report).splitlines()[0],
            result.column_count,
            result.row_count,
            result.elapsed_ms,
        )
        return result

    # ------------------------------------------------------------------
    # Non-blocking path
    # ------------------------------------------------------------------

    async def run_async(self, report: ReportDefinition) -> ReportResultSet:
        """Run a report without blocking the event loop on database I/O."""
        self._check_report(report)

        if not await self.connections.check_healthy_async():
            raise ConnectionUnavailableError(
                "Database connection could not be opened, check it has been configured"
            )

        result = ReportResultSet(report=report)
        start_time = time.monotonic()
        try:
            sql, params = build_command(report)
            command = self.connections.cursor()
            try:
                columns = await asyncio.to_thread(bind_columns, command, sql, params)
                for name, type_name in columns or []:
                    result.add_column(name, type_name)

                if columns is not None:
                    await asyncio.to_thread(command.execute, sql, params)
                    while True:
                        batch = await asyncio.to_thread(command.fetchmany, FETCH_BATCH_SIZE)
                        if not batch:
                            break
                        for row in batch:
                            result.add_row(row)
            finally:
                command.close()
        except Exception as e:
            failure = self._fail(report, start_time, e)
            if failure is e:
                raise
            raise failure from e

        result.finish(_elapsed_ms(start_time))
        log.info(
            "Ran %s: %d columns, %d rows in %dms",
            describe_report(report).splitlines()[0],
            result.column_count,
            result.row_count,
            result.elapsed_ms,
        )
        return result
