"""ReporterClient facade: one object owning the connection, exporter and notifier."""

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from sqlreporter.config import load_settings
from sqlreporter.db import ConnectionManager
from sqlreporter.models.report import OutputFormat, ReportDefinition
from sqlreporter.models.result import ReportResultSet
from sqlreporter.services.email_service import Credentials, SmtpNotifier
from sqlreporter.services.export_service import ReportExporter
from sqlreporter.services.query_service import QueryExecutor

log = logging.getLogger(__name__)


@dataclass
class ReportOutcome:
    result: ReportResultSet
    output_path: Path | None = None
    emailed: bool = False


class ReporterClient:
    """Main entry point for running and delivering reports.

    Usage:
        client = ReporterClient(connection_string="/data/sales.duckdb")
        client.notifier.configure("smtp.example.com", 587, creds, "reports@example.com")

        report = QueryReport(
            "SELECT * FROM sales WHERE region = $region",
            parameters=[Parameter("region", "string", "north")],
            output_format=OutputFormat.CSV,
            recipients=["ops@example.com"],
            save_to_disk=True,
        )
        outcome = client.process_report(report)

    Configuration changes (``connections.configure``, ``notifier.configure``,
    ``exporter.set_output_directory``) must not overlap a running report.
    """

    def __init__(
        self,
        connection_string: str = "",
        output_directory: str | None = None,
        connections: ConnectionManager | None = None,
        exporter: ReportExporter | None = None,
        notifier: SmtpNotifier | None = None,
    ) -> None:
        self.connections = connections or ConnectionManager(connection_string)
        self.exporter = exporter or ReportExporter(output_directory or None)
        self.notifier = notifier or SmtpNotifier(self.exporter)
        self.executor = QueryExecutor(self.connections, self.notifier)

    @classmethod
    def from_settings(
        cls,
        settings: Mapping[str, Any] | None = None,
    ) -> "ReporterClient":
        """Build a client from resolved configuration settings."""
        settings = settings if settings is not None else load_settings()
        client = cls(
            connection_string=str(settings["database.connection_string"]),
            output_directory=str(settings["output.directory"]) or None,
        )
        host = str(settings["smtp.host"])
        if host:
            username = str(settings["smtp.username"])
            credentials = (
                Credentials(username, str(settings["smtp.password"])) if username else None
            )
            client.notifier.configure(
                host=host,
                port=int(settings["smtp.port"]),
                credentials=credentials,
                from_address=str(settings["smtp.from_address"]),
                use_ssl=bool(settings["smtp.use_ssl"]),
                starttls=bool(settings["smtp.starttls"]),
                timeout=int(settings["smtp.timeout"]),
            )
        return client

    # ------------------------------------------------------------------
    # Single steps
    # ------------------------------------------------------------------

    def run_report(self, report: ReportDefinition) -> ReportResultSet:
        return self.executor.run(report)

    async def run_report_async(self, report: ReportDefinition) -> ReportResultSet:
        return await self.executor.run_async(report)

    def export(
        self,
        result: ReportResultSet,
        fmt: OutputFormat | None = None,
        **options: Any,
    ) -> Path:
        return self.exporter.export(result, fmt, **options)

    def send_report(self, result: ReportResultSet, **options: Any) -> bool:
        return self.notifier.send(result, **options)

    async def send_report_async(self, result: ReportResultSet, **options: Any) -> bool:
        return await self.notifier.send_async(result, **options)

    # ------------------------------------------------------------------
    # Full pipeline
    # ------------------------------------------------------------------

    def process_report(self, report: ReportDefinition) -> ReportOutcome:
        """Run a report, save it if asked, and email it to its recipients."""
        outcome = ReportOutcome(result=self.run_report(report))
        if report.save_to_disk:
            outcome.output_path = self.export(outcome.result)
        if report.recipients:
            outcome.emailed = self.send_report(
                outcome.result, attachment_path=outcome.output_path
            )
        return outcome

    async def process_report_async(self, report: ReportDefinition) -> ReportOutcome:
        outcome = ReportOutcome(result=await self.run_report_async(report))
        if report.save_to_disk:
            outcome.output_path = self.export(outcome.result)
        if report.recipients:
            outcome.emailed = await self.send_report_async(
                outcome.result, attachment_path=outcome.output_path
            )
        return outcome

    def close(self) -> None:
        self.connections.close()

    def __enter__(self) -> "ReporterClient":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()
