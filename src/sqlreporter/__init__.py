"""sqlreporter - run SQL reports against DuckDB and export or email the results."""

from sqlreporter.client import ReporterClient, ReportOutcome
from sqlreporter.db import ConnectionManager
from sqlreporter.models import (
    CellKind,
    CellValue,
    ColumnDescriptor,
    OutputFormat,
    Parameter,
    ProcedureReport,
    QueryReport,
    ReportDefinition,
    ReportResultSet,
    ResultRow,
)
from sqlreporter.services.email_service import Credentials, SmtpNotifier
from sqlreporter.services.export_service import ReportExporter
from sqlreporter.services.query_service import QueryExecutor
from sqlreporter.services.workbook_service import SheetPlacement

__all__ = [
    "CellKind",
    "CellValue",
    "ColumnDescriptor",
    "ConnectionManager",
    "Credentials",
    "OutputFormat",
    "Parameter",
    "ProcedureReport",
    "QueryExecutor",
    "QueryReport",
    "ReportDefinition",
    "ReportExporter",
    "ReportOutcome",
    "ReportResultSet",
    "ReporterClient",
    "ResultRow",
    "SheetPlacement",
    "SmtpNotifier",
]
