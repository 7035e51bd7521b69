"""Report definitions and result set models."""

from sqlreporter.models.parameter import Parameter
from sqlreporter.models.report import (
    OutputFormat,
    ProcedureReport,
    QueryReport,
    ReportDefinition,
)
from sqlreporter.models.result import (
    CellKind,
    CellValue,
    ColumnDescriptor,
    ReportResultSet,
    ResultRow,
)

__all__ = [
    "CellKind",
    "CellValue",
    "ColumnDescriptor",
    "OutputFormat",
    "Parameter",
    "ProcedureReport",
    "QueryReport",
    "ReportDefinition",
    "ReportResultSet",
    "ResultRow",
]
