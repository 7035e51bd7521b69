"""Report definitions: what to run and where the result goes."""

import re
from dataclasses import dataclass, field
from email.utils import parseaddr
from enum import Enum
from typing import Protocol

from sqlreporter.models.parameter import Parameter, format_parameters

# Dotted identifier, e.g. sales_by_region or main.sales_by_region
_IDENTIFIER_RE = re.compile(r"^[a-zA-Z_][a-zA-Z0-9_]*(\.[a-zA-Z_][a-zA-Z0-9_]*)*$")

_ADDRESS_RE = re.compile(r"^[^@\s<>,;]+@[^@\s<>,;]+$")


class OutputFormat(Enum):
    UNSET = "unset"
    HTML = "html"
    SPREADSHEET = "spreadsheet"
    CSV = "csv"
    PDF = "pdf"

    @property
    def extension(self) -> str:
        return _EXTENSIONS[self]


_EXTENSIONS: dict[OutputFormat, str] = {
    OutputFormat.UNSET: "",
    OutputFormat.HTML: ".html",
    OutputFormat.SPREADSHEET: ".xlsx",
    OutputFormat.CSV: ".csv",
    OutputFormat.PDF: ".pdf",
}


class SupportsConfigured(Protocol):
    def is_configured(self) -> bool: ...


def is_valid_address(address: str) -> bool:
    """Return True if the string is a single usable email address."""
    if not address or not address.strip():
        return False
    _, addr = parseaddr(address.strip())
    return bool(addr) and _ADDRESS_RE.match(addr) is not None


@dataclass(frozen=True, kw_only=True)
class _ReportFields:
    output_format: OutputFormat = OutputFormat.UNSET
    parameters: tuple[Parameter, ...] = field(default_factory=tuple)
    recipients: tuple[str, ...] = field(default_factory=tuple)
    save_to_disk: bool = False

    def __post_init__(self) -> None:
        # Definitions are immutable; freeze whatever sequences were passed in.
        object.__setattr__(self, "parameters", tuple(self.parameters))
        object.__setattr__(
            self,
            "recipients",
            tuple(r.strip() for r in self.recipients if r and r.strip()),
        )


@dataclass(frozen=True)
class QueryReport(_ReportFields):
    query: str


@dataclass(frozen=True)
class ProcedureReport(_ReportFields):
    procedure_name: str


ReportDefinition = QueryReport | ProcedureReport


def report_identifier(report: ReportDefinition) -> str:
    """The query text or procedure name a report runs."""
    match report:
        case QueryReport(query=query):
            return query
        case ProcedureReport(procedure_name=name):
            return name
    raise TypeError(f"Not a report definition: {report!r}")


def describe_report(report: ReportDefinition) -> str:
    """Human-readable one-paragraph description used in log lines."""
    match report:
        case QueryReport(query=query):
            text = f"query report '{' '.join(query.split())}'"
        case ProcedureReport(procedure_name=name):
            text = f"procedure report '{name}'"
        case _:
            raise TypeError(f"Not a report definition: {report!r}")

    params = format_parameters(report.parameters)
    if params:
        text += "\n" + params
    return text


def validate_report(
    report: ReportDefinition,
    notifier: SupportsConfigured | None = None,
) -> str | None:
    """Check that a report is runnable.

    Returns None if valid, or the reason it is not.
    """
    identifier = report_identifier(report)
    if not identifier or not identifier.strip():
        match report:
            case QueryReport():
                return "Query text cannot be blank"
            case ProcedureReport():
                return "Procedure name cannot be blank"

    if isinstance(report, ProcedureReport) and not _IDENTIFIER_RE.match(
        report.procedure_name.strip()
    ):
        return (
            f"Procedure name '{report.procedure_name}' must contain only "
            "letters, digits, dots, and underscores"
        )

    if report.recipients and (notifier is None or not notifier.is_configured()):
        return "Report has email recipients but the notifier is not configured"

    return None


def is_valid_report(
    report: ReportDefinition,
    notifier: SupportsConfigured | None = None,
) -> bool:
    return validate_report(report, notifier) is None


def invalid_recipients(report: ReportDefinition) -> list[str]:
    """Recipients that do not parse as an email address."""
    return [r for r in report.recipients if not is_valid_address(r)]
