"""Export service for writing report results to files."""

import html
import logging
import os
import uuid as uuid_lib
from importlib import resources
from pathlib import Path
from typing import IO, Any

from sqlreporter.errors import (
    InvalidOutputDirectoryError,
    MissingTemplateError,
    OutputFormatNotSetError,
    UnsupportedFormatError,
)
from sqlreporter.models.report import OutputFormat
from sqlreporter.models.result import ReportResultSet
from sqlreporter.services.workbook_service import (
    SheetPlacement,
    build_workbook,
    save_workbook,
)

log = logging.getLogger(__name__)

DEFAULT_OUTPUT_FOLDER = "GeneralSQLReporterOutputs"

_INVALID_PATH_CHARS = frozenset('\0<>"|?*') | frozenset(chr(c) for c in range(1, 32))

_HEADER_CELL = '\t<td class="tg-hmp3">[COL]</td>'
_VALUE_CELL = '\t<td class="tg-0lax">[VAL]</td>'


def default_output_directory() -> Path:
    return Path.cwd() / DEFAULT_OUTPUT_FOLDER


def validate_output_directory(path: str) -> str | None:
    """Validate an output directory path.

    Returns None if valid, or an error message if invalid.
    """
    bad = sorted({c for c in path if c in _INVALID_PATH_CHARS})
    if bad:
        return f"Output directory contains invalid characters: {', '.join(repr(c) for c in bad)}"
    return None


# ---------------------------------------------------------------------------
# Renderers (pure)
# ---------------------------------------------------------------------------


def load_html_template(template_path: str | os.PathLike[str] | None = None) -> str:
    """Read the caller's HTML template, or the bundled one."""
    if template_path is not None and str(template_path).strip():
        return Path(str(template_path).strip()).read_text(encoding="utf-8")
    return resources.files("sqlreporter").joinpath("templates/report.html").read_text(
        encoding="utf-8"
    )


def render_html(
    result: ReportResultSet,
    template_path: str | os.PathLike[str] | None = None,
) -> str:
    """Fill an HTML template with the result's headers and records.

    Raises MissingTemplateError if the template content is blank.
    """
    using_template = template_path is not None and bool(str(template_path).strip())
    base_html = load_html_template(template_path)
    if not base_html.strip():
        raise MissingTemplateError(
            f"HTML template {'at ' + str(template_path) if using_template else 'resource'} is blank"
        )

    header_cell = _HEADER_CELL
    value_cell = _VALUE_CELL
    if using_template:
        # Caller templates bring their own styling
        header_cell = header_cell.replace(' class="tg-hmp3"', "")
        value_cell = value_cell.replace(' class="tg-0lax"', "")

    headers = "".join(
        header_cell.replace("[COL]", html.escape(col.name)) + os.linesep
        for col in result.columns
    )
    records = "".join(
        "<tr>"
        + "".join(
            value_cell.replace("[VAL]", html.escape(cell.text)) + os.linesep
            for cell in row.values
        )
        + "</tr>"
        for row in result.rows
    )

    base_html = base_html.replace("[COLCOUNT]", str(result.column_count))
    base_html = base_html.replace("[ROWCOUNT]", str(result.row_count))
    base_html = base_html.replace("[HEADERS]", headers)
    return base_html.replace("[RECORDS]", records)


def render_csv(
    result: ReportResultSet,
    include_columns: bool = False,
    delimiter: str = ",",
) -> str:
    """Join the result into delimited lines.

    Values are not quoted or escaped: a value containing the delimiter or a
    line break produces a malformed file.
    """
    lines: list[str] = []
    if include_columns:
        lines.append(delimiter.join(result.column_names))
    for row in result.rows:
        lines.append(delimiter.join(cell.text for cell in row.values))
    return "".join(line + os.linesep for line in lines)


# ---------------------------------------------------------------------------
# File exporter
# ---------------------------------------------------------------------------


class ReportExporter:
    """Writes result sets into files under one output directory."""

    def __init__(self, output_directory: str | os.PathLike[str] | None = None) -> None:
        self.output_directory = default_output_directory()
        if output_directory is not None:
            self.set_output_directory(str(output_directory))

    def set_output_directory(self, output_directory: str) -> Path:
        """Change where reports are written; blank resets to the default.

        Raises InvalidOutputDirectoryError for invalid path characters.
        """
        trimmed = output_directory.strip()
        if not trimmed:
            self.output_directory = default_output_directory()
        else:
            error = validate_output_directory(trimmed)
            if error:
                raise InvalidOutputDirectoryError(error)
            self.output_directory = Path(trimmed)

        self.ensure_output_directory()
        return self.output_directory

    def ensure_output_directory(self) -> Path:
        self.output_directory.mkdir(parents=True, exist_ok=True)
        return self.output_directory

    def resolve_path(self, file_name: str | None, fmt: OutputFormat) -> Path:
        """Target path for an export; blank names get a random unique one."""
        self.ensure_output_directory()
        name = (file_name or "").strip()
        if not name:
            name = f"{uuid_lib.uuid4()}{fmt.extension}"
        return self.output_directory / name

    def _open_target(self, path: Path, overwrite: bool, binary: bool) -> IO[Any]:
        # Without overwrite an existing file makes the exclusive create fail.
        if overwrite and path.exists():
            path.unlink()
        mode = ("w" if overwrite else "x") + ("b" if binary else "")
        if binary:
            return path.open(mode)
        return path.open(mode, encoding="utf-8", newline="")

    def _write_text(self, path: Path, content: str, overwrite: bool) -> Path:
        target = self._open_target(path, overwrite, binary=False)
        try:
            with target as f:
                f.write(content)
        except Exception:
            path.unlink(missing_ok=True)
            raise
        log.info("Wrote %s", path)
        return path

    # ------------------------------------------------------------------
    # Formats
    # ------------------------------------------------------------------

    def export_html(
        self,
        result: ReportResultSet,
        template_path: str | os.PathLike[str] | None = None,
        overwrite: bool = True,
        file_name: str | None = None,
    ) -> Path:
        content = render_html(result, template_path)
        path = self.resolve_path(file_name, OutputFormat.HTML)
        return self._write_text(path, content, overwrite)

    def export_csv(
        self,
        result: ReportResultSet,
        include_columns: bool = False,
        overwrite: bool = True,
        file_name: str | None = None,
        delimiter: str = ",",
    ) -> Path:
        content = render_csv(result, include_columns, delimiter)
        path = self.resolve_path(file_name, OutputFormat.CSV)
        return self._write_text(path, content, overwrite)

    def export_xlsx(
        self,
        result: ReportResultSet,
        template_path: str | os.PathLike[str] | None = None,
        overwrite: bool = True,
        file_name: str | None = None,
        placement: SheetPlacement | None = None,
    ) -> Path:
        return self._export_workbook(
            result, OutputFormat.SPREADSHEET, template_path, overwrite, file_name, placement
        )

    def export_pdf(
        self,
        result: ReportResultSet,
        template_path: str | os.PathLike[str] | None = None,
        overwrite: bool = True,
        file_name: str | None = None,
        placement: SheetPlacement | None = None,
    ) -> Path:
        return self._export_workbook(
            result, OutputFormat.PDF, template_path, overwrite, file_name, placement
        )

    def _export_workbook(
        self,
        result: ReportResultSet,
        fmt: OutputFormat,
        template_path: str | os.PathLike[str] | None,
        overwrite: bool,
        file_name: str | None,
        placement: SheetPlacement | None,
    ) -> Path:
        workbook = build_workbook(result, template_path, placement or SheetPlacement())
        path = self.resolve_path(file_name, fmt)
        target = self._open_target(path, overwrite, binary=True)
        try:
            with target as f:
                save_workbook(workbook, f, fmt)
        except Exception:
            # Drop the partial file; the target was created by this call
            path.unlink(missing_ok=True)
            raise
        log.info("Wrote %s", path)
        return path

    def export(
        self,
        result: ReportResultSet,
        fmt: OutputFormat | None = None,
        **options: Any,
    ) -> Path:
        """Export in the given format, defaulting to the report's own."""
        fmt = fmt or result.report.output_format
        match fmt:
            case OutputFormat.UNSET:
                raise OutputFormatNotSetError("Report output format has not been set")
            case OutputFormat.HTML:
                return self.export_html(result, **options)
            case OutputFormat.CSV:
                return self.export_csv(result, **options)
            case OutputFormat.SPREADSHEET:
                return self.export_xlsx(result, **options)
            case OutputFormat.PDF:
                return self.export_pdf(result, **options)
            case _:
                raise UnsupportedFormatError(f"Unsupported format: {fmt}")
