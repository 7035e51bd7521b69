from __future__ import annotations

import os
from pathlib import Path

import pytest

from sqlreporter.errors import (
    InvalidOutputDirectoryError,
    MissingTemplateError,
    OutputFormatNotSetError,
)
from sqlreporter.models.report import OutputFormat, QueryReport
from sqlreporter.models.result import ReportResultSet
from sqlreporter.services import export_service
from sqlreporter.services.export_service import (
    DEFAULT_OUTPUT_FOLDER,
    ReportExporter,
    render_csv,
    render_html,
    validate_output_directory,
)

NL = os.linesep


def _result(*rows: tuple[object, ...], fmt: OutputFormat = OutputFormat.CSV) -> ReportResultSet:
    result = ReportResultSet(report=QueryReport("SELECT Id, Name FROM t", output_format=fmt))
    result.add_column("Id", "INTEGER")
    result.add_column("Name", "VARCHAR")
    for row in rows:
        result.add_row(row)
    return result


# ---------------------------------------------------------------------------
# CSV
# ---------------------------------------------------------------------------


def test_render_csv_with_columns(id_name_result: ReportResultSet) -> None:
    assert render_csv(id_name_result, include_columns=True) == f"Id,Name{NL}1,A{NL}2,B{NL}"


def test_render_csv_without_columns(id_name_result: ReportResultSet) -> None:
    assert render_csv(id_name_result) == f"1,A{NL}2,B{NL}"


def test_render_csv_nulls_and_delimiter() -> None:
    result = _result((1, None), (None, "x"))
    assert render_csv(result, delimiter=";") == f"1;{NL};x{NL}"


def test_render_csv_does_not_quote() -> None:
    result = _result((1, "a,b"))
    assert render_csv(result) == f"1,a,b{NL}"


def test_export_csv_writes_exact_bytes(
    exporter: ReportExporter, id_name_result: ReportResultSet
) -> None:
    path = exporter.export_csv(id_name_result, include_columns=True, file_name="people.csv")
    assert path == exporter.output_directory / "people.csv"
    assert path.read_bytes() == f"Id,Name{NL}1,A{NL}2,B{NL}".encode()


# ---------------------------------------------------------------------------
# HTML
# ---------------------------------------------------------------------------


def test_render_html_default_template(id_name_result: ReportResultSet) -> None:
    page = render_html(id_name_result)
    assert "2 columns, 2 rows" in page
    assert page.count('<td class="tg-hmp3">') == 2
    assert page.count('<td class="tg-0lax">') == 4
    # One header row plus one per record
    assert page.count("<tr>") == 3
    assert '<td class="tg-hmp3">Name</td>' in page
    assert f'\t<td class="tg-0lax">B</td>{NL}</tr>' in page
    for token in ("[COLCOUNT]", "[ROWCOUNT]", "[HEADERS]", "[RECORDS]"):
        assert token not in page


def test_render_html_escapes_values() -> None:
    page = render_html(_result((1, "<b>Tom & Jerry</b>")))
    assert "&lt;b&gt;Tom &amp; Jerry&lt;/b&gt;" in page
    assert "<b>Tom" not in page


def test_render_html_custom_template_drops_classes(
    tmp_path: Path, id_name_result: ReportResultSet
) -> None:
    template = tmp_path / "mine.html"
    template.write_text(
        "<h1>[ROWCOUNT]</h1><table><tr>[HEADERS]</tr>[RECORDS]</table>", encoding="utf-8"
    )
    page = render_html(id_name_result, template)
    assert page.startswith("<h1>2</h1>")
    assert f"\t<td>Id</td>{NL}" in page
    assert "<tr>\t<td>1</td>" in page
    assert "class=" not in page


def test_render_html_blank_template(tmp_path: Path, id_name_result: ReportResultSet) -> None:
    template = tmp_path / "blank.html"
    template.write_text("  \n ", encoding="utf-8")
    with pytest.raises(MissingTemplateError):
        render_html(id_name_result, template)


def test_export_html_file(exporter: ReportExporter, id_name_result: ReportResultSet) -> None:
    path = exporter.export_html(id_name_result, file_name="people.html")
    assert "2 columns, 2 rows" in path.read_text(encoding="utf-8")


# ---------------------------------------------------------------------------
# Files and directories
# ---------------------------------------------------------------------------


def test_overwrite_replaces_existing_file(exporter: ReportExporter) -> None:
    exporter.export_csv(_result((1, "old")), file_name="r.csv")
    path = exporter.export_csv(_result((2, "new")), file_name="r.csv", overwrite=True)
    assert path.read_text(encoding="utf-8") == f"2,new{NL}"


def test_no_overwrite_keeps_existing_file(exporter: ReportExporter) -> None:
    path = exporter.export_csv(_result((1, "old")), file_name="r.csv")
    with pytest.raises(FileExistsError):
        exporter.export_csv(_result((2, "new")), file_name="r.csv", overwrite=False)
    assert path.read_text(encoding="utf-8") == f"1,old{NL}"


def test_failed_workbook_write_leaves_no_file(
    exporter: ReportExporter, id_name_result: ReportResultSet, monkeypatch: pytest.MonkeyPatch
) -> None:
    stale = exporter.export_xlsx(id_name_result, file_name="r.xlsx")

    def broken_save(workbook, target, fmt):
        target.write(b"partial")
        raise RuntimeError("renderer failed")

    monkeypatch.setattr(export_service, "save_workbook", broken_save)
    with pytest.raises(RuntimeError, match="renderer failed"):
        exporter.export_xlsx(id_name_result, file_name="r.xlsx", overwrite=True)
    assert not stale.exists()

    with pytest.raises(RuntimeError):
        exporter.export_pdf(id_name_result, file_name="fresh.pdf")
    assert not (exporter.output_directory / "fresh.pdf").exists()


def test_failed_exclusive_create_keeps_existing_workbook(
    exporter: ReportExporter, id_name_result: ReportResultSet
) -> None:
    path = exporter.export_xlsx(id_name_result, file_name="r.xlsx")
    before = path.read_bytes()
    with pytest.raises(FileExistsError):
        exporter.export_xlsx(id_name_result, file_name="r.xlsx", overwrite=False)
    assert path.read_bytes() == before


def test_random_file_name_uses_format_extension(
    exporter: ReportExporter, id_name_result: ReportResultSet
) -> None:
    first = exporter.export_csv(id_name_result)
    second = exporter.export_csv(id_name_result, file_name="   ")
    assert first.suffix == ".csv" and second.suffix == ".csv"
    assert len(first.stem) == 36
    assert first != second


def test_validate_output_directory() -> None:
    assert validate_output_directory("/tmp/reports") is None
    assert validate_output_directory("reports/2024") is None
    error = validate_output_directory("bad<dir>")
    assert error is not None and "invalid characters" in error


def test_invalid_output_directory_is_rejected(tmp_path: Path) -> None:
    exporter = ReportExporter(tmp_path / "ok")
    with pytest.raises(InvalidOutputDirectoryError):
        exporter.set_output_directory(str(tmp_path / "what?"))
    assert exporter.output_directory == tmp_path / "ok"
    assert not (tmp_path / "what?").exists()


def test_output_directory_is_created(tmp_path: Path) -> None:
    target = tmp_path / "a" / "b"
    exporter = ReportExporter()
    assert exporter.set_output_directory(f"  {target}  ") == target
    assert target.is_dir()


def test_blank_output_directory_resets_to_default(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.chdir(tmp_path)
    exporter = ReportExporter(tmp_path / "custom")
    exporter.set_output_directory("")
    assert exporter.output_directory == Path.cwd() / DEFAULT_OUTPUT_FOLDER
    assert exporter.output_directory.is_dir()


# ---------------------------------------------------------------------------
# Dispatch
# ---------------------------------------------------------------------------


def test_export_uses_report_format(exporter: ReportExporter) -> None:
    assert exporter.export(_result((1, "A"), fmt=OutputFormat.HTML)).suffix == ".html"
    assert exporter.export(_result((1, "A"), fmt=OutputFormat.CSV)).suffix == ".csv"
    xlsx = exporter.export(_result((1, "A"), fmt=OutputFormat.SPREADSHEET))
    assert xlsx.read_bytes()[:2] == b"PK"
    pdf = exporter.export(_result((1, "A"), fmt=OutputFormat.PDF))
    assert pdf.read_bytes().startswith(b"%PDF")


def test_export_format_override(exporter: ReportExporter) -> None:
    result = _result((1, "A"), fmt=OutputFormat.UNSET)
    path = exporter.export(result, OutputFormat.CSV, include_columns=True)
    assert path.read_text(encoding="utf-8") == f"Id,Name{NL}1,A{NL}"


def test_export_unset_format(exporter: ReportExporter) -> None:
    with pytest.raises(OutputFormatNotSetError):
        exporter.export(_result((1, "A"), fmt=OutputFormat.UNSET))
