"""In-memory result set produced by a single report run."""

from collections.abc import Iterator, Sequence
from dataclasses import dataclass, field
from datetime import date, time, timedelta
from decimal import Decimal
from enum import Enum
from typing import Any

from sqlreporter.models.report import ReportDefinition


class CellKind(Enum):
    TEXT = "text"
    INTEGER = "integer"
    FLOAT = "float"
    BOOLEAN = "boolean"
    DATETIME = "datetime"
    BINARY = "binary"
    NULL = "null"

    @staticmethod
    def of(value: Any) -> "CellKind":
        """Classify a native driver value."""
        if value is None:
            return CellKind.NULL
        # bool is a subclass of int
        if isinstance(value, bool):
            return CellKind.BOOLEAN
        if isinstance(value, int):
            return CellKind.INTEGER
        if isinstance(value, (float, Decimal)):
            return CellKind.FLOAT
        if isinstance(value, (date, time, timedelta)):
            return CellKind.DATETIME
        if isinstance(value, (bytes, bytearray, memoryview)):
            return CellKind.BINARY
        return CellKind.TEXT


@dataclass(frozen=True, slots=True)
class ColumnDescriptor:
    index: int
    name: str
    type_name: str


@dataclass(frozen=True, slots=True)
class CellValue:
    row_index: int
    column_index: int
    value: Any
    kind: CellKind
    type_name: str

    @staticmethod
    def from_native(row_index: int, column_index: int, value: Any) -> "CellValue":
        return CellValue(
            row_index=row_index,
            column_index=column_index,
            value=value,
            kind=CellKind.of(value),
            type_name=type(value).__name__,
        )

    @property
    def text(self) -> str:
        """Default string form used by the text exporters."""
        match self.kind:
            case CellKind.NULL:
                return ""
            case CellKind.BINARY:
                return bytes(self.value).hex()
            case _:
                return str(self.value)


@dataclass(frozen=True, slots=True)
class ResultRow:
    index: int
    values: tuple[CellValue, ...]


@dataclass
class ReportResultSet:
    """Columns and rows captured from one report execution.

    Populated columns first, then rows; only ``elapsed_ms`` is set after the
    run completes.
    """

    report: ReportDefinition
    columns: list[ColumnDescriptor] = field(default_factory=list)
    rows: list[ResultRow] = field(default_factory=list)
    elapsed_ms: int | None = None

    @property
    def column_count(self) -> int:
        return len(self.columns)

    @property
    def row_count(self) -> int:
        return len(self.rows)

    @property
    def column_names(self) -> list[str]:
        return [c.name for c in self.columns]

    def add_column(self, name: str, type_name: str) -> ColumnDescriptor:
        if self.rows:
            raise RuntimeError("Columns cannot be added after rows")
        column = ColumnDescriptor(index=len(self.columns), name=name, type_name=type_name)
        self.columns.append(column)
        return column

    def add_row(self, values: Sequence[Any]) -> ResultRow:
        if len(values) != len(self.columns):
            raise ValueError(
                f"Row has {len(values)} values but the result has {len(self.columns)} columns"
            )
        row_index = len(self.rows)
        row = ResultRow(
            index=row_index,
            values=tuple(
                CellValue.from_native(row_index, col_index, value)
                for col_index, value in enumerate(values)
            ),
        )
        self.rows.append(row)
        return row

    def finish(self, elapsed_ms: int) -> None:
        if self.elapsed_ms is not None:
            raise RuntimeError("Elapsed time has already been recorded")
        self.elapsed_ms = elapsed_ms

    def iter_values(self) -> Iterator[tuple[Any, ...]]:
        """Yield each row as a tuple of native values."""
        for row in self.rows:
            yield tuple(cell.value for cell in row.values)
