"""Parameter model for report bind parameters."""

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Any

VALID_DATA_TYPES = (
    "string",
    "integer",
    "float",
    "decimal",
    "date",
    "datetime",
    "boolean",
    "binary",
)


def cast_value(value: str, data_type: str) -> object:
    """Cast a string value to the appropriate Python type for DuckDB binding.

    Raises ValueError on type mismatch.
    """
    if not value and data_type != "string":
        raise ValueError(f"Empty value cannot be cast to {data_type}")

    match data_type:
        case "string":
            return value
        case "integer":
            return int(value)
        case "float":
            return float(value)
        case "decimal":
            return Decimal(value)
        case "date":
            return date.fromisoformat(value)
        case "datetime":
            return datetime.fromisoformat(value)
        case "boolean":
            return value.lower() in ("true", "1", "yes", "on")
        case "binary":
            return bytes.fromhex(value)
        case _:
            return value


@dataclass(frozen=True, slots=True)
class Parameter:
    name: str
    data_type: str
    value: Any

    def __post_init__(self) -> None:
        if not self.bind_name:
            raise ValueError("Parameter name cannot be blank")
        if self.data_type not in VALID_DATA_TYPES:
            raise ValueError(
                f"Parameter '{self.name}' has unknown data type '{self.data_type}'"
            )

    @property
    def bind_name(self) -> str:
        """Name as DuckDB expects it, without any @, $ or : sigil."""
        return self.name.strip().lstrip("@$:")

    def bind_value(self) -> object:
        """Value to hand to the driver.

        Strings are cast to the declared type; anything else is assumed to be
        a native value already.
        """
        if self.value is None or not isinstance(self.value, str):
            return self.value
        try:
            return cast_value(self.value, self.data_type)
        except ValueError as e:
            raise ValueError(f"Parameter '{self.name}': {e}") from e


def format_parameters(parameters: tuple[Parameter, ...]) -> str:
    """Summarize parameters as one line per parameter for log output."""
    if not parameters:
        return ""
    lines = [f"{len(parameters)} parameters:"]
    for p in parameters:
        lines.append(f"  name={p.name} type={p.data_type} value={p.value!r}")
    return "\n".join(lines)
