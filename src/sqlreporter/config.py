"""Settings for the reporter, read from ``SQLREPORTER_*`` environment variables.

Each setting is a ``ConfigEntry`` in ``REGISTRY``; anything not listed there
is not a setting.  ``load_settings`` resolves the whole registry at once for
``ReporterClient.from_settings``.
"""

import os
from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum

SettingValue = str | int | bool | list[str]

_TRUE_WORDS = frozenset({"true", "1", "yes", "on"})
_FALSE_WORDS = frozenset({"false", "0", "no", "off", ""})


class ConfigType(Enum):
    STRING = "string"
    INT = "int"
    BOOL = "bool"
    STRING_LIST = "string_list"


@dataclass(frozen=True, slots=True)
class ConfigEntry:
    key: str
    type: ConfigType
    default: SettingValue
    description: str
    secret: bool = False

    @property
    def section(self) -> str:
        return self.key.partition(".")[0]


REGISTRY: list[ConfigEntry] = [
    ConfigEntry(
        "database.connection_string",
        ConfigType.STRING,
        "",
        "DuckDB database path (or :memory:) reports run against",
    ),
    ConfigEntry(
        "output.directory",
        ConfigType.STRING,
        "",
        "Directory exported reports are written to (blank = ./GeneralSQLReporterOutputs)",
    ),
    ConfigEntry("smtp.host", ConfigType.STRING, "", "SMTP server host"),
    ConfigEntry("smtp.port", ConfigType.INT, 25, "SMTP server port"),
    ConfigEntry("smtp.username", ConfigType.STRING, "", "SMTP login user"),
    ConfigEntry("smtp.password", ConfigType.STRING, "", "SMTP login password", secret=True),
    ConfigEntry("smtp.from_address", ConfigType.STRING, "", "Address reports are sent from"),
    ConfigEntry("smtp.use_ssl", ConfigType.BOOL, False, "Connect with implicit TLS (SMTPS)"),
    ConfigEntry("smtp.starttls", ConfigType.BOOL, False, "Upgrade plain SMTP with STARTTLS"),
    ConfigEntry("smtp.timeout", ConfigType.INT, 30, "SMTP socket timeout in seconds"),
    ConfigEntry(
        "smtp.default_recipients",
        ConfigType.STRING_LIST,
        [],
        "Recipients for CLI runs when no --email is given",
    ),
    ConfigEntry("logging.level", ConfigType.STRING, "INFO", "Log level for the CLI"),
]

ENV_MAP: dict[str, str] = {
    "database.connection_string": "SQLREPORTER_CONNECTION_STRING",
    "output.directory": "SQLREPORTER_OUTPUT_DIR",
    "smtp.host": "SQLREPORTER_SMTP_HOST",
    "smtp.port": "SQLREPORTER_SMTP_PORT",
    "smtp.username": "SQLREPORTER_SMTP_USERNAME",
    "smtp.password": "SQLREPORTER_SMTP_PASSWORD",
    "smtp.from_address": "SQLREPORTER_SMTP_FROM",
    "smtp.use_ssl": "SQLREPORTER_SMTP_USE_SSL",
    "smtp.starttls": "SQLREPORTER_SMTP_STARTTLS",
    "smtp.timeout": "SQLREPORTER_SMTP_TIMEOUT",
    "smtp.default_recipients": "SQLREPORTER_SMTP_RECIPIENTS",
    "logging.level": "SQLREPORTER_LOG_LEVEL",
}

_ENTRIES_BY_KEY = {entry.key: entry for entry in REGISTRY}


def resolve_entry(key: str) -> ConfigEntry | None:
    return _ENTRIES_BY_KEY.get(key)


def parse_value(entry: ConfigEntry, raw: str) -> SettingValue:
    """Convert an environment string to the entry's type.

    Raises ValueError when the text does not fit the type.
    """
    text = raw.strip()
    match entry.type:
        case ConfigType.INT:
            try:
                return int(text)
            except ValueError as e:
                raise ValueError(f"{entry.key} expects an integer, got {raw!r}") from e
        case ConfigType.BOOL:
            word = text.lower()
            if word in _TRUE_WORDS:
                return True
            if word in _FALSE_WORDS:
                return False
            raise ValueError(f"{entry.key} expects true or false, got {raw!r}")
        case ConfigType.STRING_LIST:
            return [item for item in (part.strip() for part in text.split(",")) if item]
        case _:
            return raw


def serialize_value(value: SettingValue) -> str:
    """Render a typed value the way it would be written in the environment."""
    match value:
        case bool():
            return "true" if value else "false"
        case list():
            return ", ".join(value)
        case _:
            return str(value)


def raw_value(key: str, environ: Mapping[str, str] | None = None) -> str | None:
    """The environment text for a setting, or None when it is not set."""
    var = ENV_MAP.get(key)
    if var is None:
        return None
    return (os.environ if environ is None else environ).get(var)


def effective_value(
    entry: ConfigEntry,
    environ: Mapping[str, str] | None = None,
) -> tuple[SettingValue, str]:
    """Typed value of a setting and its source, ``"env"`` or ``"default"``."""
    raw = raw_value(entry.key, environ)
    if raw is None:
        return entry.default, "default"
    return parse_value(entry, raw), "env"


def load_settings(environ: Mapping[str, str] | None = None) -> dict[str, SettingValue]:
    """Resolve every registered setting; environment values win over defaults."""
    return {entry.key: effective_value(entry, environ)[0] for entry in REGISTRY}
