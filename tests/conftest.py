"""
Pytest configuration for sqlreporter.

Provides fixtures for:
- An in-memory DuckDB seeded with a small sales table and a table macro
- Exporters writing under tmp_path
- A configured notifier backed by a fake SMTP transport
"""

from __future__ import annotations

import smtplib
from collections.abc import Generator
from email.message import Message
from pathlib import Path
from typing import Any

import pytest

from sqlreporter.db import ConnectionManager
from sqlreporter.models.report import OutputFormat, QueryReport
from sqlreporter.models.result import ReportResultSet
from sqlreporter.services import email_service
from sqlreporter.services.email_service import Credentials, SmtpNotifier
from sqlreporter.services.export_service import ReportExporter

SALES_ROWS = [
    (1, "north", "10.50", "2024-01-05", True),
    (2, "south", "20.00", "2024-01-06", False),
    (3, "north", "7.25", "2024-02-01", True),
]


@pytest.fixture
def connections() -> Generator[ConnectionManager, None, None]:
    """Connection manager on a seeded in-memory database."""
    manager = ConnectionManager(":memory:")
    assert manager.check_healthy()
    conn = manager.connection
    conn.execute(
        "CREATE TABLE sales (id INTEGER, region VARCHAR, amount DECIMAL(10, 2), "
        "sold_on DATE, paid BOOLEAN)"
    )
    conn.executemany("INSERT INTO sales VALUES (?, ?, ?, ?, ?)", SALES_ROWS)
    conn.execute(
        "CREATE MACRO sales_by_region(r) AS TABLE "
        "SELECT id, region, amount FROM sales WHERE region = r ORDER BY id"
    )
    try:
        yield manager
    finally:
        manager.close()


@pytest.fixture
def exporter(tmp_path: Path) -> ReportExporter:
    return ReportExporter(tmp_path / "out")


@pytest.fixture
def id_name_result() -> ReportResultSet:
    """Two columns, two rows: Id/Name with (1, A) and (2, B)."""
    result = ReportResultSet(
        report=QueryReport("SELECT Id, Name FROM people", output_format=OutputFormat.CSV)
    )
    result.add_column("Id", "INTEGER")
    result.add_column("Name", "VARCHAR")
    result.add_row((1, "A"))
    result.add_row((2, "B"))
    result.finish(3)
    return result


# ---------------------------------------------------------------------------
# Fake SMTP transport
# ---------------------------------------------------------------------------


class FakeSMTP:
    """Stands in for smtplib.SMTP; records what would have been sent."""

    instances: list[FakeSMTP] = []
    fail_for: set[str] = set()

    def __init__(self, host: str, port: int, timeout: float | None = None) -> None:
        self.host = host
        self.port = port
        self.timeout = timeout
        self.logged_in: tuple[str, str] | None = None
        self.started_tls = False
        self.sent: list[tuple[str, Message]] = []
        self.closed = False
        FakeSMTP.instances.append(self)

    def __enter__(self) -> FakeSMTP:
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.closed = True

    def starttls(self) -> None:
        self.started_tls = True

    def login(self, username: str, password: str) -> None:
        self.logged_in = (username, password)

    def send_message(
        self,
        msg: Message,
        from_addr: str | None = None,
        to_addrs: list[str] | None = None,
    ) -> dict[str, Any]:
        recipient = (to_addrs or [msg["To"]])[0]
        if recipient in FakeSMTP.fail_for:
            raise smtplib.SMTPRecipientsRefused({recipient: (550, b"mailbox unavailable")})
        self.sent.append((recipient, msg))
        return {}


@pytest.fixture
def fake_smtp(monkeypatch: pytest.MonkeyPatch) -> Generator[type[FakeSMTP], None, None]:
    FakeSMTP.instances = []
    FakeSMTP.fail_for = set()
    monkeypatch.setattr(email_service.smtplib, "SMTP", FakeSMTP)
    monkeypatch.setattr(email_service.smtplib, "SMTP_SSL", FakeSMTP)
    yield FakeSMTP


@pytest.fixture
def notifier(exporter: ReportExporter) -> SmtpNotifier:
    """Notifier configured against a pretend server."""
    smtp = SmtpNotifier(exporter)
    assert smtp.configure(
        "smtp.example.com",
        587,
        Credentials("reporter", "secret"),
        "reports@example.com",
        starttls=True,
    )
    return smtp
