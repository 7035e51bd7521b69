"""Email service for sending report results over SMTP."""

import asyncio
import logging
import mimetypes
import smtplib
from dataclasses import dataclass
from datetime import date
from email import encoders
from email.mime.base import MIMEBase
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from pathlib import Path

from sqlreporter.errors import (
    InvalidRecipientError,
    NoRecipientsError,
    OutputFormatNotSetError,
    TransportFailureError,
    UnsupportedFormatError,
)
from sqlreporter.models.report import (
    OutputFormat,
    describe_report,
    invalid_recipients,
    is_valid_address,
)
from sqlreporter.models.result import ReportResultSet
from sqlreporter.services.export_service import ReportExporter

log = logging.getLogger(__name__)

DEFAULT_PORT = 25
DEFAULT_BODY = "A report has been generated and attached to this email for your viewing."

# Formats the notifier knows how to turn into an attachment
ATTACHMENT_FORMATS = frozenset(
    {OutputFormat.HTML, OutputFormat.CSV, OutputFormat.SPREADSHEET, OutputFormat.PDF}
)


@dataclass(frozen=True, slots=True)
class Credentials:
    username: str
    password: str


def default_subject() -> str:
    return f"Report Results - {date.today().strftime('%x')}"


class SmtpNotifier:
    """Emails report results, one message per recipient.

    Not safe for concurrent reconfiguration: callers serialize ``configure``
    against sends.
    """

    def __init__(
        self,
        exporter: ReportExporter | None = None,
        attachment_formats: frozenset[OutputFormat] = ATTACHMENT_FORMATS,
    ) -> None:
        self.exporter = exporter or ReportExporter()
        self.attachment_formats = attachment_formats
        self.host = ""
        self.port = DEFAULT_PORT
        self.credentials: Credentials | None = None
        self.from_address = ""
        self.use_ssl = False
        self.starttls = False
        self.timeout = 30

    def configure(
        self,
        host: str,
        port: int,
        credentials: Credentials | None,
        from_address: str,
        use_ssl: bool = False,
        starttls: bool = False,
        timeout: int = 30,
    ) -> bool:
        """Set the SMTP server details; returns whether they are usable."""
        self.host = host.strip()
        self.port = port
        self.credentials = credentials
        self.from_address = from_address.strip()
        self.use_ssl = use_ssl
        self.starttls = starttls
        self.timeout = timeout
        return self.is_configured()

    def is_configured(self) -> bool:
        """Check whether the notifier has been set up to send.

        Reports with recipients are only valid when this is True.
        """
        if not self.host and self.port == DEFAULT_PORT:
            # Nothing has been changed from the defaults
            return False
        if self.credentials is None:
            return False
        if not is_valid_address(self.from_address):
            log.debug("From address %r is not a valid email address", self.from_address)
            return False
        return True

    # ------------------------------------------------------------------
    # Message building
    # ------------------------------------------------------------------

    def resolve_attachment(
        self,
        result: ReportResultSet,
        attachment_path: str | Path | None = None,
    ) -> Path:
        """Use the given attachment or export one in the report's format."""
        if attachment_path is not None and str(attachment_path).strip():
            return Path(attachment_path)

        fmt = result.report.output_format
        if fmt == OutputFormat.UNSET:
            raise OutputFormatNotSetError("Report output format has not been set")
        if fmt not in self.attachment_formats:
            raise UnsupportedFormatError(f"Cannot attach reports in {fmt.value} format")
        return self.exporter.export(result, fmt)

    def build_message(
        self,
        recipient: str,
        subject: str,
        body: str,
        is_html: bool,
        attachment: Path,
    ) -> MIMEMultipart:
        msg = MIMEMultipart()
        msg["From"] = self.from_address
        msg["To"] = recipient
        msg["Subject"] = subject
        msg.attach(MIMEText(body, "html" if is_html else "plain"))

        content_type, _ = mimetypes.guess_type(attachment.name)
        maintype, subtype = (content_type or "application/octet-stream").split("/", 1)
        part = MIMEBase(maintype, subtype)
        part.set_payload(attachment.read_bytes())
        encoders.encode_base64(part)
        part.add_header("Content-Disposition", "attachment", filename=attachment.name)
        msg.attach(part)
        return msg

    def _prepare(
        self,
        result: ReportResultSet,
        subject: str | None,
        body: str | None,
        is_html: bool,
        attachment_path: str | Path | None,
    ) -> list[tuple[str, MIMEMultipart]]:
        recipients = result.report.recipients
        if not recipients:
            raise NoRecipientsError("Email recipients was empty")
        bad = invalid_recipients(result.report)
        if bad:
            raise InvalidRecipientError(f"Invalid recipient address(es): {', '.join(bad)}")

        attachment = self.resolve_attachment(result, attachment_path)
        subject = subject or default_subject()
        body = body if body is not None else DEFAULT_BODY
        return [
            (recipient, self.build_message(recipient, subject, body, is_html, attachment))
            for recipient in recipients
        ]

    # ------------------------------------------------------------------
    # Delivery
    # ------------------------------------------------------------------

    def _connect(self) -> smtplib.SMTP:
        if self.use_ssl:
            smtp: smtplib.SMTP = smtplib.SMTP_SSL(self.host, self.port, timeout=self.timeout)
        else:
            smtp = smtplib.SMTP(self.host, self.port, timeout=self.timeout)
            if self.starttls:
                smtp.starttls()
        if self.credentials is not None:
            smtp.login(self.credentials.username, self.credentials.password)
        return smtp

    def _deliver(self, result: ReportResultSet, messages: list[tuple[str, MIMEMultipart]]) -> int:
        """Send every message over one session; stops at the first failure."""
        sent = 0
        recipient = ""
        try:
            with self._connect() as smtp:
                for recipient, message in messages:
                    smtp.send_message(message, from_addr=self.from_address, to_addrs=[recipient])
                    sent += 1
                    log.info("Email sent to %s", recipient)
        except (smtplib.SMTPException, OSError) as e:
            target = recipient or self.host
            log.error(
                "Failed to send %s to %s: %s",
                describe_report(result.report).splitlines()[0],
                target,
                e,
            )
            raise TransportFailureError(f"Failed to send email to {target}: {e}") from e
        return sent

    def send(
        self,
        result: ReportResultSet,
        subject: str | None = None,
        body: str | None = None,
        is_html: bool = False,
        attachment_path: str | Path | None = None,
    ) -> bool:
        """Email the result to every recipient of its report.

        Returns True only if every recipient was sent to.
        """
        messages = self._prepare(result, subject, body, is_html, attachment_path)
        return self._deliver(result, messages) == len(messages)

    async def send_async(
        self,
        result: ReportResultSet,
        subject: str | None = None,
        body: str | None = None,
        is_html: bool = False,
        attachment_path: str | Path | None = None,
    ) -> bool:
        messages = self._prepare(result, subject, body, is_html, attachment_path)
        sent = await asyncio.to_thread(self._deliver, result, messages)
        return sent == len(messages)
