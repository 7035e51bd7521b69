"""Exceptions raised by the reporter."""


class ReporterError(Exception):
    """Base exception for the SQL reporter."""


class InvalidReportError(ReporterError, ValueError):
    """Raised when a report definition is not runnable."""


class ConnectionUnavailableError(ReporterError):
    """Raised when the database connection cannot be opened."""


class MissingTemplateError(ReporterError):
    """Raised when an export template resolves to blank content."""


class NoRecipientsError(ReporterError, ValueError):
    """Raised when emailing a report that has no recipients."""


class OutputFormatNotSetError(ReporterError, ValueError):
    """Raised when a report's output format is needed but unset."""


class UnsupportedFormatError(ReporterError, ValueError):
    """Raised for an output format with no export path."""


class InvalidOutputDirectoryError(ReporterError, ValueError):
    """Raised when the output directory contains invalid path characters."""


class DatabaseFailureError(ReporterError):
    """Raised when the database driver fails while running a report."""


class TransportFailureError(ReporterError):
    """Raised when the mail transport fails to deliver a message."""


class InvalidRecipientError(ReporterError, ValueError):
    """Raised when a recipient is not a usable email address."""
