"""Exceptions raised by the reconciliation service."""


class ReconciliationError(RuntimeError):
    """Base class for errors surfaced to the caller of a reconciliation run."""


class ValidationError(ReconciliationError):
    """Raised when the upload request is malformed; nothing has been written."""


class DuplicateReportError(ReconciliationError):
    """Raised when a controller report already exists for the requested period."""

    def __init__(self, month: int, year: int, message: str) -> None:
        super().__init__(message)
        self.month = month
        self.year = year


class ParseError(ReconciliationError):
    """Raised when the spreadsheet structure cannot be understood."""


class PersistenceError(ReconciliationError):
    """Raised when a report record cannot be written to storage."""


class AuthorizationError(ReconciliationError):
    def __init__(self, message: str, status_code: int = 401) -> None:
        super().__init__(message)
        self.status_code = status_code
