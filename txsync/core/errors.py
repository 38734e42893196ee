"""Exceptions raised by the remote platform and workspace clients."""

from typing import Any


class TransifexAPIError(Exception):
    """Exception raised for Transifex API errors."""

    def __init__(self, message: str, status_code: int | None = None, response: Any = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.response = response

    @property
    def is_auth_error(self) -> bool:
        """True for an invalid or expired token."""
        return self.status_code == 401

    @property
    def is_transient(self) -> bool:
        """True for server errors and transport failures, which may be retried."""
        return self.status_code is None or self.status_code >= 500


class WorkspaceError(Exception):
    """Exception raised when the document workspace cannot be read or written."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class ExportError(WorkspaceError):
    """Exported content is not a valid document archive."""
