"""Error taxonomy shared by the manager, its checks and the store."""

from __future__ import annotations

from http import HTTPStatus
from typing import Any


class DirectoryError(Exception):
    """Base exception for directory operations.

    Carries an HTTP-like status so the resource layer can translate it
    into a response without knowing which check produced it.
    """

    status: HTTPStatus = HTTPStatus.INTERNAL_SERVER_ERROR
    kind: str = "directory_error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict[str, Any]:
        """Convert error to a result dictionary."""
        return {
            "success": False,
            "error": self.message,
            "error_type": self.kind,
            "status": int(self.status),
        }


class BadRequest(DirectoryError):
    """Raised when a payload is missing identity/owner data or mismatches its path."""
    status = HTTPStatus.BAD_REQUEST
    kind = "bad_request"


class Forbidden(DirectoryError):
    """Raised when the acting user is not in the required owner group."""
    status = HTTPStatus.FORBIDDEN
    kind = "forbidden"


class NotFound(DirectoryError):
    """Raised when a mandatory target does not exist."""
    status = HTTPStatus.NOT_FOUND
    kind = "not_found"


class StoreFailure(DirectoryError):
    """Raised when the persistence layer fails."""
    status = HTTPStatus.INTERNAL_SERVER_ERROR
    kind = "store_failure"
