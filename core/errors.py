"""
core/errors.py -- Failure taxonomy shared by every layer.

Each exception carries the HTTP status and a machine-readable code so the
single handler in api/main.py can turn any of them into the response
envelope. Stores and services raise these; routes never build error
responses by hand.

Layer rule: no imports from api/, auth/, catalog/, or realtime/.
"""

from __future__ import annotations

from typing import Any


class CatalogError(Exception):
    """Base class for every expected failure the API reports to clients."""

    status_code: int = 500
    code: str = "internal_error"
    default_message: str = "Something went wrong!"

    def __init__(self, message: str | None = None, *, errors: list[dict[str, Any]] | None = None) -> None:
        self.message = message or self.default_message
        self.errors = errors
        super().__init__(self.message)


class ValidationFailed(CatalogError):
    """One or more request fields broke their rules. errors lists every violation."""

    status_code = 400
    code = "validation_error"
    default_message = "Validation failed"


class DuplicateEmail(CatalogError):
    status_code = 400
    code = "duplicate_email"
    default_message = "User with this email already exists"


class DuplicateName(CatalogError):
    status_code = 400
    code = "duplicate_name"
    default_message = "Product with this name already exists"


class InvalidCredentials(CatalogError):
    """Login failed. Deliberately identical for unknown email and wrong password."""

    status_code = 401
    code = "invalid_credentials"
    default_message = "Invalid email or password"


class InvalidToken(CatalogError):
    """Bad signature, malformed token or expired token -- never distinguished."""

    status_code = 401
    code = "invalid_token"
    default_message = "Invalid or expired token"


class Unauthenticated(CatalogError):
    status_code = 401
    code = "unauthenticated"
    default_message = "Access denied. No token provided."


class Forbidden(CatalogError):
    status_code = 403
    code = "forbidden"
    default_message = "Access denied."


class InvalidId(CatalogError):
    status_code = 400
    code = "invalid_id"
    default_message = "Invalid ID format"


class NotFound(CatalogError):
    status_code = 404
    code = "not_found"
    default_message = "Resource not found"


class InternalError(CatalogError):
    """Store or unexpected failure. The message shown to clients stays generic."""

    status_code = 500
    code = "internal_error"
    default_message = "Something went wrong!"
