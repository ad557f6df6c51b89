"""Error taxonomy shared by services and the HTTP layer.

Learn: Services raise these; they never raise HTTPException. Each class
carries a stable machine-checkable `code` and the HTTP status it maps to,
so the API layer renders every failure the same way:

    {"code": "duplicate_email", "message": "...", "detail": {...}}

Only InternalError is logged as an error server-side. Everything else is
an expected, user-facing outcome.
"""

from typing import Any, Optional


class PocketbookError(Exception):
    """Base class for every error that crosses a service boundary."""

    status_code: int = 400
    code: str = "error"
    default_message: str = "Request failed"

    def __init__(
        self,
        message: Optional[str] = None,
        *,
        detail: Optional[dict[str, Any]] = None,
    ):
        self.message = message or self.default_message
        self.detail = detail or {}
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        return {"code": self.code, "message": self.message, "detail": self.detail}


class ValidationError(PocketbookError):
    """Malformed input. `detail["fields"]` maps field name → problem."""

    status_code = 400
    code = "validation_error"
    default_message = "Invalid input"

    @classmethod
    def for_fields(cls, fields: dict[str, str]) -> "ValidationError":
        return cls(detail={"fields": fields})


class DuplicateEmail(PocketbookError):
    status_code = 409
    code = "duplicate_email"
    default_message = "Email already registered"


class InvalidCredentials(PocketbookError):
    """Same message whether the email is unknown or the password is wrong."""

    status_code = 401
    code = "invalid_credentials"
    default_message = "Invalid email or password"


class InvalidOrExpiredToken(PocketbookError):
    """Refresh token not on record, already redeemed, or past its expiry."""

    status_code = 401
    code = "invalid_or_expired_token"
    default_message = "Refresh token is invalid or expired"


class InvalidToken(PocketbookError):
    """Refresh token is on record but its signature or subject is wrong."""

    status_code = 401
    code = "invalid_token"
    default_message = "Refresh token is invalid"


class InvalidCurrentPassword(PocketbookError):
    status_code = 400
    code = "invalid_current_password"
    default_message = "Current password is incorrect"


class MissingToken(PocketbookError):
    status_code = 401
    code = "missing_token"
    default_message = "Access token required"


class Unauthorized(PocketbookError):
    """Access token failed verification.

    `reason` is "invalid_signature" or "expired". Both render identically
    to the client; the distinction is kept for logs and tests.
    """

    status_code = 401
    code = "unauthorized"
    default_message = "Access token is invalid or expired"

    def __init__(self, message: Optional[str] = None, *, reason: str = "invalid"):
        super().__init__(message)
        self.reason = reason


class NotFound(PocketbookError):
    """Missing resource — also used for resources owned by someone else."""

    status_code = 404
    code = "not_found"
    default_message = "Resource not found"


class Conflict(PocketbookError):
    status_code = 409
    code = "conflict"
    default_message = "Resource conflict"


class InternalError(PocketbookError):
    status_code = 500
    code = "internal_error"
    default_message = "Internal server error"
