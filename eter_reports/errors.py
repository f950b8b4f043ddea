"""
Erreurs métier / Domain errors.
Chaque erreur porte un code stable lisible par machine et un statut HTTP.
Each error carries a stable machine-readable code and an HTTP status.
"""

from typing import Any


class AppError(Exception):
    """Erreur applicative de base / Base application error."""

    status_code: int = 500
    code: str = "INTERNAL_ERROR"

    def __init__(self, message: str, code: str | None = None, details: Any = None):
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code
        self.details = details

    def to_dict(self) -> dict:
        body = {"success": False, "message": self.message, "code": self.code}
        if self.details is not None:
            body["details"] = self.details
        return body


class ValidationFailed(AppError):
    status_code = 400
    code = "VALIDATION_ERROR"


class NotFoundError(AppError):
    status_code = 404
    code = "NOT_FOUND"


class ConflictError(AppError):
    status_code = 409
    code = "CONFLICT"


class AuthenticationError(AppError):
    status_code = 401
    code = "INVALID_CREDENTIALS"


class PermissionDenied(AppError):
    status_code = 403
    code = "INSUFFICIENT_PERMISSIONS"


class AccountLockedError(AppError):
    status_code = 423
    code = "ACCOUNT_LOCKED"

    def __init__(self, lock_until):
        super().__init__(
            "Account is temporarily locked due to too many failed login attempts",
            details={"lock_until": lock_until.isoformat(timespec="seconds")},
        )
        self.lock_until = lock_until


class ServiceUnavailable(AppError):
    status_code = 503
    code = "DATABASE_ERROR"
