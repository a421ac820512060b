"""
core/errors.py -- Error taxonomy shared by the guard, the mutators and the API.

Every failure a mutator can produce is one of these classes. Each carries the
machine-readable code, the status class and the HTTP status it maps to, so the
API layer needs a single exception handler (api/main.py) to turn any of them
into the structured error envelope. Nothing here imports FastAPI -- the
services and stores stay framework-free.

Forbidden is one class for both role and department-scope
denials; callers see the same message either way.
"""

from __future__ import annotations

from typing import Any


class AppError(Exception):
    code: str = "app_error"
    status_class: str = "BadRequest"
    status_code: int = 400
    message: str = "Application error."

    def __init__(self, message: str | None = None, *, detail: Any | None = None) -> None:
        if message is not None:
            self.message = message
        self.detail = detail
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        return {
            "code": self.code,
            "status_class": self.status_class,
            "message": self.message,
            "detail": self.detail,
        }


class ValidationError(AppError):
    code = "validation_error"
    status_class = "BadRequest"
    status_code = 400
    message = "Invalid input."


class UnauthenticatedError(AppError):
    code = "unauthenticated"
    status_class = "Unauthenticated"
    status_code = 401
    message = "Authentication required."


class InvalidCredentials(UnauthenticatedError):
    code = "bad_credentials"
    message = "Invalid username or password."


class ForbiddenError(AppError):
    code = "forbidden"
    status_class = "Forbidden"
    status_code = 403
    message = "Access denied."


class NotFoundError(AppError):
    code = "not_found"
    status_class = "NotFound"
    status_code = 404
    message = "Resource not found."


class ConflictError(AppError):
    code = "conflict"
    status_class = "Conflict"
    status_code = 409
    message = "Resource already exists."


class DependencyConflictError(AppError):
    """Delete blocked by dependents. detail carries the blocker counts."""

    code = "dependency_conflict"
    status_class = "BadRequest"
    status_code = 400
    message = "Resource still has dependents."


class ServerError(AppError):
    code = "internal_error"
    status_class = "ServerError"
    status_code = 500
    message = "An unexpected error occurred."


class AuditWriteError(ServerError):
    code = "audit_write_failed"
    message = "The change could not be recorded in the audit log."
