# migestion/core/errors.py
from __future__ import annotations

from typing import Dict, List, Optional


class AppError(Exception):
    """Base for every failure the API reports with a stable machine code.

    The global exception handlers in ``migestion.main`` turn any ``AppError``
    into ``{"success": false, "error": {"code", "message"}}`` with
    ``status_code`` as the HTTP status.
    """

    status_code: int = 500
    code: str = "INTERNAL_ERROR"
    default_message: str = "An unexpected error occurred"

    def __init__(self, message: Optional[str] = None, *, code: Optional[str] = None) -> None:
        self.message = message or self.default_message
        if code is not None:
            self.code = code
        super().__init__(self.message)


# 401
class UnauthorizedError(AppError):
    status_code = 401
    code = "UNAUTHORIZED"
    default_message = "Authentication required"


class InvalidCredentialsError(UnauthorizedError):
    code = "INVALID_CREDENTIALS"
    default_message = "Invalid email or password"


class TokenExpiredError(UnauthorizedError):
    code = "TOKEN_EXPIRED"
    default_message = "Token has expired"


class InvalidTokenError(UnauthorizedError):
    code = "INVALID_TOKEN"
    default_message = "Invalid token"


class TenantMismatchError(UnauthorizedError):
    code = "TENANT_MISMATCH"
    default_message = "Tenant mismatch"


# 403
class ForbiddenError(AppError):
    status_code = 403
    code = "FORBIDDEN"
    default_message = "Access denied"


class InsufficientPermissionsError(ForbiddenError):
    code = "INSUFFICIENT_PERMISSIONS"
    default_message = "Insufficient permissions"


# 404
class NotFoundError(AppError):
    status_code = 404
    code = "NOT_FOUND"

    def __init__(self, resource: str = "Resource") -> None:
        super().__init__(f"{resource} not found")


# 400
class ValidationError(AppError):
    status_code = 400
    code = "VALIDATION_ERROR"
    default_message = "Validation failed"

    def __init__(self, errors: Dict[str, List[str]]) -> None:
        super().__init__()
        self.errors = errors


# 409
class ConflictError(AppError):
    status_code = 409
    code = "CONFLICT"
    default_message = "Resource already exists"


class DuplicateEmailError(ConflictError):
    code = "DUPLICATE_EMAIL"
    default_message = "Email already registered"


class DuplicateSlugError(ConflictError):
    code = "DUPLICATE_SLUG"
    default_message = "Slug already in use"


# 429
class TooManyRequestsError(AppError):
    status_code = 429
    code = "TOO_MANY_REQUESTS"
    default_message = "Too many requests, please try again later"

    def __init__(self, message: Optional[str] = None, *, retry_after: int = 0) -> None:
        super().__init__(message)
        self.retry_after = retry_after


# 500
class InternalError(AppError):
    pass


__all__ = [
    "AppError",
    "UnauthorizedError",
    "InvalidCredentialsError",
    "TokenExpiredError",
    "InvalidTokenError",
    "TenantMismatchError",
    "ForbiddenError",
    "InsufficientPermissionsError",
    "NotFoundError",
    "ValidationError",
    "ConflictError",
    "DuplicateEmailError",
    "DuplicateSlugError",
    "TooManyRequestsError",
    "InternalError",
]
