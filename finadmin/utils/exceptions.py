from __future__ import annotations

from typing import Any, Optional

from finadmin.utils.error_codes import ErrorCode, ERROR_MESSAGES


def _normalize_error_code(value: ErrorCode | str | None) -> ErrorCode:
    if value is None:
        return ErrorCode.E010
    if isinstance(value, ErrorCode):
        return value
    try:
        return ErrorCode(str(value))
    except ValueError:
        return ErrorCode.E010


class AdminApiException(Exception):
    """Base exception for the admin API.

    API response format is handled by the global exception handler.
    """

    def __init__(
        self,
        message: str | None = None,
        *,
        code: ErrorCode | str = ErrorCode.E010,
        details: Optional[dict[str, Any]] = None,
        status_code: int = 500,
    ):
        normalized = _normalize_error_code(code)
        if message is None:
            message = ERROR_MESSAGES.get(normalized, ERROR_MESSAGES[ErrorCode.E010])

        self.message = message
        self.code = normalized.value
        self.details = details or {}
        self.status_code = status_code
        super().__init__(self.message)

    def to_dict(self) -> dict:
        return {"error": {"code": self.code, "message": self.message, "details": self.details}}


class BadRequestException(AdminApiException):
    """InvalidInput: malformed request; never mutates state."""

    def __init__(self, message: str | None = None, *, details: Optional[dict[str, Any]] = None):
        super().__init__(message, code=ErrorCode.E009, details=details, status_code=400)


class UnauthorizedException(AdminApiException):
    def __init__(self, message: str | None = None, *, details: Optional[dict[str, Any]] = None):
        super().__init__(message or "Unauthorized", code=ErrorCode.E002, details=details, status_code=401)


class InvalidTokenException(AdminApiException):
    def __init__(self, message: str | None = None, *, details: Optional[dict[str, Any]] = None):
        super().__init__(message, code=ErrorCode.E003, details=details, status_code=401)


class NotFoundException(AdminApiException):
    def __init__(self, message: str | None = None, *, details: Optional[dict[str, Any]] = None):
        super().__init__(message or "Not Found", code=ErrorCode.E001, details=details, status_code=404)


class ConflictException(AdminApiException):
    def __init__(self, message: str | None = None, *, details: Optional[dict[str, Any]] = None):
        super().__init__(message, code=ErrorCode.E008, details=details, status_code=409)


class TooManyRequestsException(AdminApiException):
    def __init__(self, message: str | None = None, *, details: Optional[dict[str, Any]] = None):
        super().__init__(message or "Too many requests", code=ErrorCode.E013, details=details, status_code=429)


class ConfigurationException(AdminApiException):
    """Fatal to the request; never retried."""

    def __init__(self, message: str | None = None, *, details: Optional[dict[str, Any]] = None):
        super().__init__(message, code=ErrorCode.E012, details=details, status_code=500)


class NotificationDeliveryException(AdminApiException):
    def __init__(self, message: str | None = None, *, details: Optional[dict[str, Any]] = None):
        super().__init__(message, code=ErrorCode.E014, details=details, status_code=502)


# --- OTP challenge failures ---


class ChallengeGoneException(AdminApiException):
    """The challenge was consumed or cancelled and cannot be reused."""

    def __init__(self, message: str | None = None, *, details: Optional[dict[str, Any]] = None):
        super().__init__(message, code=ErrorCode.E004, details=details, status_code=401)


class ChallengeExpiredException(AdminApiException):
    def __init__(self, message: str | None = None, *, details: Optional[dict[str, Any]] = None):
        super().__init__(message, code=ErrorCode.E005, details=details, status_code=401)


class ChallengeLockedException(AdminApiException):
    def __init__(
        self,
        message: str | None = None,
        *,
        code: ErrorCode = ErrorCode.E006,
        details: Optional[dict[str, Any]] = None,
    ):
        super().__init__(message, code=code, details=details, status_code=423)

    @property
    def lockout_remaining_seconds(self) -> int:
        return int(self.details.get("lockout_remaining_seconds", 0))


class AttemptsExhaustedException(ChallengeLockedException):
    """Raised by the failed attempt that reaches the attempt ceiling."""

    def __init__(self, message: str | None = None, *, details: Optional[dict[str, Any]] = None):
        super().__init__(message, code=ErrorCode.E007, details=details)


class IncorrectCodeException(UnauthorizedException):
    def __init__(self, message: str | None = None, *, details: Optional[dict[str, Any]] = None):
        super().__init__(message or "Incorrect verification code. Please try again.", details=details)


class ResendTooSoonException(AdminApiException):
    def __init__(self, message: str | None = None, *, details: Optional[dict[str, Any]] = None):
        super().__init__(message, code=ErrorCode.E011, details=details, status_code=429)
