from __future__ import annotations

from enum import Enum


class ErrorCode(str, Enum):
    """Standard admin API error codes."""

    E001 = "E001"  # NotFound: Resource not found
    E002 = "E002"  # Auth: Unauthorized
    E003 = "E003"  # Auth: Invalid access token
    E004 = "E004"  # OTP: Challenge no longer valid
    E005 = "E005"  # OTP: Challenge expired
    E006 = "E006"  # OTP: Challenge locked
    E007 = "E007"  # OTP: Attempts exhausted
    E008 = "E008"  # Conflict: State conflict
    E009 = "E009"  # Validation: Invalid input
    E010 = "E010"  # Internal: Internal error
    E011 = "E011"  # OTP: Resend cooldown active
    E012 = "E012"  # Config: Server misconfiguration
    E013 = "E013"  # RateLimit: Too many requests
    E014 = "E014"  # Notification: Delivery failed


ERROR_MESSAGES: dict[ErrorCode, str] = {
    ErrorCode.E001: "Not found",
    ErrorCode.E002: "Unauthorized",
    ErrorCode.E003: "Invalid admin token",
    ErrorCode.E004: "OTP challenge is no longer valid. Please login again.",
    ErrorCode.E005: "OTP expired. Please login again.",
    ErrorCode.E006: "Maximum attempts reached. Access is temporarily blocked.",
    ErrorCode.E007: "Maximum OTP attempts reached. Access is temporarily blocked.",
    ErrorCode.E008: "State conflict",
    ErrorCode.E009: "Validation error",
    ErrorCode.E010: "Internal server error",
    ErrorCode.E011: "Please wait before requesting another code.",
    ErrorCode.E012: "Server is not configured for this operation",
    ErrorCode.E013: "Too many requests",
    ErrorCode.E014: "Unable to deliver verification code",
}
