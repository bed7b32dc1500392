import re
import uuid
from typing import Any

from finadmin.utils.exceptions import BadRequestException, NotFoundException


_OTP_CODE_RE = re.compile(r"^\d{6}$", flags=re.ASCII)


def validate_otp_code(code: Any) -> str:
    """Return the trimmed 6-digit code or raise BadRequestException.

    Runs before any store lookup so malformed input never costs an attempt.
    """
    if code is None or not str(code).strip():
        raise BadRequestException("OTP is required.", details={"otp": ["OTP is required."]})

    normalized = str(code).strip()
    if _OTP_CODE_RE.fullmatch(normalized) is None:
        raise BadRequestException(
            "OTP must be a 6-digit code.",
            details={"otp": ["OTP must be a 6-digit code."]},
        )
    return normalized


def validate_credentials(email: Any, password: Any) -> tuple[str, str]:
    missing: dict[str, list[str]] = {}
    if not isinstance(email, str) or not email.strip():
        missing["email"] = ["Email is required."]
    if not isinstance(password, str) or not password:
        missing["password"] = ["Password is required."]
    if missing:
        raise BadRequestException("Email and password are required.", details=missing)
    return email, password


def parse_object_id(value: str, *, label: str = "Resource") -> uuid.UUID:
    # Malformed ids are reported as missing resources.
    try:
        return uuid.UUID(str(value))
    except (TypeError, ValueError):
        raise NotFoundException(f"{label} not found.")
