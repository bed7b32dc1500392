from __future__ import annotations

import hashlib
import hmac
import secrets
from functools import lru_cache

import bcrypt


OTP_CODE_LENGTH = 6
_OTP_MIN = 10 ** (OTP_CODE_LENGTH - 1)
_OTP_SPAN = 9 * _OTP_MIN

# bcrypt only looks at the first 72 bytes; longer inputs are rejected instead of truncated.
_BCRYPT_MAX_BYTES = 72


def hash_token(value: str) -> str:
    """One-way SHA-256 hex digest used for challenge tokens and OTP codes."""
    return hashlib.sha256(str(value).encode("utf-8")).hexdigest()


def hashes_equal(left: str, right: str) -> bool:
    # Constant-time comparison of hex digests.
    return hmac.compare_digest(str(left).encode("ascii"), str(right).encode("ascii"))


def generate_challenge_token() -> str:
    return secrets.token_hex(32)


def generate_otp_code() -> str:
    """Uniform 6-digit code in [100000, 999999]."""
    return str(_OTP_MIN + secrets.randbelow(_OTP_SPAN))


def normalize_email(email: str) -> str:
    return str(email or "").strip().lower()


def hash_identity(email: str) -> str:
    """Audit/log key for an identity; the raw address never leaves the directory."""
    return hash_token(normalize_email(email))


def mask_email(email: str) -> str:
    """Render an address for display: ``jane.doe@example.com`` -> ``j***e@example.com``."""
    normalized = normalize_email(email)
    local, sep, domain = normalized.partition("@")
    if not sep:
        return "***"
    if len(local) <= 2:
        masked_local = f"{local[:1]}*"
    else:
        masked_local = f"{local[0]}***{local[-1]}"
    return f"{masked_local}@{domain}"


def hash_password(plain_password: str) -> str:
    if not isinstance(plain_password, str) or len(plain_password) == 0:
        raise ValueError("Password must be a non-empty string")
    encoded = plain_password.encode("utf-8")
    if len(encoded) > _BCRYPT_MAX_BYTES:
        raise ValueError("Password must be at most 72 bytes")

    salt = bcrypt.gensalt(rounds=12)
    return bcrypt.hashpw(encoded, salt).decode("utf-8")


def verify_password(plain_password: str, password_hash: str | None) -> bool:
    if not plain_password or not password_hash:
        return False
    try:
        return bcrypt.checkpw(plain_password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        # Malformed hash or over-long password.
        return False


@lru_cache(maxsize=1)
def _dummy_password_hash() -> bytes:
    return bcrypt.hashpw(b"finadmin-dummy-password", bcrypt.gensalt(rounds=12))


def burn_password_check(plain_password: str) -> None:
    """Run a bcrypt check against a throwaway hash.

    Keeps the unknown-account path as slow as the wrong-password path.
    """
    try:
        bcrypt.checkpw(str(plain_password or "").encode("utf-8")[:_BCRYPT_MAX_BYTES], _dummy_password_hash())
    except ValueError:
        pass
