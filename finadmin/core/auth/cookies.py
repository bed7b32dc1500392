"""Cookie attributes for the two client-held admin credentials.

Both the opaque OTP challenge token and the access token travel as http-only
cookies. Attributes come from configuration only and are never negotiated per
request.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal, Optional

from fastapi import Request, Response

from finadmin.config import OtpAuthConfig, Settings

ADMIN_COOKIE_NAME = "admin_access_token"
ADMIN_OTP_COOKIE_NAME = "admin_otp_challenge"

# The OTP cookie outlives the challenge a little so an expired challenge is
# reported as "expired" rather than "not found".
OTP_COOKIE_GRACE_SECONDS = 60


@dataclass(frozen=True)
class CookiePolicy:
    secure: bool = True
    samesite: Literal["lax", "none"] = "lax"
    domain: Optional[str] = None
    path: str = "/"

    @classmethod
    def from_settings(cls, s: Settings) -> "CookiePolicy":
        samesite = "none" if (s.COOKIE_SAMESITE or "").strip().lower() == "none" else "lax"
        return cls(
            secure=bool(s.COOKIE_SECURE),
            samesite=samesite,
            domain=(s.COOKIE_DOMAIN or None),
            path=s.COOKIE_PATH or "/",
        )

    def _set(self, response: Response, name: str, value: str, max_age: int) -> None:
        response.set_cookie(
            key=name,
            value=value,
            max_age=max_age,
            httponly=True,
            secure=self.secure,
            samesite=self.samesite,
            domain=self.domain,
            path=self.path,
        )

    def _clear(self, response: Response, name: str) -> None:
        response.delete_cookie(
            key=name,
            httponly=True,
            secure=self.secure,
            samesite=self.samesite,
            domain=self.domain,
            path=self.path,
        )

    def set_access_cookie(self, response: Response, token: str, config: OtpAuthConfig) -> None:
        self._set(response, ADMIN_COOKIE_NAME, token, int(config.access_token_ttl_seconds))

    def clear_access_cookie(self, response: Response) -> None:
        self._clear(response, ADMIN_COOKIE_NAME)

    def set_otp_cookie(self, response: Response, challenge_token: str, config: OtpAuthConfig) -> None:
        self._set(
            response,
            ADMIN_OTP_COOKIE_NAME,
            challenge_token,
            int(config.otp_ttl_seconds) + OTP_COOKIE_GRACE_SECONDS,
        )

    def clear_otp_cookie(self, response: Response) -> None:
        self._clear(response, ADMIN_OTP_COOKIE_NAME)


def read_access_token(request: Request) -> Optional[str]:
    token = request.cookies.get(ADMIN_COOKIE_NAME)
    if token:
        return token
    auth = request.headers.get("authorization") or ""
    scheme, _, value = auth.partition(" ")
    if scheme.lower() == "bearer" and value.strip():
        return value.strip()
    return None


def read_otp_token(request: Request) -> Optional[str]:
    return request.cookies.get(ADMIN_OTP_COOKIE_NAME) or None
