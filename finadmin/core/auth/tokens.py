from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

import jwt

from finadmin.config import OtpAuthConfig
from finadmin.core.auth.directory import DEFAULT_ROLES, AdminIdentity
from finadmin.utils.exceptions import ConfigurationException, InvalidTokenException

ADMIN_ACCESS_TOKEN_KIND = "admin_access"


@dataclass(frozen=True)
class AdminClaims:
    id: str
    email: str
    roles: list[str]
    expires_at: datetime
    jti: Optional[str] = None


class AccessTokenIssuer:
    """Signs and verifies short-lived admin access tokens.

    Tokens carry ``type="admin_access"`` so they cannot be confused with any
    other JWT the surrounding system may sign with the same secret.
    """

    def __init__(self, config: OtpAuthConfig, *, now_fn: Callable[[], datetime] | None = None) -> None:
        self._config = config
        self._now_fn = now_fn or (lambda: datetime.now(timezone.utc))

    @property
    def ttl_seconds(self) -> int:
        return int(self._config.access_token_ttl_seconds)

    def _secret(self) -> str:
        secret = self._config.signing_secret
        if not secret:
            raise ConfigurationException("JWT secret is not configured")
        return secret

    def ensure_configured(self) -> None:
        self._secret()

    def issue(self, admin: AdminIdentity) -> str:
        secret = self._secret()
        now = self._now_fn()
        payload = {
            "type": ADMIN_ACCESS_TOKEN_KIND,
            "sub": str(admin.id),
            "email": admin.email,
            "roles": list(admin.roles),
            "iat": now,
            "exp": now + timedelta(seconds=self.ttl_seconds),
            "jti": uuid.uuid4().hex,
        }
        return jwt.encode(payload, secret, algorithm=self._config.jwt_algorithm)

    def verify(self, token: str) -> AdminClaims:
        secret = self._secret()
        if not token:
            raise InvalidTokenException()
        try:
            payload = jwt.decode(
                token,
                secret,
                algorithms=[self._config.jwt_algorithm],
                options={"require": ["exp", "sub", "type"]},
            )
        except jwt.PyJWTError as exc:
            raise InvalidTokenException() from exc

        if payload.get("type") != ADMIN_ACCESS_TOKEN_KIND:
            raise InvalidTokenException()

        roles = payload.get("roles") or list(DEFAULT_ROLES)
        return AdminClaims(
            id=str(payload["sub"]),
            email=str(payload.get("email") or ""),
            roles=[str(r) for r in roles],
            expires_at=datetime.fromtimestamp(int(payload["exp"]), tz=timezone.utc),
            jti=payload.get("jti"),
        )
