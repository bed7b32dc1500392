from __future__ import annotations

import uuid
from datetime import datetime, timedelta, timezone

import httpx
from sqlalchemy.ext.asyncio import AsyncSession

from finadmin.core.notifications import OutboxOtpGateway
from finadmin.db.models import AdminUser
from finadmin.utils.security import hash_password, normalize_email

ADMIN_EMAIL = "jane.doe@example.com"
ADMIN_PASSWORD = "correct horse battery staple"
TEST_JWT_SECRET = "test-jwt-secret-0123456789abcdef0123456789"


class FakeClock:
    """Mutable UTC clock; call it to read the time."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime.now(timezone.utc).replace(microsecond=0)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


async def create_admin(
    session: AsyncSession,
    *,
    email: str = ADMIN_EMAIL,
    password: str = ADMIN_PASSWORD,
    is_active: bool = True,
    roles: list[str] | None = None,
) -> AdminUser:
    admin = AdminUser(
        id=uuid.uuid4(),
        email=normalize_email(email),
        password_hash=hash_password(password),
        roles=roles or ["super_admin"],
        is_active=is_active,
    )
    session.add(admin)
    await session.commit()
    return admin


async def login(client: httpx.AsyncClient, *, email: str = ADMIN_EMAIL, password: str = ADMIN_PASSWORD) -> httpx.Response:
    return await client.post("/api/v1/admin/auth/login", json={"email": email, "password": password})


async def login_and_verify(client: httpx.AsyncClient, outbox: OutboxOtpGateway, *, email: str = ADMIN_EMAIL) -> dict:
    """Run the full password + OTP flow; the client ends up holding the access cookie."""
    r = await login(client, email=email)
    assert r.status_code == 200, r.text

    code = outbox.last_code_for(normalize_email(email))
    r = await client.post("/api/v1/admin/auth/otp/verify", json={"otp": code})
    assert r.status_code == 200, r.text
    return r.json()
