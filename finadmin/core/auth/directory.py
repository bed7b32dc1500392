from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from finadmin.db.models.admin_user import AdminUser
from finadmin.utils.exceptions import UnauthorizedException
from finadmin.utils.security import burn_password_check, normalize_email, verify_password
from finadmin.utils.validation import validate_credentials

DEFAULT_ROLES = ("super_admin",)

# Same message for unknown e-mail, inactive admin and wrong password.
_BAD_CREDENTIALS = "Incorrect email or password."


@dataclass(frozen=True)
class AdminIdentity:
    id: str
    email: str
    roles: list[str] = field(default_factory=lambda: list(DEFAULT_ROLES))

    @property
    def id_uuid(self) -> uuid.UUID:
        return uuid.UUID(self.id)

    def as_dict(self) -> dict:
        return {"id": self.id, "email": self.email, "roles": list(self.roles)}


def _to_identity(admin: AdminUser) -> AdminIdentity:
    roles = [str(r) for r in (admin.roles or []) if r] or list(DEFAULT_ROLES)
    return AdminIdentity(id=str(admin.id), email=admin.email, roles=roles)


class AdminDirectory:
    """Resolves administrators by id and checks passwords."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def authenticate(self, email: str, password: str) -> AdminIdentity:
        email, password = validate_credentials(email, password)

        stmt = select(AdminUser).where(AdminUser.email == normalize_email(email))
        admin = (await self.db.execute(stmt)).scalar_one_or_none()
        if admin is None or not admin.is_active:
            burn_password_check(password)
            raise UnauthorizedException(_BAD_CREDENTIALS)

        if not verify_password(password, admin.password_hash):
            raise UnauthorizedException(_BAD_CREDENTIALS)

        return _to_identity(admin)

    async def resolve(self, owner_id: str | uuid.UUID) -> Optional[AdminIdentity]:
        """Return the active admin or None when missing/inactive."""
        try:
            admin_uuid = owner_id if isinstance(owner_id, uuid.UUID) else uuid.UUID(str(owner_id))
        except (TypeError, ValueError):
            return None

        stmt = select(AdminUser).where(AdminUser.id == admin_uuid, AdminUser.is_active.is_(True))
        admin = (await self.db.execute(stmt)).scalar_one_or_none()
        if admin is None:
            return None
        return _to_identity(admin)

    async def mark_login(self, owner_id: str | uuid.UUID, *, at: datetime) -> None:
        admin_uuid = owner_id if isinstance(owner_id, uuid.UUID) else uuid.UUID(str(owner_id))
        await self.db.execute(update(AdminUser).where(AdminUser.id == admin_uuid).values(last_login_at=at))
        await self.db.commit()
