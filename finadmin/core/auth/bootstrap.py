from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from finadmin.core.auth.directory import DEFAULT_ROLES
from finadmin.db.models.admin_user import AdminUser
from finadmin.utils.security import hash_identity, hash_password, normalize_email

logger = logging.getLogger(__name__)


async def seed_admin_user(db: AsyncSession, *, email: Optional[str], password: Optional[str]) -> Optional[AdminUser]:
    """Create the bootstrap admin unless it already exists.

    Returns the created admin, or None when seeding was skipped.
    """
    seed_email = normalize_email(email or "")
    if not seed_email or not password:
        logger.info("admin_bootstrap.skipped reason=not_configured")
        return None

    existing = (await db.execute(select(AdminUser.id).where(AdminUser.email == seed_email))).scalar_one_or_none()
    if existing is not None:
        logger.info("admin_bootstrap.skipped reason=exists identity_hash=%s", hash_identity(seed_email))
        return None

    admin = AdminUser(
        email=seed_email,
        password_hash=hash_password(password),
        roles=list(DEFAULT_ROLES),
        is_active=True,
    )
    db.add(admin)
    await db.commit()
    logger.info("admin_bootstrap.created identity_hash=%s", hash_identity(seed_email))
    return admin
