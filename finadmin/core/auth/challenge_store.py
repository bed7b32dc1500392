from __future__ import annotations

import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from finadmin.db.models.otp_challenge import (
    CANCELLED,
    NON_TERMINAL_STATUSES,
    AdminOtpChallenge,
)


class ChallengeStore:
    """Persistence for admin OTP challenges.

    ``save`` is last-write-wins keyed by primary id. There is no optimistic
    concurrency check: an owner has at most one non-terminal challenge, and a
    lost update can only over-count a failed attempt.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    async def find_by_token_hash(self, token_hash: str) -> Optional[AdminOtpChallenge]:
        if not token_hash:
            return None
        stmt = (
            select(AdminOtpChallenge)
            .where(AdminOtpChallenge.challenge_token_hash == token_hash)
            # Verify/resend must see the latest persisted attempt count.
            .execution_options(populate_existing=True)
        )
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def invalidate_all_active_for_owner(
        self,
        owner_id: uuid.UUID,
        *,
        new_status: str = CANCELLED,
        now: datetime,
    ) -> int:
        # Count first to avoid relying on DBAPI rowcount semantics.
        ids = (
            await self.db.execute(
                select(AdminOtpChallenge.id).where(
                    AdminOtpChallenge.owner_id == owner_id,
                    AdminOtpChallenge.status.in_(NON_TERMINAL_STATUSES),
                    AdminOtpChallenge.used_at.is_(None),
                )
            )
        ).scalars().all()
        if not ids:
            return 0

        await self.db.execute(
            update(AdminOtpChallenge)
            .where(AdminOtpChallenge.id.in_(ids))
            .values(status=new_status, invalidated_at=now)
            .execution_options(synchronize_session="fetch")
        )
        await self.db.commit()
        return len(ids)

    async def add(self, challenge: AdminOtpChallenge) -> AdminOtpChallenge:
        self.db.add(challenge)
        await self.db.commit()
        return challenge

    async def save(self, challenge: AdminOtpChallenge) -> AdminOtpChallenge:
        self.db.add(challenge)
        await self.db.commit()
        return challenge

    async def count_active_for_owner(self, owner_id: uuid.UUID) -> int:
        rows = (
            await self.db.execute(
                select(AdminOtpChallenge.id).where(
                    AdminOtpChallenge.owner_id == owner_id,
                    AdminOtpChallenge.status.in_(NON_TERMINAL_STATUSES),
                )
            )
        ).scalars().all()
        return len(rows)

    async def purge_expired(self, *, older_than: datetime) -> int:
        """Delete challenges whose expiry is before ``older_than`` (retention backstop)."""
        ids = (
            await self.db.execute(
                select(AdminOtpChallenge.id).where(AdminOtpChallenge.expires_at < older_than)
            )
        ).scalars().all()
        if not ids:
            return 0

        await self.db.execute(delete(AdminOtpChallenge).where(AdminOtpChallenge.id.in_(ids)))
        await self.db.commit()
        return len(ids)
