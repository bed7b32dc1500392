from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from finadmin.db.models.audit_log import AuditLog
from finadmin.utils.observability import format_event

logger = logging.getLogger("finadmin.audit")


@dataclass(frozen=True)
class RequestMeta:
    """Client metadata captured from the HTTP request that triggered an operation."""

    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    request_id: Optional[str] = None


class AuditTrail:
    """Writes audit events as a log line and an ``audit_log`` row.

    Identities are recorded as one-way hashes only. Rows are written in a
    session of their own, so a failed insert is logged and dropped without
    touching objects of the caller's session.
    """

    def __init__(self, db: AsyncSession, *, actor_role: str = "admin", session_factory=None):
        self.actor_role = actor_role
        self._session_factory = session_factory or async_sessionmaker(bind=db.bind, expire_on_commit=False)

    async def record(
        self,
        action: str,
        *,
        actor_id: Optional[str] = None,
        identity_hash: Optional[str] = None,
        object_type: Optional[str] = None,
        object_id: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
        meta: Optional[RequestMeta] = None,
    ) -> None:
        meta = meta or RequestMeta()
        logger.info(
            format_event(
                f"audit.{action}",
                actor_id=actor_id,
                identity_hash=identity_hash,
                object_type=object_type,
                object_id=object_id,
                request_id=meta.request_id,
            )
        )
        try:
            async with self._session_factory() as session:
                session.add(
                    AuditLog(
                        actor_id=actor_id,
                        actor_role=self.actor_role,
                        action=action,
                        object_type=object_type,
                        object_id=object_id,
                        identity_hash=identity_hash,
                        details=details or None,
                        request_id=meta.request_id,
                        ip_address=meta.ip_address,
                        user_agent=meta.user_agent,
                    )
                )
                await session.commit()
        except SQLAlchemyError:
            logger.warning("audit.write_failed action=%s", action, exc_info=True)
