from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timedelta

from sqlalchemy.ext.asyncio import AsyncSession

from finadmin.config import BackupConfig, settings
from finadmin.core.auth.challenge_store import ChallengeStore
from finadmin.core.backups.engine import BackupJobEngine
from finadmin.utils.durations import utc_now
from finadmin.utils.metrics import RECOVERY_EVENTS_TOTAL

logger = logging.getLogger(__name__)


async def purge_stale_otp_challenges(
    session: AsyncSession,
    *,
    retention_hours: int,
    now: datetime | None = None,
) -> int:
    """Delete challenges that expired more than ``retention_hours`` ago.

    The engine marks terminal statuses itself; this only reaps old rows.
    """
    RECOVERY_EVENTS_TOTAL.labels(event="purge_stale_otp_challenges", result="start").inc()
    cutoff = (now or utc_now()) - timedelta(hours=max(0, int(retention_hours)))
    deleted = await ChallengeStore(session).purge_expired(older_than=cutoff)
    RECOVERY_EVENTS_TOTAL.labels(
        event="purge_stale_otp_challenges", result="success" if deleted else "noop"
    ).inc()
    return deleted


async def finish_overdue_backups(session: AsyncSession) -> int:
    """Advance running backup jobs nobody is polling."""
    RECOVERY_EVENTS_TOTAL.labels(event="finish_overdue_backups", result="start").inc()
    jobs = await BackupJobEngine(session, BackupConfig.from_settings(settings)).refresh_running()
    finished = sum(1 for job in jobs if job.completed_at is not None)
    RECOVERY_EVENTS_TOTAL.labels(event="finish_overdue_backups", result="success" if finished else "noop").inc()
    return finished


async def run_recovery_once(session: AsyncSession) -> None:
    purged = 0
    finished = 0
    try:
        purged = await purge_stale_otp_challenges(
            session, retention_hours=settings.OTP_CHALLENGE_RETENTION_HOURS
        )
    except Exception:
        logger.exception("recovery.purge_stale_otp_challenges_failed")
        await session.rollback()

    try:
        finished = await finish_overdue_backups(session)
    except Exception:
        logger.exception("recovery.finish_overdue_backups_failed")
        await session.rollback()

    if purged or finished:
        logger.info("recovery.done otp_challenges_purged=%s backups_finished=%s", purged, finished)


async def recovery_loop(*, session_factory, stop_event: asyncio.Event) -> None:
    interval = int(getattr(settings, "RECOVERY_INTERVAL_SECONDS", 300) or 300)

    # Run once at startup.
    try:
        async with session_factory() as session:
            await run_recovery_once(session)
    except Exception:
        logger.exception("recovery.startup_failed")

    while not stop_event.is_set():
        try:
            await asyncio.wait_for(stop_event.wait(), timeout=interval)
            break
        except asyncio.TimeoutError:
            pass

        try:
            async with session_factory() as session:
                await run_recovery_once(session)
        except Exception:
            logger.exception("recovery.periodic_failed")
