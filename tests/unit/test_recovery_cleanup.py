import uuid
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest
from sqlalchemy import func, select

from finadmin.core.recovery import finish_overdue_backups, purge_stale_otp_challenges, run_recovery_once
from finadmin.db.models import AdminBackupJob, AdminOtpChallenge
from finadmin.utils.security import hash_token


def _challenge(owner_id: uuid.UUID, *, expires_at: datetime, status: str = "expired") -> AdminOtpChallenge:
    return AdminOtpChallenge(
        owner_id=owner_id,
        identity_hash="a" * 64,
        masked_identity="j***e@example.com",
        challenge_token_hash=hash_token(uuid.uuid4().hex),
        code_hash=hash_token("123456"),
        status=status,
        attempt_count=0,
        max_attempts=3,
        resend_count=0,
        resend_available_at=expires_at,
        expires_at=expires_at,
    )


@pytest.mark.asyncio
async def test_purge_stale_otp_challenges_keeps_recent_rows(db_session, admin_user):
    now = datetime.now(timezone.utc)
    db_session.add(_challenge(admin_user.id, expires_at=now - timedelta(hours=30)))
    db_session.add(_challenge(admin_user.id, expires_at=now - timedelta(hours=1)))
    db_session.add(_challenge(admin_user.id, expires_at=now + timedelta(minutes=5), status="pending"))
    await db_session.commit()

    deleted = await purge_stale_otp_challenges(db_session, retention_hours=24, now=now)
    assert deleted == 1

    remaining = (await db_session.execute(select(func.count()).select_from(AdminOtpChallenge))).scalar_one()
    assert remaining == 2


@pytest.mark.asyncio
async def test_purge_stale_otp_challenges_noop_on_empty_table(db_session):
    assert await purge_stale_otp_challenges(db_session, retention_hours=24) == 0


@pytest.mark.asyncio
async def test_finish_overdue_backups_completes_abandoned_jobs(db_session, tmp_path, monkeypatch):
    from finadmin.config import settings

    monkeypatch.setattr(settings, "BACKUP_STORAGE_DIR", str(tmp_path / "recovered"))
    monkeypatch.setattr(settings, "BACKUP_TOTAL_DURATION_MS", 1000)

    job = AdminBackupJob(
        status="running",
        progress=10,
        stage="Preparing backup snapshot",
        target="remote_cloud_storage_node_01",
        initiated_by=None,
        started_at=datetime.now(timezone.utc) - timedelta(minutes=5),
        should_fail=False,
    )
    db_session.add(job)
    await db_session.commit()

    finished = await finish_overdue_backups(db_session)
    assert finished == 1

    await db_session.refresh(job)
    assert job.status == "success"
    assert job.progress == 100
    assert job.file_name is not None
    assert Path(job.storage_path).is_file()
    assert Path(job.storage_path).parent.parent == tmp_path / "recovered"


@pytest.mark.asyncio
async def test_run_recovery_once_survives_step_failure(db_session, monkeypatch):
    import finadmin.core.recovery as recovery

    calls: list[str] = []

    async def _boom(session, **kwargs):
        calls.append("purge")
        raise RuntimeError("boom")

    async def _finish(session):
        calls.append("finish")
        return 0

    monkeypatch.setattr(recovery, "purge_stale_otp_challenges", _boom)
    monkeypatch.setattr(recovery, "finish_overdue_backups", _finish)

    await run_recovery_once(db_session)
    assert calls == ["purge", "finish"]
