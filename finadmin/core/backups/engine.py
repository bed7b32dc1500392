"""Simulated backup jobs with time-derived progress.

A job is ``running`` until ``total_duration_ms`` has elapsed since it started;
every read recomputes its progress and, past the deadline, moves it to the
outcome chosen at creation (``success`` with an artifact, or ``failed``).
Terminal jobs are never touched again.
"""

from __future__ import annotations

import asyncio
import logging
import os
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Callable, Optional

from sqlalchemy import desc, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from finadmin.config import BackupConfig
from finadmin.core.audit import AuditTrail, RequestMeta
from finadmin.core.backups.progress import (
    STAGE_CANCELED,
    STAGE_COMPLETED,
    STAGE_FAILED,
    STAGE_PREPARING,
    backup_duration_elapsed,
    backup_stage_by_progress,
    compute_backup_progress,
)
from finadmin.db.models import AdminBackupJob, AdminOtpChallenge, AdminUser, AuditLog
from finadmin.db.models.backup_job import CANCELED, FAILED, RUNNING, SUCCESS, TERMINAL_BACKUP_STATUSES
from finadmin.utils.durations import as_utc, utc_now
from finadmin.utils.exceptions import BadRequestException, ConflictException, NotFoundException
from finadmin.utils.metrics import BACKUP_EVENTS_TOTAL
from finadmin.utils.observability import format_event
from finadmin.utils.validation import parse_object_id

logger = logging.getLogger(__name__)

SIMULATED_FAILURE_CODE = "ERR_STORAGE_TIMEOUT_0x442"
SIMULATED_FAILURE_MESSAGE = "Connection to storage bucket timed out."

ARTIFACT_WRITE_FAILURE_CODE = "ERR_ARTIFACT_WRITE"
ARTIFACT_WRITE_FAILURE_MESSAGE = "Backup artifact could not be written."

# Tables summarised in the artifact header.
_COUNTED_MODELS = (
    ("admin_users", AdminUser),
    ("admin_otp_challenges", AdminOtpChallenge),
    ("admin_backup_jobs", AdminBackupJob),
    ("audit_log", AuditLog),
)


@dataclass(frozen=True)
class BackupArtifact:
    path: Path
    file_name: str


def build_backup_file_name(at: datetime) -> str:
    return f"backup_production_{as_utc(at).strftime('%Y%m%dT%H%M%SZ')}.sql"


def _render_artifact(job_id: str, generated_at: datetime, counts: dict[str, int]) -> str:
    lines = [
        "-- finadmin manual backup",
        f"-- backup_job_id: {job_id}",
        f"-- generated_at: {generated_at.isoformat()}",
    ]
    lines.extend(f"-- {table}: {count}" for table, count in counts.items())
    lines.extend(
        [
            "",
            "BEGIN TRANSACTION;",
            "-- Placeholder export: row counts only.",
            "COMMIT;",
            "",
        ]
    )
    return "\n".join(lines)


def _atomic_write_text(path: Path, text: str) -> int:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_name(f"{path.name}.tmp.{os.getpid()}")
    tmp.write_text(text, encoding="utf-8")
    tmp.replace(path)
    return path.stat().st_size


class BackupJobEngine:
    def __init__(
        self,
        db: AsyncSession,
        config: BackupConfig,
        *,
        audit: Optional[AuditTrail] = None,
        now_fn: Callable[[], datetime] | None = None,
    ) -> None:
        self.db = db
        self.config = config
        self.audit = audit
        self._now_fn = now_fn or utc_now

    def _now(self) -> datetime:
        return as_utc(self._now_fn())

    async def _table_counts(self) -> dict[str, int]:
        counts: dict[str, int] = {}
        for table, model in _COUNTED_MODELS:
            counts[table] = int((await self.db.execute(select(func.count()).select_from(model))).scalar_one())
        return counts

    async def _write_artifact(self, job: AdminBackupJob, now: datetime) -> None:
        counts = await self._table_counts()
        file_name = build_backup_file_name(now)
        # Per-job directory; two jobs finishing in the same second share a file name.
        path = Path(self.config.storage_dir) / str(job.id) / file_name
        size = await asyncio.to_thread(_atomic_write_text, path, _render_artifact(str(job.id), now, counts))
        job.file_name = file_name
        job.storage_path = str(path)
        job.file_size_bytes = size

    async def _finish(self, job: AdminBackupJob, now: datetime) -> None:
        job.progress = 100
        job.completed_at = now

        if job.should_fail:
            job.status = FAILED
            job.stage = STAGE_FAILED
            job.error_code = SIMULATED_FAILURE_CODE
            job.error_message = SIMULATED_FAILURE_MESSAGE
            job.file_name = None
            job.storage_path = None
            job.file_size_bytes = None
            BACKUP_EVENTS_TOTAL.labels(event="finish", result="failed").inc()
            logger.warning(format_event("backup.failed", job_id=job.id, error_code=job.error_code))
            return

        try:
            await self._write_artifact(job, now)
        except OSError:
            logger.exception("backup.artifact_write_failed job_id=%s", job.id)
            job.status = FAILED
            job.stage = STAGE_FAILED
            job.error_code = ARTIFACT_WRITE_FAILURE_CODE
            job.error_message = ARTIFACT_WRITE_FAILURE_MESSAGE
            BACKUP_EVENTS_TOTAL.labels(event="finish", result="artifact_failed").inc()
            return

        job.status = SUCCESS
        job.stage = STAGE_COMPLETED
        job.error_code = None
        job.error_message = None
        BACKUP_EVENTS_TOTAL.labels(event="finish", result="success").inc()
        logger.info(format_event("backup.completed", job_id=job.id, file_name=job.file_name, size=job.file_size_bytes))

    async def refresh(self, job: AdminBackupJob, now: Optional[datetime] = None) -> AdminBackupJob:
        """Recompute a running job's progress; terminal jobs are returned unchanged."""
        if job.status in TERMINAL_BACKUP_STATUSES:
            return job
        now = now or self._now()

        if backup_duration_elapsed(job.started_at, now, self.config.total_duration_ms):
            await self._finish(job, now)
            await self.db.commit()
            return job

        # Progress never moves backward, even if the clock does.
        progress = max(int(job.progress or 0), compute_backup_progress(job.started_at, now, self.config.total_duration_ms))
        stage = backup_stage_by_progress(progress)
        if job.progress != progress or job.stage != stage:
            job.progress = progress
            job.stage = stage
            await self.db.commit()
        return job

    async def refresh_running(self) -> list[AdminBackupJob]:
        now = self._now()
        running = (await self.db.execute(select(AdminBackupJob).where(AdminBackupJob.status == RUNNING))).scalars().all()
        for job in running:
            await self.refresh(job, now)
        return list(running)

    async def _get_or_404(self, job_id: str) -> AdminBackupJob:
        job_uuid = parse_object_id(job_id, label="Backup job")
        job = await self.db.get(AdminBackupJob, job_uuid)
        if job is None:
            raise NotFoundException("Backup job not found.")
        return job

    async def start(
        self,
        initiated_by: Optional[str],
        *,
        simulate_failure: bool = False,
        meta: Optional[RequestMeta] = None,
    ) -> AdminBackupJob:
        running = await self.refresh_running()
        if any(job.status == RUNNING for job in running):
            BACKUP_EVENTS_TOTAL.labels(event="start", result="conflict").inc()
            raise ConflictException("A backup process is already running.")

        job = AdminBackupJob(
            status=RUNNING,
            progress=1,
            stage=STAGE_PREPARING,
            target=self.config.target,
            initiated_by=initiated_by,
            started_at=self._now(),
            should_fail=bool(simulate_failure),
        )
        self.db.add(job)
        await self.db.commit()

        BACKUP_EVENTS_TOTAL.labels(event="start", result="success").inc()
        logger.info(format_event("backup.started", job_id=job.id, initiated_by=initiated_by))
        if self.audit is not None:
            await self.audit.record(
                "admin_backup_started",
                actor_id=initiated_by,
                object_type="admin_backup_job",
                object_id=str(job.id),
                details={"simulate_failure": bool(simulate_failure)},
                meta=meta,
            )
        return job

    async def get(self, job_id: str) -> AdminBackupJob:
        job = await self._get_or_404(job_id)
        return await self.refresh(job)

    async def latest(self) -> Optional[AdminBackupJob]:
        await self.refresh_running()
        stmt = select(AdminBackupJob).order_by(desc(AdminBackupJob.started_at)).limit(1)
        return (await self.db.execute(stmt)).scalar_one_or_none()

    async def cancel(
        self,
        job_id: str,
        *,
        actor_id: Optional[str] = None,
        meta: Optional[RequestMeta] = None,
    ) -> AdminBackupJob:
        job = await self.get(job_id)
        if job.status in TERMINAL_BACKUP_STATUSES:
            raise BadRequestException("Only running backups can be canceled.")

        job.status = CANCELED
        job.stage = STAGE_CANCELED
        job.progress = max(int(job.progress or 0), 1)
        job.completed_at = self._now()
        await self.db.commit()

        BACKUP_EVENTS_TOTAL.labels(event="cancel", result="success").inc()
        logger.info(format_event("backup.canceled", job_id=job.id))
        if self.audit is not None:
            await self.audit.record(
                "admin_backup_canceled",
                actor_id=actor_id,
                object_type="admin_backup_job",
                object_id=str(job.id),
                meta=meta,
            )
        return job

    async def download(self, job_id: str) -> BackupArtifact:
        job = await self.get(job_id)
        if job.status != SUCCESS or not job.storage_path or not job.file_name:
            raise ConflictException("Backup file is not available for download.")

        path = Path(job.storage_path)
        if not path.is_file():
            raise NotFoundException("Backup file not found on storage.")
        return BackupArtifact(path=path, file_name=job.file_name)
