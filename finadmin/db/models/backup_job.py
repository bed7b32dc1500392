import uuid
from sqlalchemy import BigInteger, Boolean, CheckConstraint, DateTime, SmallInteger, String, Text, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column
from finadmin.db.base import Base

RUNNING = "running"
SUCCESS = "success"
FAILED = "failed"
CANCELED = "canceled"

TERMINAL_BACKUP_STATUSES = (SUCCESS, FAILED, CANCELED)


class AdminBackupJob(Base):
    __tablename__ = "admin_backup_jobs"

    id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default=RUNNING, index=True)
    progress: Mapped[int] = mapped_column(SmallInteger, nullable=False, default=0)
    stage: Mapped[str] = mapped_column(String(100), nullable=False, default="Preparing backup snapshot")
    target: Mapped[str] = mapped_column(String(100), nullable=False, default="remote_cloud_storage_node_01")
    initiated_by: Mapped[str | None] = mapped_column(String(255))
    started_at: Mapped[DateTime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)
    completed_at: Mapped[DateTime | None] = mapped_column(DateTime(timezone=True))
    file_name: Mapped[str | None] = mapped_column(String(255))
    storage_path: Mapped[str | None] = mapped_column(Text)
    file_size_bytes: Mapped[int | None] = mapped_column(BigInteger)
    error_code: Mapped[str | None] = mapped_column(String(64))
    error_message: Mapped[str | None] = mapped_column(Text)
    should_fail: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[DateTime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[DateTime] = mapped_column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        CheckConstraint("status IN ('running', 'success', 'failed', 'canceled')", name="chk_admin_backup_jobs_status"),
        CheckConstraint("progress >= 0 AND progress <= 100", name="chk_admin_backup_jobs_progress"),
    )
