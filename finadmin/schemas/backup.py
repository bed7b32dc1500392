from datetime import datetime
from typing import Optional
from pydantic import BaseModel

from finadmin.db.models.backup_job import SUCCESS


class BackupStartRequest(BaseModel):
    simulate_failure: bool = False


class BackupJobOut(BaseModel):
    id: str
    status: str
    progress: int
    stage: str
    target: str
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    file_name: Optional[str] = None
    has_download: bool = False
    file_size_bytes: Optional[int] = None
    error_code: Optional[str] = None
    error_message: Optional[str] = None

    @classmethod
    def from_job(cls, job) -> "BackupJobOut":
        return cls(
            id=str(job.id),
            status=job.status,
            progress=int(job.progress),
            stage=job.stage,
            target=job.target,
            started_at=job.started_at,
            completed_at=job.completed_at,
            file_name=job.file_name,
            has_download=bool(job.storage_path and job.status == SUCCESS),
            file_size_bytes=job.file_size_bytes,
            error_code=job.error_code,
            error_message=job.error_message,
        )


class BackupJobResponse(BaseModel):
    backup: Optional[BackupJobOut] = None
