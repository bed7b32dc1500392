import logging
from typing import Optional

from fastapi import APIRouter, Depends
from starlette.responses import FileResponse

from finadmin.api import deps
from finadmin.core.audit import RequestMeta
from finadmin.core.auth.directory import AdminIdentity
from finadmin.core.backups.engine import BackupJobEngine
from finadmin.schemas.backup import BackupJobOut, BackupJobResponse, BackupStartRequest

router = APIRouter()

logger = logging.getLogger(__name__)


@router.post("/admin/system/backups", response_model=BackupJobResponse, status_code=202)
async def start_backup(
    body: Optional[BackupStartRequest] = None,
    admin: AdminIdentity = Depends(deps.require_admin),
    engine: BackupJobEngine = Depends(deps.get_backup_engine),
    meta: RequestMeta = Depends(deps.get_request_meta),
):
    body = body or BackupStartRequest()
    job = await engine.start(admin.id, simulate_failure=body.simulate_failure, meta=meta)
    logger.info("admin_backup.start job_id=%s admin_id=%s", job.id, admin.id)
    return BackupJobResponse(backup=BackupJobOut.from_job(job))


@router.get("/admin/system/backups/latest", response_model=BackupJobResponse)
async def latest_backup(
    _admin: AdminIdentity = Depends(deps.require_admin),
    engine: BackupJobEngine = Depends(deps.get_backup_engine),
):
    job = await engine.latest()
    return BackupJobResponse(backup=BackupJobOut.from_job(job) if job is not None else None)


@router.get("/admin/system/backups/{backup_id}", response_model=BackupJobResponse)
async def get_backup(
    backup_id: str,
    _admin: AdminIdentity = Depends(deps.require_admin),
    engine: BackupJobEngine = Depends(deps.get_backup_engine),
):
    job = await engine.get(backup_id)
    return BackupJobResponse(backup=BackupJobOut.from_job(job))


@router.post("/admin/system/backups/{backup_id}/cancel", response_model=BackupJobResponse)
async def cancel_backup(
    backup_id: str,
    admin: AdminIdentity = Depends(deps.require_admin),
    engine: BackupJobEngine = Depends(deps.get_backup_engine),
    meta: RequestMeta = Depends(deps.get_request_meta),
):
    job = await engine.cancel(backup_id, actor_id=admin.id, meta=meta)
    return BackupJobResponse(backup=BackupJobOut.from_job(job))


@router.get("/admin/system/backups/{backup_id}/download")
async def download_backup(
    backup_id: str,
    _admin: AdminIdentity = Depends(deps.require_admin),
    engine: BackupJobEngine = Depends(deps.get_backup_engine),
):
    artifact = await engine.download(backup_id)
    return FileResponse(artifact.path, media_type="application/sql", filename=artifact.file_name)
