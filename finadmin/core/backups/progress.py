from __future__ import annotations

import math
from datetime import datetime

from finadmin.utils.durations import as_utc

STAGE_PREPARING = "Preparing backup snapshot"
STAGE_EXPORTING = "Exporting database collections"
STAGE_COMPRESSING = "Compressing backup archive"
STAGE_UPLOADING = "Uploading to remote storage"
STAGE_FINALIZING = "Finalizing backup"

STAGE_COMPLETED = "Backup completed"
STAGE_FAILED = "Backup failed"
STAGE_CANCELED = "Backup canceled"

_STAGES = (
    (25, STAGE_PREPARING),
    (50, STAGE_EXPORTING),
    (75, STAGE_COMPRESSING),
    (95, STAGE_UPLOADING),
)


def backup_stage_by_progress(progress: int) -> str:
    for upper, label in _STAGES:
        if progress < upper:
            return label
    return STAGE_FINALIZING


def elapsed_ms(started_at: datetime, now: datetime) -> float:
    return max(0.0, (now - as_utc(started_at)).total_seconds() * 1000.0)


def compute_backup_progress(started_at: datetime, now: datetime, total_duration_ms: int) -> int:
    """``floor(elapsed / total * 100)`` clamped to [1, 100].

    A running job always shows at least 1% so clients can tell it has started.
    """
    total = max(1, int(total_duration_ms))
    pct = math.floor(elapsed_ms(started_at, now) / total * 100)
    return max(1, min(100, pct))


def backup_duration_elapsed(started_at: datetime, now: datetime, total_duration_ms: int) -> bool:
    return elapsed_ms(started_at, now) >= max(1, int(total_duration_ms))
