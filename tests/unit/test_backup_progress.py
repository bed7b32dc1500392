from datetime import datetime, timedelta, timezone

from finadmin.core.backups.progress import (
    STAGE_COMPRESSING,
    STAGE_EXPORTING,
    STAGE_FINALIZING,
    STAGE_PREPARING,
    STAGE_UPLOADING,
    backup_duration_elapsed,
    backup_stage_by_progress,
    compute_backup_progress,
)

STARTED = datetime(2026, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


def test_stage_boundaries():
    assert backup_stage_by_progress(1) == STAGE_PREPARING
    assert backup_stage_by_progress(24) == STAGE_PREPARING
    assert backup_stage_by_progress(25) == STAGE_EXPORTING
    assert backup_stage_by_progress(49) == STAGE_EXPORTING
    assert backup_stage_by_progress(50) == STAGE_COMPRESSING
    assert backup_stage_by_progress(75) == STAGE_UPLOADING
    assert backup_stage_by_progress(94) == STAGE_UPLOADING
    assert backup_stage_by_progress(95) == STAGE_FINALIZING
    assert backup_stage_by_progress(100) == STAGE_FINALIZING


def test_progress_is_floor_of_elapsed_fraction():
    assert compute_backup_progress(STARTED, STARTED + timedelta(seconds=6), 24000) == 25
    assert compute_backup_progress(STARTED, STARTED + timedelta(milliseconds=11999), 24000) == 49
    assert compute_backup_progress(STARTED, STARTED + timedelta(seconds=12), 24000) == 50


def test_progress_is_clamped():
    assert compute_backup_progress(STARTED, STARTED, 24000) == 1
    # Clock skew: "now" before the start still reads as started.
    assert compute_backup_progress(STARTED, STARTED - timedelta(seconds=5), 24000) == 1
    assert compute_backup_progress(STARTED, STARTED + timedelta(hours=1), 24000) == 100


def test_progress_accepts_naive_started_at():
    naive = STARTED.replace(tzinfo=None)
    assert compute_backup_progress(naive, STARTED + timedelta(seconds=12), 24000) == 50


def test_duration_elapsed():
    assert not backup_duration_elapsed(STARTED, STARTED + timedelta(milliseconds=23999), 24000)
    assert backup_duration_elapsed(STARTED, STARTED + timedelta(seconds=24), 24000)
    # Non-positive durations are treated as 1 ms.
    assert backup_duration_elapsed(STARTED, STARTED + timedelta(milliseconds=1), 0)
