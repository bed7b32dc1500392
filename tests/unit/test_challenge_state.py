from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

from finadmin.core.auth.challenge_state import (
    STATE_EXHAUSTED,
    STATE_EXPIRED,
    STATE_GONE,
    STATE_LOCKED,
    STATE_USABLE,
    build_status_snapshot,
    resolve_effective_state,
)

NOW = datetime(2026, 3, 1, 12, 0, 0, tzinfo=timezone.utc)


def _challenge(**overrides):
    fields = dict(
        id="c-1",
        masked_identity="j***e@example.com",
        status="pending",
        attempt_count=0,
        max_attempts=3,
        resend_available_at=NOW + timedelta(seconds=45),
        locked_until=None,
        expires_at=NOW + timedelta(minutes=5),
        used_at=None,
        invalidated_at=None,
    )
    fields.update(overrides)
    return SimpleNamespace(**fields)


def test_fresh_challenge_is_usable_without_mutation():
    state = resolve_effective_state(_challenge(), NOW)
    assert state.state == STATE_USABLE
    assert state.mutation is None


def test_consumed_and_cancelled_are_gone_even_after_expiry():
    for status in ("consumed", "cancelled", "verified"):
        state = resolve_effective_state(_challenge(status=status, expires_at=NOW - timedelta(seconds=1)), NOW)
        assert state.state == STATE_GONE
        assert state.mutation is None

    assert resolve_effective_state(_challenge(used_at=NOW), NOW).state == STATE_GONE


def test_expiry_wins_over_lock_and_yields_expired_mutation():
    challenge = _challenge(
        status="locked",
        attempt_count=3,
        locked_until=NOW + timedelta(minutes=10),
        expires_at=NOW,
    )
    state = resolve_effective_state(challenge, NOW)
    assert state.state == STATE_EXPIRED
    assert state.mutation.status == "expired"
    assert state.mutation.invalidated_at == NOW


def test_already_expired_record_needs_no_mutation():
    state = resolve_effective_state(_challenge(status="expired", expires_at=NOW - timedelta(seconds=1)), NOW)
    assert state.state == STATE_EXPIRED
    assert state.mutation is None


def test_active_lock_reports_remaining_seconds():
    challenge = _challenge(status="pending", attempt_count=3, locked_until=NOW + timedelta(seconds=90, milliseconds=1))
    state = resolve_effective_state(challenge, NOW)
    assert state.state == STATE_LOCKED
    assert state.lockout_remaining_seconds == 91
    assert state.mutation.status == "locked"


def test_lapsed_lock_with_exhausted_attempts_stays_terminal():
    challenge = _challenge(status="locked", attempt_count=3, locked_until=NOW - timedelta(seconds=1))
    state = resolve_effective_state(challenge, NOW)
    assert state.state == STATE_EXHAUSTED
    assert state.lockout_remaining_seconds == 0
    assert state.mutation is None


def test_naive_datetimes_are_treated_as_utc():
    challenge = _challenge(expires_at=(NOW - timedelta(seconds=1)).replace(tzinfo=None))
    assert resolve_effective_state(challenge, NOW).state == STATE_EXPIRED


def test_status_snapshot_fields():
    challenge = _challenge(attempt_count=1, locked_until=None)
    snap = build_status_snapshot(challenge, NOW)
    assert snap.as_dict() == {
        "challenge_id": "c-1",
        "masked_identity": "j***e@example.com",
        "otp_expires_in_seconds": 300,
        "remaining_attempts": 2,
        "max_attempts": 3,
        "lockout_remaining_seconds": 0,
        "resend_available_in_seconds": 45,
        "status": "pending",
    }
