"""Time-derived state of an admin OTP challenge.

A challenge's effective state at any instant is a pure function of its stored
fields and the wall-clock time. The functions here never touch the database:
they return the state plus the mutation (if any) the caller should persist.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from finadmin.db.models.otp_challenge import (
    CANCELLED,
    CONSUMED,
    EXPIRED,
    LOCKED,
    PENDING,
    VERIFIED,
)
from finadmin.utils.durations import as_utc, seconds_until


# Effective states as seen by the engine (not all are stored statuses).
STATE_USABLE = "usable"
STATE_GONE = "gone"
STATE_EXPIRED = "expired"
STATE_LOCKED = "locked"
STATE_EXHAUSTED = "exhausted"


@dataclass(frozen=True)
class StatusSnapshot:
    challenge_id: str
    masked_identity: str
    otp_expires_in_seconds: int
    remaining_attempts: int
    max_attempts: int
    lockout_remaining_seconds: int
    resend_available_in_seconds: int
    status: str

    def as_dict(self) -> dict:
        return {
            "challenge_id": self.challenge_id,
            "masked_identity": self.masked_identity,
            "otp_expires_in_seconds": self.otp_expires_in_seconds,
            "remaining_attempts": self.remaining_attempts,
            "max_attempts": self.max_attempts,
            "lockout_remaining_seconds": self.lockout_remaining_seconds,
            "resend_available_in_seconds": self.resend_available_in_seconds,
            "status": self.status,
        }


@dataclass(frozen=True)
class ChallengeMutation:
    """Fields to stamp on the record when a passive transition happens."""

    status: str
    invalidated_at: Optional[datetime] = None


@dataclass(frozen=True)
class EffectiveState:
    state: str
    mutation: Optional[ChallengeMutation] = None
    lockout_remaining_seconds: int = 0


def build_status_snapshot(challenge, now: datetime) -> StatusSnapshot:
    return StatusSnapshot(
        challenge_id=str(challenge.id),
        masked_identity=challenge.masked_identity,
        otp_expires_in_seconds=seconds_until(challenge.expires_at, now),
        remaining_attempts=max(0, int(challenge.max_attempts) - int(challenge.attempt_count)),
        max_attempts=int(challenge.max_attempts),
        lockout_remaining_seconds=seconds_until(challenge.locked_until, now),
        resend_available_in_seconds=seconds_until(challenge.resend_available_at, now),
        status=challenge.status,
    )


def attempts_exhausted(challenge) -> bool:
    return int(challenge.attempt_count) >= int(challenge.max_attempts)


def resolve_effective_state(challenge, now: datetime) -> EffectiveState:
    """Passive expiry/lock check run before status, verify and resend.

    Order matters: terminal statuses win over expiry, expiry wins over lock.
    """
    if challenge.used_at is not None or challenge.status in (CONSUMED, CANCELLED, VERIFIED):
        return EffectiveState(STATE_GONE)

    if as_utc(challenge.expires_at) <= now:
        mutation = None
        if challenge.status != EXPIRED:
            mutation = ChallengeMutation(status=EXPIRED, invalidated_at=now)
        return EffectiveState(STATE_EXPIRED, mutation=mutation)

    locked_until = as_utc(challenge.locked_until)
    if locked_until is not None and locked_until > now:
        mutation = None
        if challenge.status != LOCKED:
            mutation = ChallengeMutation(status=LOCKED)
        return EffectiveState(
            STATE_LOCKED,
            mutation=mutation,
            lockout_remaining_seconds=seconds_until(locked_until, now),
        )

    # A lapsed lock does not restore the spent attempts: the challenge is
    # finished and the administrator has to log in again.
    if attempts_exhausted(challenge):
        mutation = None
        if challenge.status != LOCKED:
            mutation = ChallengeMutation(status=LOCKED)
        return EffectiveState(STATE_EXHAUSTED, mutation=mutation)

    return EffectiveState(STATE_USABLE)


def is_non_terminal(status: str) -> bool:
    return status in (PENDING, LOCKED)
