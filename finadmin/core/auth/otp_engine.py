"""Admin OTP challenge engine.

Flow: password check (AdminDirectory) -> ``start`` -> client submits the code
to ``verify`` -> the caller mints an access token for the returned admin.

Every operation that reads a challenge first runs the passive expiry/lock
check (``resolve_effective_state``) and persists the passive transition it
yields, so a challenge's state is always derived from its stored fields and
the wall-clock time rather than from a background sweep.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Optional

from finadmin.config import OtpAuthConfig
from finadmin.core.audit import AuditTrail, RequestMeta
from finadmin.core.auth.challenge_state import (
    STATE_EXHAUSTED,
    STATE_EXPIRED,
    STATE_GONE,
    STATE_LOCKED,
    StatusSnapshot,
    build_status_snapshot,
    is_non_terminal,
    resolve_effective_state,
)
from finadmin.core.auth.challenge_store import ChallengeStore
from finadmin.core.auth.directory import AdminDirectory, AdminIdentity
from finadmin.core.notifications import NotificationGateway
from finadmin.db.models.otp_challenge import (
    CANCELLED,
    CONSUMED,
    LOCKED,
    PENDING,
    AdminOtpChallenge,
)
from finadmin.utils.durations import as_utc, seconds_until, utc_now
from finadmin.utils.exceptions import (
    AttemptsExhaustedException,
    ChallengeExpiredException,
    ChallengeGoneException,
    ChallengeLockedException,
    IncorrectCodeException,
    ResendTooSoonException,
    UnauthorizedException,
)
from finadmin.utils.metrics import OTP_EVENTS_TOTAL
from finadmin.utils.observability import format_event, log_duration
from finadmin.utils.security import (
    generate_challenge_token,
    generate_otp_code,
    hash_identity,
    hash_token,
    hashes_equal,
    mask_email,
)
from finadmin.utils.validation import validate_otp_code

logger = logging.getLogger(__name__)

CHALLENGE_NOT_FOUND = "OTP challenge not found. Please login again."


@dataclass(frozen=True)
class StartedChallenge:
    # Bearer value for the client; only its hash is stored.
    token: str
    status: StatusSnapshot


@dataclass(frozen=True)
class VerifiedChallenge:
    admin: AdminIdentity
    access_token_expires_in_seconds: int

    def session(self) -> dict:
        return {"access_token_expires_in_seconds": self.access_token_expires_in_seconds}


def _failure_details(challenge: AdminOtpChallenge, now: datetime, **extra) -> dict:
    snapshot = build_status_snapshot(challenge, now)
    details = {
        "remaining_attempts": snapshot.remaining_attempts,
        "max_attempts": snapshot.max_attempts,
        "lockout_remaining_seconds": snapshot.lockout_remaining_seconds,
    }
    details.update(extra)
    details["otp_status"] = snapshot.as_dict()
    return details


class OtpChallengeEngine:
    def __init__(
        self,
        *,
        store: ChallengeStore,
        gateway: NotificationGateway,
        directory: AdminDirectory,
        config: OtpAuthConfig,
        audit: Optional[AuditTrail] = None,
        now_fn: Callable[[], datetime] | None = None,
    ) -> None:
        self.store = store
        self.gateway = gateway
        self.directory = directory
        self.config = config
        self.audit = audit
        self._now_fn = now_fn or utc_now

    def _now(self) -> datetime:
        return as_utc(self._now_fn())

    async def _audit(self, action: str, challenge: AdminOtpChallenge, meta: Optional[RequestMeta], **details) -> None:
        if self.audit is None:
            return
        await self.audit.record(
            action,
            actor_id=str(challenge.owner_id),
            identity_hash=challenge.identity_hash,
            object_type="admin_otp_challenge",
            object_id=str(challenge.id),
            details=details or None,
            meta=meta,
        )

    async def _dispatch(self, identity: str, code: str, *, event: str) -> None:
        with log_duration(logger, f"otp.{event}.dispatch", identity_hash=hash_identity(identity)):
            try:
                await self.gateway.send(identity, code)
            except Exception:
                OTP_EVENTS_TOTAL.labels(event=event, result="delivery_failed").inc()
                raise

    async def _load(self, token: Optional[str], now: datetime, *, event: str) -> AdminOtpChallenge:
        """Find the challenge for ``token`` and apply the passive expiry/lock check."""
        challenge = await self.store.find_by_token_hash(hash_token(token)) if token else None
        if challenge is None:
            OTP_EVENTS_TOTAL.labels(event=event, result="not_found").inc()
            raise UnauthorizedException(CHALLENGE_NOT_FOUND)

        effective = resolve_effective_state(challenge, now)
        if effective.mutation is not None:
            challenge.status = effective.mutation.status
            if effective.mutation.invalidated_at is not None:
                challenge.invalidated_at = effective.mutation.invalidated_at
            await self.store.save(challenge)

        if effective.state == STATE_GONE:
            OTP_EVENTS_TOTAL.labels(event=event, result="gone").inc()
            raise ChallengeGoneException("OTP challenge is no longer valid. Please login again.")

        if effective.state == STATE_EXPIRED:
            OTP_EVENTS_TOTAL.labels(event=event, result="expired").inc()
            raise ChallengeExpiredException(
                "OTP expired. Please login again.",
                details={"otp_status": build_status_snapshot(challenge, now).as_dict()},
            )

        if effective.state == STATE_LOCKED:
            OTP_EVENTS_TOTAL.labels(event=event, result="locked").inc()
            raise ChallengeLockedException(
                "Maximum attempts reached. Access is temporarily blocked.",
                details=_failure_details(challenge, now, reason="locked"),
            )

        if effective.state == STATE_EXHAUSTED:
            OTP_EVENTS_TOTAL.labels(event=event, result="exhausted").inc()
            raise ChallengeLockedException(
                "Maximum attempts reached. Please login again.",
                details=_failure_details(challenge, now, reason="attempts_exhausted"),
            )

        return challenge

    async def start(self, owner: AdminIdentity, meta: Optional[RequestMeta] = None) -> StartedChallenge:
        """Issue a fresh challenge for ``owner`` and deliver its code.

        All earlier non-terminal challenges of the owner are cancelled first. If
        delivery fails the new challenge is cancelled and the error propagates.
        """
        meta = meta or RequestMeta()
        now = self._now()

        invalidated = await self.store.invalidate_all_active_for_owner(owner.id_uuid, new_status=CANCELLED, now=now)

        token = generate_challenge_token()
        code = generate_otp_code()
        challenge = AdminOtpChallenge(
            owner_id=owner.id_uuid,
            identity_hash=hash_identity(owner.email),
            masked_identity=mask_email(owner.email),
            challenge_token_hash=hash_token(token),
            code_hash=hash_token(code),
            status=PENDING,
            attempt_count=0,
            max_attempts=self.config.max_attempts,
            resend_count=0,
            resend_available_at=now + timedelta(seconds=self.config.resend_cooldown_seconds),
            locked_until=None,
            expires_at=now + timedelta(seconds=self.config.otp_ttl_seconds),
            ip_address=meta.ip_address,
            user_agent=meta.user_agent,
        )
        await self.store.add(challenge)

        try:
            await self._dispatch(owner.email, code, event="start")
        except Exception:
            challenge.status = CANCELLED
            challenge.invalidated_at = now
            await self.store.save(challenge)
            logger.warning(
                format_event("otp.start delivery_failed", challenge_id=challenge.id, identity_hash=challenge.identity_hash)
            )
            raise

        OTP_EVENTS_TOTAL.labels(event="start", result="success").inc()
        logger.info(
            format_event(
                "otp.start issued",
                challenge_id=challenge.id,
                identity_hash=challenge.identity_hash,
                invalidated=invalidated,
            )
        )
        started = StartedChallenge(token=token, status=build_status_snapshot(challenge, now))
        await self._audit("admin_otp_issued", challenge, meta, invalidated_challenges=invalidated)
        return started

    async def status(self, token: Optional[str]) -> StatusSnapshot:
        now = self._now()
        challenge = await self._load(token, now, event="status")
        return build_status_snapshot(challenge, now)

    async def verify(
        self, token: Optional[str], code: Optional[str], meta: Optional[RequestMeta] = None
    ) -> VerifiedChallenge:
        # Format is checked before any lookup: malformed input never costs an attempt.
        code = validate_otp_code(code)
        now = self._now()
        challenge = await self._load(token, now, event="verify")

        if not hashes_equal(hash_token(code), challenge.code_hash):
            challenge.attempt_count = int(challenge.attempt_count) + 1
            exhausted = challenge.attempt_count >= int(challenge.max_attempts)
            if exhausted:
                challenge.status = LOCKED
                challenge.locked_until = now + timedelta(minutes=self.config.lock_duration_minutes)
            await self.store.save(challenge)

            logger.warning(
                format_event(
                    "otp.verify failed",
                    challenge_id=challenge.id,
                    identity_hash=challenge.identity_hash,
                    attempts_used=challenge.attempt_count,
                    max_attempts=challenge.max_attempts,
                    locked=exhausted,
                )
            )
            if exhausted:
                error: Exception = AttemptsExhaustedException(
                    "Maximum OTP attempts reached. Access is temporarily blocked.",
                    details=_failure_details(challenge, now, reason="attempts_exhausted"),
                )
            else:
                error = IncorrectCodeException(details=_failure_details(challenge, now))
            await self._audit(
                "admin_otp_locked" if exhausted else "admin_otp_attempt_failed",
                challenge,
                meta,
                attempts_used=challenge.attempt_count,
                max_attempts=challenge.max_attempts,
            )
            OTP_EVENTS_TOTAL.labels(event="verify", result="exhausted" if exhausted else "incorrect").inc()
            raise error

        admin = await self.directory.resolve(challenge.owner_id)
        if admin is None:
            OTP_EVENTS_TOTAL.labels(event="verify", result="owner_inactive").inc()
            raise UnauthorizedException("Unauthorized")

        challenge.status = CONSUMED
        challenge.used_at = now
        challenge.invalidated_at = now
        await self.store.save(challenge)
        await self.directory.mark_login(challenge.owner_id, at=now)

        OTP_EVENTS_TOTAL.labels(event="verify", result="success").inc()
        logger.info(format_event("otp.verify success", challenge_id=challenge.id, identity_hash=challenge.identity_hash))
        await self._audit("admin_otp_verified", challenge, meta)
        return VerifiedChallenge(
            admin=admin,
            access_token_expires_in_seconds=int(self.config.access_token_ttl_seconds),
        )

    async def resend(self, token: Optional[str], meta: Optional[RequestMeta] = None) -> StatusSnapshot:
        """Replace the code of a usable challenge once the cooldown has elapsed.

        The new code is delivered before anything is persisted: a delivery
        failure leaves the stored challenge exactly as it was.
        """
        now = self._now()
        challenge = await self._load(token, now, event="resend")

        resend_available_at = as_utc(challenge.resend_available_at)
        if resend_available_at is not None and resend_available_at > now:
            OTP_EVENTS_TOTAL.labels(event="resend", result="too_soon").inc()
            raise ResendTooSoonException(
                "Please wait before requesting another code.",
                details={
                    "resend_available_in_seconds": seconds_until(resend_available_at, now),
                    "otp_status": build_status_snapshot(challenge, now).as_dict(),
                },
            )

        admin = await self.directory.resolve(challenge.owner_id)
        if admin is None:
            OTP_EVENTS_TOTAL.labels(event="resend", result="owner_inactive").inc()
            raise UnauthorizedException("Unauthorized")

        code = generate_otp_code()
        code_hash = hash_token(code)
        while hashes_equal(code_hash, challenge.code_hash):
            code = generate_otp_code()
            code_hash = hash_token(code)

        await self._dispatch(admin.email, code, event="resend")

        challenge.code_hash = code_hash
        challenge.expires_at = now + timedelta(seconds=self.config.otp_ttl_seconds)
        challenge.resend_count = int(challenge.resend_count) + 1
        challenge.resend_available_at = now + timedelta(seconds=self.config.resend_cooldown_seconds)
        challenge.status = PENDING
        challenge.locked_until = None
        await self.store.save(challenge)

        OTP_EVENTS_TOTAL.labels(event="resend", result="success").inc()
        logger.info(
            format_event(
                "otp.resend success",
                challenge_id=challenge.id,
                identity_hash=challenge.identity_hash,
                resend_count=challenge.resend_count,
            )
        )
        snapshot = build_status_snapshot(challenge, now)
        await self._audit("admin_otp_resent", challenge, meta, resend_count=challenge.resend_count)
        return snapshot

    async def cancel(self, token: Optional[str], meta: Optional[RequestMeta] = None) -> bool:
        """Cancel the challenge behind ``token``. Unknown or finished challenges are a no-op."""
        if not token:
            return False
        challenge = await self.store.find_by_token_hash(hash_token(token))
        if challenge is None or not is_non_terminal(challenge.status) or challenge.used_at is not None:
            return False

        now = self._now()
        challenge.status = CANCELLED
        challenge.invalidated_at = now
        await self.store.save(challenge)

        OTP_EVENTS_TOTAL.labels(event="cancel", result="success").inc()
        await self._audit("admin_otp_cancelled", challenge, meta)
        return True
