import uuid
from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Index, Integer, String, Text, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column
from finadmin.db.base import Base

PENDING = "pending"
VERIFIED = "verified"
EXPIRED = "expired"
LOCKED = "locked"
CONSUMED = "consumed"
CANCELLED = "cancelled"

CHALLENGE_STATUSES = (PENDING, VERIFIED, EXPIRED, LOCKED, CONSUMED, CANCELLED)
NON_TERMINAL_STATUSES = (PENDING, LOCKED)


class AdminOtpChallenge(Base):
    """One row per issued admin OTP challenge.

    Only hashes of the bearer token and the code are stored; the contact
    identity is kept as a hash (audit key) and a masked display form.
    """

    __tablename__ = "admin_otp_challenges"

    id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    owner_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("admin_users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    identity_hash: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    masked_identity: Mapped[str] = mapped_column(String(255), nullable=False)
    challenge_token_hash: Mapped[str] = mapped_column(String(64), nullable=False, unique=True, index=True)
    code_hash: Mapped[str] = mapped_column(String(64), nullable=False)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default=PENDING, index=True)
    attempt_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    max_attempts: Mapped[int] = mapped_column(Integer, nullable=False, default=3)
    resend_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    resend_available_at: Mapped[DateTime] = mapped_column(DateTime(timezone=True), nullable=False)
    locked_until: Mapped[DateTime | None] = mapped_column(DateTime(timezone=True))
    expires_at: Mapped[DateTime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)
    used_at: Mapped[DateTime | None] = mapped_column(DateTime(timezone=True))
    invalidated_at: Mapped[DateTime | None] = mapped_column(DateTime(timezone=True))
    ip_address: Mapped[str | None] = mapped_column(String(45))
    user_agent: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[DateTime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[DateTime] = mapped_column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        CheckConstraint(
            "status IN ('pending', 'verified', 'expired', 'locked', 'consumed', 'cancelled')",
            name="chk_admin_otp_challenges_status",
        ),
        CheckConstraint("attempt_count >= 0", name="chk_admin_otp_challenges_attempt_count"),
        CheckConstraint("max_attempts >= 1", name="chk_admin_otp_challenges_max_attempts"),
        CheckConstraint("resend_count >= 0", name="chk_admin_otp_challenges_resend_count"),
        Index("ix_admin_otp_challenges_owner_status", "owner_id", "status"),
    )
