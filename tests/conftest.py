"""
finadmin: pytest fixtures and configuration.

Provides:
- A fresh SQLite database per test (file-backed, so API requests and the test
  body use independent sessions)
- An in-memory OTP outbox to read delivered codes back
- A controllable clock shared by the OTP and backup engines
- An httpx client over the ASGI app with dependencies wired to the above
"""
import os

# Must be set before finadmin.config is imported anywhere.
os.environ.setdefault("ENV", "test")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("COOKIE_SECURE", "false")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")
os.environ.setdefault("RECOVERY_ENABLED", "false")
os.environ.setdefault("OTP_DELIVERY", "outbox")

from pathlib import Path
from typing import AsyncGenerator

import httpx
import pytest
import pytest_asyncio
from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from finadmin.config import BackupConfig, OtpAuthConfig
from finadmin.core.audit import AuditTrail
from finadmin.core.auth.challenge_store import ChallengeStore
from finadmin.core.auth.directory import AdminDirectory, AdminIdentity
from finadmin.core.auth.otp_engine import OtpChallengeEngine
from finadmin.core.notifications import OutboxOtpGateway
from finadmin.db.models import AdminUser, Base
from tests.helpers import TEST_JWT_SECRET, FakeClock, create_admin


# =============================================================================
# Database
# =============================================================================
@pytest_asyncio.fixture
async def session_factory(tmp_path: Path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}", poolclass=NullPool)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    factory = async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)
    try:
        yield factory
    finally:
        await engine.dispose()


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def admin_user(db_session) -> AdminUser:
    return await create_admin(db_session)


@pytest.fixture
def admin_identity(admin_user) -> AdminIdentity:
    return AdminIdentity(id=str(admin_user.id), email=admin_user.email, roles=list(admin_user.roles))


# =============================================================================
# Engine collaborators
# =============================================================================
@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def outbox() -> OutboxOtpGateway:
    return OutboxOtpGateway()


@pytest.fixture
def otp_config() -> OtpAuthConfig:
    return OtpAuthConfig(
        otp_ttl_seconds=300,
        max_attempts=3,
        resend_cooldown_seconds=45,
        lock_duration_minutes=15,
        access_token_ttl_seconds=900,
        signing_secret=TEST_JWT_SECRET,
    )


@pytest.fixture
def backup_config(tmp_path: Path) -> BackupConfig:
    return BackupConfig(total_duration_ms=24000, storage_dir=str(tmp_path / "backups"))


@pytest.fixture
def otp_engine(db_session, outbox, otp_config, clock) -> OtpChallengeEngine:
    return OtpChallengeEngine(
        store=ChallengeStore(db_session),
        gateway=outbox,
        directory=AdminDirectory(db_session),
        config=otp_config,
        audit=AuditTrail(db_session),
        now_fn=clock,
    )


# =============================================================================
# HTTP client
# =============================================================================
@pytest_asyncio.fixture
async def client(session_factory, outbox, otp_config, backup_config, clock) -> AsyncGenerator[httpx.AsyncClient, None]:
    from finadmin.api import deps
    from finadmin.core.backups.engine import BackupJobEngine
    from finadmin.main import app

    async def _get_db():
        async with session_factory() as session:
            yield session

    def _otp_engine(db: AsyncSession = Depends(deps.get_db)) -> OtpChallengeEngine:
        return OtpChallengeEngine(
            store=ChallengeStore(db),
            gateway=outbox,
            directory=AdminDirectory(db),
            config=otp_config,
            audit=AuditTrail(db),
            now_fn=clock,
        )

    def _backup_engine(db: AsyncSession = Depends(deps.get_db)) -> BackupJobEngine:
        return BackupJobEngine(db, backup_config, audit=AuditTrail(db), now_fn=clock)

    app.dependency_overrides[deps.get_db] = _get_db
    app.dependency_overrides[deps.get_notification_gateway] = lambda: outbox
    app.dependency_overrides[deps.get_otp_config] = lambda: otp_config
    app.dependency_overrides[deps.get_otp_engine] = _otp_engine
    app.dependency_overrides[deps.get_backup_engine] = _backup_engine

    transport = httpx.ASGITransport(app=app)
    try:
        async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
            yield c
    finally:
        app.dependency_overrides.clear()

