import asyncio
import time
from typing import AsyncGenerator

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from finadmin.config import BackupConfig, OtpAuthConfig, settings
from finadmin.core.audit import AuditTrail, RequestMeta
from finadmin.core.auth.challenge_store import ChallengeStore
from finadmin.core.auth.cookies import CookiePolicy, read_access_token
from finadmin.core.auth.directory import AdminDirectory, AdminIdentity
from finadmin.core.auth.otp_engine import OtpChallengeEngine
from finadmin.core.auth.tokens import AccessTokenIssuer
from finadmin.core.backups.engine import BackupJobEngine
from finadmin.core.notifications import NotificationGateway, build_notification_gateway
from finadmin.db.session import get_db_session
from finadmin.utils.exceptions import TooManyRequestsException, UnauthorizedException
from finadmin.utils.request_id import current_request_id


_rate_limit_lock = asyncio.Lock()
_rate_limit_counters: dict[tuple[int, str], int] = {}


async def rate_limit(request: Request) -> None:
    if not settings.RATE_LIMIT_ENABLED:
        return

    client_host = (request.client.host if request.client else None) or "unknown"
    window_seconds = max(1, int(settings.RATE_LIMIT_WINDOW_SECONDS))
    limit = max(1, int(settings.RATE_LIMIT_REQUESTS_PER_WINDOW))
    bucket = int(time.monotonic() // window_seconds)
    key = (bucket, client_host)

    async with _rate_limit_lock:
        current = _rate_limit_counters.get(key, 0) + 1
        _rate_limit_counters[key] = current

        # Only the current window is ever read; drop every older one.
        for stale_key in [k for k in _rate_limit_counters if k[0] < bucket]:
            del _rate_limit_counters[stale_key]

    if current > limit:
        raise TooManyRequestsException(
            details={
                "window_seconds": window_seconds,
                "limit": limit,
            }
        )


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    async for session in get_db_session():
        yield session


def get_otp_config() -> OtpAuthConfig:
    return OtpAuthConfig.from_settings(settings)


def get_backup_config() -> BackupConfig:
    return BackupConfig.from_settings(settings)


def get_cookie_policy() -> CookiePolicy:
    return CookiePolicy.from_settings(settings)


def get_notification_gateway(request: Request) -> NotificationGateway:
    gateway = getattr(request.app.state, "notification_gateway", None)
    if gateway is None:
        gateway = build_notification_gateway(settings)
        request.app.state.notification_gateway = gateway
    return gateway


def get_request_meta(request: Request) -> RequestMeta:
    return RequestMeta(
        ip_address=(request.client.host if request.client else None) or None,
        user_agent=request.headers.get("user-agent"),
        request_id=current_request_id() or request.headers.get("X-Request-ID"),
    )


def get_admin_directory(db: AsyncSession = Depends(get_db)) -> AdminDirectory:
    return AdminDirectory(db)


def get_otp_engine(
    db: AsyncSession = Depends(get_db),
    gateway: NotificationGateway = Depends(get_notification_gateway),
    config: OtpAuthConfig = Depends(get_otp_config),
) -> OtpChallengeEngine:
    return OtpChallengeEngine(
        store=ChallengeStore(db),
        gateway=gateway,
        directory=AdminDirectory(db),
        config=config,
        audit=AuditTrail(db),
    )


def get_token_issuer(config: OtpAuthConfig = Depends(get_otp_config)) -> AccessTokenIssuer:
    return AccessTokenIssuer(config)


def get_backup_engine(
    db: AsyncSession = Depends(get_db),
    config: BackupConfig = Depends(get_backup_config),
) -> BackupJobEngine:
    return BackupJobEngine(db, config, audit=AuditTrail(db))


async def require_admin(
    request: Request,
    directory: AdminDirectory = Depends(get_admin_directory),
    issuer: AccessTokenIssuer = Depends(get_token_issuer),
) -> AdminIdentity:
    """Authenticate the caller by access token (cookie or Bearer) and re-resolve the admin."""
    token = read_access_token(request)
    if not token:
        raise UnauthorizedException("Unauthorized")

    claims = issuer.verify(token)
    admin = await directory.resolve(claims.id)
    if admin is None:
        raise UnauthorizedException("Unauthorized")
    return admin
