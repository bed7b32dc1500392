import logging

from fastapi import APIRouter, Depends, Request, Response

from finadmin.api import deps
from finadmin.config import OtpAuthConfig
from finadmin.core.audit import RequestMeta
from finadmin.core.auth.cookies import CookiePolicy, read_otp_token
from finadmin.core.auth.directory import AdminDirectory, AdminIdentity
from finadmin.core.auth.otp_engine import OtpChallengeEngine
from finadmin.core.auth.tokens import AccessTokenIssuer
from finadmin.schemas.auth import (
    AdminLoginRequest,
    AdminLoginResponse,
    AdminMessageResponse,
    AdminPublic,
    AdminSession,
    AdminSessionResponse,
    AdminVerifyResponse,
    OtpStatus,
    OtpStatusResponse,
    OtpVerifyRequest,
)
from finadmin.utils.exceptions import AdminApiException
from finadmin.utils.security import hash_identity

router = APIRouter()

logger = logging.getLogger(__name__)


@router.post("/login", response_model=AdminLoginResponse)
async def login(
    body: AdminLoginRequest,
    response: Response,
    directory: AdminDirectory = Depends(deps.get_admin_directory),
    engine: OtpChallengeEngine = Depends(deps.get_otp_engine),
    cookies: CookiePolicy = Depends(deps.get_cookie_policy),
    config: OtpAuthConfig = Depends(deps.get_otp_config),
    meta: RequestMeta = Depends(deps.get_request_meta),
):
    try:
        admin = await directory.authenticate(body.email, body.password)
        started = await engine.start(admin, meta)
    except AdminApiException as exc:
        logger.warning(
            "admin_auth.login failed code=%s identity_hash=%s ip=%s",
            exc.code,
            hash_identity(body.email or ""),
            meta.ip_address,
        )
        raise

    cookies.set_otp_cookie(response, started.token, config)
    logger.info("admin_auth.login otp_issued admin_id=%s ip=%s", admin.id, meta.ip_address)
    return AdminLoginResponse(otp=OtpStatus(**started.status.as_dict()))


@router.get("/otp", response_model=OtpStatusResponse)
async def otp_status(
    request: Request,
    engine: OtpChallengeEngine = Depends(deps.get_otp_engine),
):
    snapshot = await engine.status(read_otp_token(request))
    return OtpStatusResponse(**snapshot.as_dict())


@router.post("/otp/verify", response_model=AdminVerifyResponse)
async def otp_verify(
    body: OtpVerifyRequest,
    request: Request,
    response: Response,
    engine: OtpChallengeEngine = Depends(deps.get_otp_engine),
    issuer: AccessTokenIssuer = Depends(deps.get_token_issuer),
    cookies: CookiePolicy = Depends(deps.get_cookie_policy),
    config: OtpAuthConfig = Depends(deps.get_otp_config),
    meta: RequestMeta = Depends(deps.get_request_meta),
):
    # A missing signing secret must not burn the challenge.
    issuer.ensure_configured()

    verified = await engine.verify(read_otp_token(request), body.otp, meta)
    token = issuer.issue(verified.admin)

    cookies.set_access_cookie(response, token, config)
    cookies.clear_otp_cookie(response)
    logger.info("admin_auth.verify success admin_id=%s ip=%s", verified.admin.id, meta.ip_address)
    return AdminVerifyResponse(
        admin=AdminPublic(**verified.admin.as_dict()),
        session=AdminSession(**verified.session()),
    )


@router.post("/otp/resend", response_model=OtpStatusResponse)
async def otp_resend(
    request: Request,
    engine: OtpChallengeEngine = Depends(deps.get_otp_engine),
    meta: RequestMeta = Depends(deps.get_request_meta),
):
    snapshot = await engine.resend(read_otp_token(request), meta)
    return OtpStatusResponse(**snapshot.as_dict())


@router.post("/otp/cancel", response_model=AdminMessageResponse)
async def otp_cancel(
    request: Request,
    response: Response,
    engine: OtpChallengeEngine = Depends(deps.get_otp_engine),
    cookies: CookiePolicy = Depends(deps.get_cookie_policy),
    meta: RequestMeta = Depends(deps.get_request_meta),
):
    await engine.cancel(read_otp_token(request), meta)
    cookies.clear_otp_cookie(response)
    return AdminMessageResponse(message="OTP challenge cancelled.")


@router.get("/session", response_model=AdminSessionResponse)
async def session(
    admin: AdminIdentity = Depends(deps.require_admin),
    config: OtpAuthConfig = Depends(deps.get_otp_config),
):
    return AdminSessionResponse(
        admin=AdminPublic(**admin.as_dict()),
        session=AdminSession(access_token_expires_in_seconds=config.access_token_ttl_seconds),
    )


@router.post("/logout", response_model=AdminMessageResponse)
async def logout(
    response: Response,
    cookies: CookiePolicy = Depends(deps.get_cookie_policy),
):
    cookies.clear_access_cookie(response)
    return AdminMessageResponse(message="Logged out successfully.")
