from fastapi import APIRouter, Depends

from finadmin.api import deps
from finadmin.api.v1 import auth, backups
from finadmin.schemas.common import ErrorEnvelope

api_router = APIRouter()

_http_deps = [Depends(deps.rate_limit)]

# Documented error shape; the global exception handler renders every AdminApiException this way.
_error_responses = {
    status: {"model": ErrorEnvelope} for status in (400, 401, 404, 409, 423, 429, 500, 502)
}

api_router.include_router(
    auth.router,
    prefix="/admin/auth",
    tags=["Admin Auth"],
    dependencies=_http_deps,
    responses=_error_responses,
)
api_router.include_router(
    backups.router,
    tags=["Admin Backups"],
    dependencies=_http_deps,
    responses=_error_responses,
)
