from __future__ import annotations

from typing import Any


HTTP_METHODS = {"get", "post", "put", "patch", "delete", "options", "head"}

EXPECTED_ROUTES: dict[str, set[str]] = {
    "/admin/auth/login": {"post"},
    "/admin/auth/otp": {"get"},
    "/admin/auth/otp/verify": {"post"},
    "/admin/auth/otp/resend": {"post"},
    "/admin/auth/otp/cancel": {"post"},
    "/admin/auth/session": {"get"},
    "/admin/auth/logout": {"post"},
    "/admin/system/backups": {"post"},
    "/admin/system/backups/latest": {"get"},
    "/admin/system/backups/{backup_id}": {"get"},
    "/admin/system/backups/{backup_id}/cancel": {"post"},
    "/admin/system/backups/{backup_id}/download": {"get"},
}


def _load_fastapi_openapi() -> dict[str, Any]:
    # Import here to ensure test env/fixtures are set up before app import.
    from finadmin.main import app

    schema = app.openapi()
    assert isinstance(schema, dict)
    return schema


def test_openapi_paths_and_methods_match_route_table() -> None:
    app_schema = _load_fastapi_openapi()

    app_routes = {
        p.removeprefix("/api/v1"): {k for k in item.keys() if k in HTTP_METHODS}
        for p, item in (app_schema.get("paths") or {}).items()
        if p.startswith("/api/v1/")
    }

    assert set(app_routes) == set(EXPECTED_ROUTES), (
        f"Missing in app: {sorted(set(EXPECTED_ROUTES) - set(app_routes))}; "
        f"Extra in app: {sorted(set(app_routes) - set(EXPECTED_ROUTES))}"
    )
    for path, methods in EXPECTED_ROUTES.items():
        assert app_routes[path] == methods, f"Method drift for path {path}"


def test_openapi_documents_error_envelope() -> None:
    app_schema = _load_fastapi_openapi()

    schemas = (app_schema.get("components") or {}).get("schemas") or {}
    assert "ErrorEnvelope" in schemas
    assert "ErrorDetail" in schemas

    verify = app_schema["paths"]["/api/v1/admin/auth/otp/verify"]["post"]
    ref = verify["responses"]["423"]["content"]["application/json"]["schema"]["$ref"]
    assert ref.endswith("/ErrorEnvelope")
