from datetime import datetime, timedelta, timezone

import jwt
import pytest

from finadmin.config import OtpAuthConfig
from finadmin.core.auth.directory import AdminIdentity
from finadmin.core.auth.tokens import AccessTokenIssuer
from finadmin.utils.exceptions import ConfigurationException, InvalidTokenException
from tests.helpers import TEST_JWT_SECRET

ADMIN = AdminIdentity(id="3f0c6a3e-8a47-4b8e-9b7c-4c1d2f5e6a7b", email="jane.doe@example.com", roles=["super_admin"])


def _issuer(**overrides) -> AccessTokenIssuer:
    cfg = OtpAuthConfig(signing_secret=overrides.pop("secret", TEST_JWT_SECRET), **overrides)
    return AccessTokenIssuer(cfg)


def test_issue_and_verify_round_trip():
    issuer = _issuer(access_token_ttl_seconds=600)
    claims = issuer.verify(issuer.issue(ADMIN))

    assert claims.id == ADMIN.id
    assert claims.email == ADMIN.email
    assert claims.roles == ["super_admin"]
    assert claims.jti
    remaining = (claims.expires_at - datetime.now(timezone.utc)).total_seconds()
    assert 590 <= remaining <= 600


def test_token_carries_admin_access_type():
    token = _issuer().issue(ADMIN)
    payload = jwt.decode(token, TEST_JWT_SECRET, algorithms=["HS256"])
    assert payload["type"] == "admin_access"
    assert payload["sub"] == ADMIN.id


def test_other_token_types_are_rejected():
    token = jwt.encode(
        {"type": "refresh", "sub": ADMIN.id, "exp": datetime.now(timezone.utc) + timedelta(minutes=5)},
        TEST_JWT_SECRET,
        algorithm="HS256",
    )
    with pytest.raises(InvalidTokenException):
        _issuer().verify(token)


def test_expired_token_is_rejected():
    past = datetime.now(timezone.utc) - timedelta(hours=1)
    cfg = OtpAuthConfig(signing_secret=TEST_JWT_SECRET, access_token_ttl_seconds=60)
    token = AccessTokenIssuer(cfg, now_fn=lambda: past).issue(ADMIN)

    with pytest.raises(InvalidTokenException) as exc_info:
        AccessTokenIssuer(cfg).verify(token)
    assert exc_info.value.status_code == 401


def test_token_signed_with_another_secret_is_rejected():
    token = _issuer(secret="another-secret-0123456789abcdef0123456789").issue(ADMIN)
    with pytest.raises(InvalidTokenException):
        _issuer().verify(token)


def test_garbage_and_empty_tokens_are_rejected():
    issuer = _issuer()
    for token in ("", "not.a.jwt", "abc"):
        with pytest.raises(InvalidTokenException):
            issuer.verify(token)


def test_missing_secret_is_a_configuration_error():
    issuer = _issuer(secret=None)
    with pytest.raises(ConfigurationException) as exc_info:
        issuer.issue(ADMIN)
    assert exc_info.value.status_code == 500

    with pytest.raises(ConfigurationException):
        issuer.ensure_configured()
    with pytest.raises(ConfigurationException):
        issuer.verify("anything")
