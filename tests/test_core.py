import logging
import uuid

import pytest
from jose import jwt

from fxdesk_api.core import security
from fxdesk_api.core.errors import ConflictError, DomainError, NotFoundError, UpstreamServiceError
from fxdesk_api.core.logging import LoggingContextFilter, correlation_id_var, tenant_id_var
from fxdesk_api.core.settings import AppSettings, get_app_settings


def test_password_hashing():
    hashed = security.get_password_hash("s3cret-pass")
    assert hashed != "s3cret-pass"
    assert security.verify_password("s3cret-pass", hashed)
    assert not security.verify_password("wrong", hashed)
    assert not security.verify_password("anything", None)


def test_access_token_claims():
    user_id, org_id = str(uuid.uuid4()), str(uuid.uuid4())
    token = security.create_access_token(user_id, org_id, roles=["admin"])
    claims = security.decode_token(token)
    assert claims["sub"] == user_id
    assert claims["tenant_id"] == org_id
    assert claims["roles"] == ["admin"]
    assert claims["type"] == security.ACCESS_TOKEN_TYPE


def test_token_subject_checks_type_and_tenant():
    user_id, org_id = str(uuid.uuid4()), str(uuid.uuid4())
    access = security.create_access_token(user_id, org_id)
    refresh = security.create_refresh_token(user_id, org_id)

    assert security.get_token_subject(access) == user_id
    assert security.get_token_subject(access, tenant_id=org_id) == user_id
    assert security.get_token_subject(access, tenant_id=str(uuid.uuid4())) is None
    assert security.get_token_subject(refresh) is None
    assert security.get_token_subject("not-a-token") is None


def test_token_signed_with_other_key_is_rejected():
    forged = jwt.encode({"sub": "x", "type": "access"}, "other-key", algorithm="HS256")
    assert security.get_token_subject(forged) is None


def test_invitation_tokens_are_unique():
    assert security.generate_invitation_token() != security.generate_invitation_token()


def test_settings_parse_lists_and_base_currency(monkeypatch):
    monkeypatch.setenv("CORS_ORIGINS", "https://a.example, https://b.example")
    monkeypatch.setenv("FX_BASE_CURRENCY", " usd ")
    settings = get_app_settings()
    assert settings.CORS_ORIGINS == ["https://a.example", "https://b.example"]
    assert settings.FX_BASE_CURRENCY == "USD"


def test_settings_accept_json_lists():
    settings = AppSettings(CORS_ALLOW_METHODS='["GET", "POST"]')
    assert settings.CORS_ALLOW_METHODS == ["GET", "POST"]


def test_domain_errors_carry_status_and_type():
    assert NotFoundError("Customer not found").status_code == 404
    assert ConflictError("dup").error_type == "conflict"
    err = UpstreamServiceError("boom", details={"status": 500})
    assert isinstance(err, DomainError)
    assert err.status_code == 502
    assert err.details == {"status": 500}


def test_logging_filter_injects_context():
    record = logging.LogRecord("t", logging.INFO, __file__, 1, "msg", None, None)
    token_c = correlation_id_var.set("corr-1")
    token_t = tenant_id_var.set("org-1")
    try:
        assert LoggingContextFilter().filter(record)
    finally:
        correlation_id_var.reset(token_c)
        tenant_id_var.reset(token_t)
    assert record.correlation_id == "corr-1"
    assert record.tenant_id == "org-1"


def test_logging_filter_placeholders():
    record = logging.LogRecord("t", logging.INFO, __file__, 1, "msg", None, None)
    LoggingContextFilter().filter(record)
    assert record.correlation_id == "-"
    assert record.tenant_id == "-"


@pytest.mark.parametrize(
    "url, expected",
    [
        ("postgres://u:p@h:5432/db", "postgresql+asyncpg://u:p@h:5432/db"),
        ("postgresql+asyncpg://u:p@h/db", "postgresql+asyncpg://u:p@h/db"),
    ],
)
def test_async_database_url(monkeypatch, url, expected):
    from fxdesk_api.db.config import get_settings

    monkeypatch.setenv("POSTGRES_URL", url)
    assert get_settings().async_database_url == expected
    assert get_settings().sync_database_url.startswith("postgresql://")
