import base64
import os
import uuid
from types import SimpleNamespace

import pytest

# Must be set before fxdesk_api.api.main is imported
os.environ.setdefault("RUN_MIGRATIONS_ON_STARTUP", "false")
os.environ.setdefault("AUTO_SEED", "false")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key")
os.environ.setdefault("POSTGRES_URL", "postgresql://fx:fx@localhost:5432/fxdesk_test")

from fastapi.testclient import TestClient  # noqa: E402

from fxdesk_api.api.main import app  # noqa: E402
from fxdesk_api.core.deps import get_current_membership  # noqa: E402
from fxdesk_api.db.session import get_async_session  # noqa: E402

WEBHOOK_SECRET = "whsec_" + base64.b64encode(b"fxdesk-webhook-test").decode()


class FakeResult:
    def scalar_one_or_none(self):
        return None

    def all(self):
        return []


class FakeSession:
    """Stands in for AsyncSession; records statements and never touches a database."""

    def __init__(self):
        self.statements = []
        self.commits = 0

    async def execute(self, stmt, params=None):
        self.statements.append((str(stmt), params))
        return FakeResult()

    async def commit(self):
        self.commits += 1

    async def rollback(self):
        pass

    async def flush(self):
        pass


@pytest.fixture
def fake_session():
    return FakeSession()


@pytest.fixture
def tenant_id():
    return uuid.uuid4()


@pytest.fixture
def member():
    return SimpleNamespace(user_id=uuid.uuid4(), role="member", status="active")


@pytest.fixture
def admin():
    return SimpleNamespace(user_id=uuid.uuid4(), role="admin", status="active")


@pytest.fixture
def client(fake_session):
    async def _session():
        yield fake_session

    app.dependency_overrides[get_async_session] = _session
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def as_membership(client):
    """Authenticate requests as the given membership without a token."""

    def _use(membership):
        app.dependency_overrides[get_current_membership] = lambda: membership
        return client

    return _use
