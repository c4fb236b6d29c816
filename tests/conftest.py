"""Shared test fixtures for GMBS Portal."""

import hashlib
import hmac
import time

import httpx
import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import event
from sqlalchemy.exc import OperationalError

from gmbs_portal.common.config import PortalSettings
from gmbs_portal.crm.client import CRMClient
from gmbs_portal.deps import ServiceContainer

SUPER_ADMIN_KEY = "test-super-admin-key"
SIGNING_KEY = "test-signing-key"
WEBHOOK_SECRET = "whsec_test_secret"


def make_settings(tmp_path, **overrides) -> PortalSettings:
    defaults = {
        "db_url": "sqlite+aiosqlite://",
        "super_admin_key": SUPER_ADMIN_KEY,
        "signing_key": SIGNING_KEY,
        "storage_root": str(tmp_path / "uploads"),
        "portal_url": "https://portal.test",
        "crm_base_url": "https://crm.test",
        "crm_key_id": "pk_live_crm",
        "crm_secret": "sk_live_crm",
        "stripe_webhook_secret": WEBHOOK_SECRET,
        "bcrypt_rounds": 4,
    }
    defaults.update(overrides)
    return PortalSettings(**defaults)


class CRMRecorder:
    """httpx.MockTransport handler that records requests and returns canned JSON."""

    def __init__(self):
        self.requests: list[httpx.Request] = []
        self.status_code = 200
        self.payload: dict = {"ok": True}

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return httpx.Response(self.status_code, json=self.payload)


@pytest.fixture
def settings(tmp_path):
    return make_settings(tmp_path)


@pytest.fixture
def crm_recorder():
    return CRMRecorder()


@pytest.fixture
async def container(settings, crm_recorder):
    crm = CRMClient(settings, transport=httpx.MockTransport(crm_recorder))
    built = ServiceContainer.build(settings, crm=crm)
    await built.init()
    yield built
    await built.close()


@pytest.fixture
def db(container):
    return container.db


@pytest.fixture
def fail_updates(container):
    """Make every UPDATE touching the given column fail at the driver level."""
    engine = container.db.engine.sync_engine
    listeners = []

    def _fail(column: str):
        def before_cursor_execute(conn, cursor, statement, parameters, context, executemany):
            if statement.startswith("UPDATE") and column in statement:
                raise OperationalError(statement, parameters, Exception("database is locked"))

        event.listen(engine, "before_cursor_execute", before_cursor_execute)
        listeners.append(before_cursor_execute)

    yield _fail
    for fn in listeners:
        event.remove(engine, "before_cursor_execute", fn)


@pytest.fixture
def app(container):
    from gmbs_portal.app import create_app
    return create_app(container.settings, container=container)


@pytest.fixture
async def client(app):
    # ASGITransport doesn't run lifespan; the container fixture owns init/close.
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture
def super_admin_headers():
    return {"X-GMBS-Admin-Key": SUPER_ADMIN_KEY}


@pytest.fixture
def sign_stripe():
    """Build a ``Stripe-Signature`` header value (v1 scheme) for a payload."""
    def _sign(payload: bytes, secret: str = WEBHOOK_SECRET, timestamp: int | None = None) -> str:
        ts = int(timestamp if timestamp is not None else time.time())
        sig = hmac.new(secret.encode(), f"{ts}.".encode() + payload, hashlib.sha256).hexdigest()
        return f"t={ts},v1={sig}"
    return _sign


@pytest.fixture
def make_tenant(container):
    """Create a tenant; returns (tenant, headers) with a working key pair."""

    async def _make(name="Acme Plomberie", allowed_artisans=10, status="active", **kwargs):
        async with container.db.get_session() as session:
            tenant, api_key, secret = await container.tenants.create_tenant(
                session,
                name=name,
                allowed_artisans=allowed_artisans,
                subscription_status=status,
                **kwargs,
            )
        headers = {"X-GMBS-Key-Id": api_key.key_id, "X-GMBS-Secret": secret}
        return tenant, headers

    return _make


@pytest.fixture
def issue_token(container):
    """Issue a portal token for an artisan; returns the raw token string."""

    async def _issue(tenant, artisan_id="A1", intervention_id="INT-1", metadata=None):
        async with container.db.get_session() as session:
            issued = await container.tokens.issue(
                session, tenant, artisan_id,
                crm_intervention_id=intervention_id,
                metadata=metadata or {"name": "Jean Dupont"},
            )
        return issued.token

    return _issue
