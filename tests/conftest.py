"""Shared test fixtures — per-test data directory, app with lifespan, and clients."""

from collections.abc import AsyncGenerator

import pytest
from httpx import ASGITransport, AsyncClient

from tenantry.core.config import Settings
from tenantry.main import create_app
from tenantry.services.registry import RegistryStore

BASE_DOMAIN = "example.test"
ADMIN_TOKEN = "admin-secret"
PASSWORD = "correct-horse-battery"


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        _env_file=None,
        data_dir=tmp_path / "data",
        base_domain=BASE_DOMAIN,
        default_tenant=None,
        deployment_mode="cloudhost",
        admin_token=ADMIN_TOKEN,
        session_secret="test-secret",
        log_level="WARNING",
    )


@pytest.fixture
async def registry(tmp_path) -> AsyncGenerator[RegistryStore, None]:
    """A standalone registry, for service-level tests."""
    store = RegistryStore(f"sqlite+aiosqlite:///{tmp_path / 'registry.db'}")
    await store.open()
    yield store
    await store.close()


@pytest.fixture
async def app(settings):
    application = create_app(settings)
    async with application.router.lifespan_context(application):
        yield application


@pytest.fixture
async def client(app) -> AsyncGenerator[AsyncClient, None]:
    """Client on the apex domain (registration, admin, health)."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url=f"http://{BASE_DOMAIN}") as ac:
        yield ac


@pytest.fixture
async def tenant_client(app):
    """Factory for clients addressed to ``<tenant>.example.test``.

    Each client keeps its own cookie jar, like a separate browser.
    """
    clients: list[AsyncClient] = []

    def _make(tenant: str, **kwargs) -> AsyncClient:
        ac = AsyncClient(
            transport=ASGITransport(app=app),
            base_url=f"http://{tenant}.{BASE_DOMAIN}",
            **kwargs,
        )
        clients.append(ac)
        return ac

    yield _make
    for ac in clients:
        await ac.aclose()


@pytest.fixture
def signup(client, tenant_client):
    """Register a tenant on the apex domain and return a signed-in client for it."""

    async def _signup(name: str) -> AsyncClient:
        resp = await client.post("/v1/register", json={"tenant": name})
        assert resp.status_code == 201, resp.text

        tc = tenant_client(name)
        resp = await tc.post("/v1/auth/setup", json={"password": PASSWORD})
        assert resp.status_code == 200, resp.text
        return tc

    return _signup
