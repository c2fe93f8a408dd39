"""Admin API — session login, registry management, coupons and cleanup."""

import shutil
from datetime import datetime

import pytest
from httpx import AsyncClient

from tenantry.models.tenant import TenantStatus

ADMIN = {"token": "admin-secret"}
PASSWORD = "correct-horse-battery"


async def _admin_login(client: AsyncClient) -> None:
    resp = await client.post("/v1/admin/login", json=ADMIN)
    assert resp.status_code == 200, resp.text


@pytest.mark.asyncio
async def test_admin_requires_login(client: AsyncClient):
    resp = await client.get("/v1/admin/stats")
    assert resp.status_code == 401
    assert resp.json()["error"] == "admin_auth_required"

    resp = await client.post("/v1/admin/login", json={"token": "nope"})
    assert resp.status_code == 401

    await _admin_login(client)
    assert (await client.get("/v1/admin/status")).json() == {"is_admin": True, "configured": True}

    await client.post("/v1/admin/logout")
    assert (await client.get("/v1/admin/stats")).status_code == 401


@pytest.mark.asyncio
async def test_admin_manages_tenants(client: AsyncClient, settings):
    for name in ("acme", "beta"):
        await client.post("/v1/register", json={"tenant": name})
    await _admin_login(client)

    stats = (await client.get("/v1/admin/stats")).json()
    assert stats["total"] == 2
    assert stats["trialing"] == 2

    resp = await client.patch("/v1/admin/tenants/acme", json={"status": "free"})
    assert resp.status_code == 200, resp.text
    assert resp.json()["status"] == "free"

    tenants = {t["name"]: t for t in (await client.get("/v1/admin/tenants")).json()}
    assert tenants["acme"]["status"] == "free"

    resp = await client.delete("/v1/admin/tenants/beta")
    assert resp.status_code == 204
    assert not (settings.data_dir / "beta").exists()
    assert (await client.delete("/v1/admin/tenants/beta")).status_code == 404
    assert (await client.patch("/v1/admin/tenants/beta", json={"status": "free"})).status_code == 404


@pytest.mark.asyncio
async def test_admin_coupons(client: AsyncClient):
    await _admin_login(client)

    resp = await client.post("/v1/admin/coupons", json={
        "code": "extend30",
        "type": "trial_extension",
        "value": 30,
        "max_redemptions": 100,
    })
    assert resp.status_code == 201, resp.text
    assert resp.json()["code"] == "EXTEND30"

    resp = await client.post("/v1/admin/coupons", json={"code": "EXTEND30", "type": "free_access", "value": 0})
    assert resp.status_code == 409

    coupons = (await client.get("/v1/admin/coupons")).json()
    assert [c["code"] for c in coupons] == ["EXTEND30"]

    assert (await client.delete("/v1/admin/coupons/extend30")).status_code == 204
    assert (await client.delete("/v1/admin/coupons/extend30")).status_code == 404


@pytest.mark.asyncio
async def test_cleanup_removes_orphaned_entries(client: AsyncClient, app, settings):
    await client.post("/v1/register", json={"tenant": "acme"})
    await client.post("/v1/register", json={"tenant": "gone"})
    await app.state.pool.discard("gone")
    shutil.rmtree(settings.data_dir / "gone")
    await _admin_login(client)

    report = (await client.get("/v1/admin/diagnose")).json()
    by_name = {t["name"]: t for t in report["tenants"]}
    assert by_name["acme"]["has_db"] is True
    assert by_name["gone"]["has_db"] is False

    resp = await client.post("/v1/admin/cleanup")
    assert resp.json() == {"removed": ["gone"]}
    assert await app.state.registry.names() == ["acme"]


@pytest.mark.asyncio
async def test_deployment_config(client: AsyncClient):
    resp = await client.get("/v1/admin/config")
    assert resp.json() == {"hosted": True, "stripe": False}

@pytest.mark.asyncio
async def test_trial_end_accepts_utc_offsets(client: AsyncClient, app):
    await client.post("/v1/register", json={"tenant": "acme"})
    await app.state.registry.set_status("acme", TenantStatus.EXPIRED)
    await _admin_login(client)

    resp = await client.patch("/v1/admin/tenants/acme", json={"trial_ends_at": "2099-01-01T00:00:00Z"})
    assert resp.status_code == 200, resp.text
    assert resp.json()["status"] == "trialing"
    assert resp.json()["trial_ends_at"] == "2099-01-01T00:00:00"

    resp = await client.patch("/v1/admin/tenants/acme", json={"trial_ends_at": "2099-01-01T02:00:00+02:00"})
    assert resp.json()["trial_ends_at"] == "2099-01-01T00:00:00"

    entry = await app.state.registry.get_entry("acme")
    assert entry.trial_ends_at == datetime(2099, 1, 1)
    assert entry.trial_ends_at.tzinfo is None


@pytest.mark.asyncio
async def test_coupon_expiry_is_stored_as_utc(client: AsyncClient):
    await _admin_login(client)
    resp = await client.post("/v1/admin/coupons", json={
        "code": "SUMMER",
        "type": "trial_extension",
        "value": 7,
        "expires_at": "2099-06-01T12:00:00+02:00",
    })
    assert resp.status_code == 201, resp.text
    assert resp.json()["expires_at"] == "2099-06-01T10:00:00"


@pytest.mark.asyncio
async def test_discount_coupon_capped_at_full_price(client: AsyncClient):
    await _admin_login(client)
    resp = await client.post("/v1/admin/coupons", json={"code": "HUGE", "type": "discount", "value": 250})
    assert resp.status_code == 422

    resp = await client.post("/v1/admin/coupons", json={"code": "FREE", "type": "discount", "value": 100})
    assert resp.status_code == 201, resp.text


@pytest.mark.asyncio
async def test_admin_resets_tenant_password(client: AsyncClient, signup, tenant_client):
    await signup("acme")
    await _admin_login(client)

    resp = await client.post("/v1/admin/tenants/acme/reset-password")
    assert resp.status_code == 200, resp.text
    temporary = resp.json()["temporary_password"]
    assert resp.json()["tenant"] == "acme"
    assert temporary

    fresh = tenant_client("acme")
    assert (await fresh.post("/v1/auth/login", json={"password": PASSWORD})).status_code == 401
    assert (await fresh.post("/v1/auth/login", json={"password": temporary})).status_code == 200

    resp = await client.post("/v1/admin/tenants/ACME/reset-password", json={"password": "chosen-by-admin"})
    assert resp.status_code == 200, resp.text
    assert resp.json() == {"tenant": "acme", "temporary_password": None}
    fresh = tenant_client("acme")
    assert (await fresh.post("/v1/auth/login", json={"password": "chosen-by-admin"})).status_code == 200

    resp = await client.post("/v1/admin/tenants/acme/reset-password", json={"password": "short"})
    assert resp.status_code == 422


@pytest.mark.asyncio
async def test_reset_password_unknown_or_legacy_tenant(client: AsyncClient, app, tenant_client):
    await _admin_login(client)
    resp = await client.post("/v1/admin/tenants/ghost/reset-password")
    assert resp.status_code == 404
    assert (await client.post("/v1/admin/tenants/..%2Fetc/reset-password")).status_code == 404

    # Legacy storage has no registry entry but still gets a password
    await app.state.pool.provision("oldtimer")
    resp = await client.post("/v1/admin/tenants/oldtimer/reset-password", json={"password": "legacy-pass-1"})
    assert resp.status_code == 200, resp.text
    tc = tenant_client("oldtimer")
    assert (await tc.post("/v1/auth/login", json={"password": "legacy-pass-1"})).status_code == 200
