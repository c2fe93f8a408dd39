"""FastAPI dependencies for tenant resolution, sessions and entitlement.

Tenant-scoped routes run the pipeline in this order: ``require_tenant``
(tenant exists, store loaded) → ``require_session`` (session bound to this
tenant and authenticated) → ``enforce_entitlement`` (not locked out).
"""

from typing import Annotated

from fastapi import Depends, Request

from tenantry.core.config import Settings
from tenantry.core.context import current_tenant
from tenantry.core.errors import AdminAuthRequired, AdminNotConfigured, TenantNotFound
from tenantry.services.billing import BillingService
from tenantry.services.coupons import CouponEngine
from tenantry.services.entitlement import EntitlementGate
from tenantry.services.provisioning import TenantProvisioner
from tenantry.services.registry import RegistryStore
from tenantry.services.session_guard import SessionState, require_authenticated
from tenantry.services.store_pool import TenantStore, TenantStorePool

# ── Application components (created in the lifespan) ─────────


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_registry(request: Request) -> RegistryStore:
    return request.app.state.registry


def get_pool(request: Request) -> TenantStorePool:
    return request.app.state.pool


def get_gate(request: Request) -> EntitlementGate:
    return request.app.state.gate


def get_coupon_engine(request: Request) -> CouponEngine:
    return request.app.state.coupons


def get_provisioner(request: Request) -> TenantProvisioner:
    return request.app.state.provisioner


def get_billing(request: Request) -> BillingService:
    return request.app.state.billing


AppSettings = Annotated[Settings, Depends(get_app_settings)]
Registry = Annotated[RegistryStore, Depends(get_registry)]
Pool = Annotated[TenantStorePool, Depends(get_pool)]
Gate = Annotated[EntitlementGate, Depends(get_gate)]
Coupons = Annotated[CouponEngine, Depends(get_coupon_engine)]
Provisioner = Annotated[TenantProvisioner, Depends(get_provisioner)]
Billing = Annotated[BillingService, Depends(get_billing)]


# ── Tenant pipeline ──────────────────────────────────────────


async def require_tenant(pool: Pool, settings: AppSettings) -> str:
    """The ambient tenant, with its store loaded. 404 if there is none."""
    tenant = current_tenant()
    if tenant is None:
        raise TenantNotFound("No tenant for this host")
    if not pool.exists(tenant) and not settings.allow_auto_provision:
        raise TenantNotFound()
    await pool.acquire(tenant)
    return tenant


Tenant = Annotated[str, Depends(require_tenant)]


async def get_tenant_store(tenant: Tenant, pool: Pool) -> TenantStore:
    return await pool.acquire(tenant)


def get_session_state(request: Request) -> SessionState:
    return SessionState.from_mapping(request.session)


RawSession = Annotated[SessionState, Depends(get_session_state)]


async def require_session(tenant: Tenant, session: RawSession) -> SessionState:
    require_authenticated(session, tenant)
    return session


async def enforce_entitlement(request: Request, tenant: Tenant, gate: Gate) -> None:
    await gate.check(tenant, request.method, request.url.path)


async def require_admin(session: RawSession, settings: AppSettings) -> None:
    if not settings.admin_token:
        raise AdminNotConfigured()
    if not session.is_admin:
        raise AdminAuthRequired()


Store = Annotated[TenantStore, Depends(get_tenant_store)]

# Router-level guards for authenticated tenant routes, in pipeline order
TENANT_GUARDS = [Depends(require_session), Depends(enforce_entitlement)]
