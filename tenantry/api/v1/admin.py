"""Operator endpoints — tenant registry and coupon management."""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request, status
from pydantic import BaseModel, Field

from tenantry.api.deps import AppSettings, Provisioner, RawSession, Registry, require_admin
from tenantry.core.errors import AdminNotConfigured
from tenantry.core.names import normalize_tenant_name
from tenantry.core.security import admin_token_matches
from tenantry.models.coupon import CouponCreate, CouponRead
from tenantry.models.tenant import RegistryEntryRead, RegistryEntryUpdate, RegistryStats
from tenantry.services.provisioning import DataDirDiagnosis
from tenantry.services.session_guard import SESSION_ADMIN_KEY

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["admin"])
protected = APIRouter(dependencies=[Depends(require_admin)])


# ── Schemas ──────────────────────────────────────────────────

class AdminLogin(BaseModel):
    token: str


class AdminStatus(BaseModel):
    is_admin: bool
    configured: bool


class DeploymentConfig(BaseModel):
    hosted: bool
    stripe: bool


class CleanupResponse(BaseModel):
    removed: list[str]


class PasswordReset(BaseModel):
    password: str | None = Field(default=None, min_length=8, max_length=128)


class PasswordResetResponse(BaseModel):
    tenant: str
    temporary_password: str | None = None


# ── Public ───────────────────────────────────────────────────

@router.post("/login", response_model=AdminStatus)
async def admin_login(body: AdminLogin, request: Request, settings: AppSettings) -> AdminStatus:
    if not settings.admin_token:
        raise AdminNotConfigured()
    if not admin_token_matches(body.token, settings.admin_token):
        logger.warning("Rejected admin login")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid admin token",
        )
    request.session[SESSION_ADMIN_KEY] = True
    return AdminStatus(is_admin=True, configured=True)


@router.post("/logout", response_model=AdminStatus)
async def admin_logout(request: Request, settings: AppSettings) -> AdminStatus:
    request.session.pop(SESSION_ADMIN_KEY, None)
    return AdminStatus(is_admin=False, configured=bool(settings.admin_token))


@router.get("/status", response_model=AdminStatus)
async def admin_status(session: RawSession, settings: AppSettings) -> AdminStatus:
    return AdminStatus(is_admin=session.is_admin, configured=bool(settings.admin_token))


@router.get("/config", response_model=DeploymentConfig)
async def deployment_config(settings: AppSettings) -> DeploymentConfig:
    """Which hosted features are on, for the frontend."""
    return DeploymentConfig(hosted=settings.enforce_trials, stripe=settings.billing_enabled)


# ── Tenants ──────────────────────────────────────────────────

@protected.get("/stats", response_model=RegistryStats)
async def registry_stats(registry: Registry) -> RegistryStats:
    return await registry.stats()


@protected.get("/tenants", response_model=list[RegistryEntryRead])
async def list_tenants(registry: Registry) -> list[RegistryEntryRead]:
    return [RegistryEntryRead.model_validate(e) for e in await registry.list_entries()]


@protected.patch("/tenants/{name}", response_model=RegistryEntryRead)
async def update_tenant(name: str, body: RegistryEntryUpdate, registry: Registry) -> RegistryEntryRead:
    entry = await registry.update_entry(name, status=body.status, trial_ends_at=body.trial_ends_at)
    if entry is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Tenant not found")
    logger.info("Admin updated tenant %s", name)
    return RegistryEntryRead.model_validate(entry)


@protected.delete("/tenants/{name}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_tenant(name: str, provisioner: Provisioner) -> None:
    if not await provisioner.remove(name):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Tenant not found")


@protected.post("/tenants/{name}/reset-password", response_model=PasswordResetResponse)
async def reset_tenant_password(
    name: str,
    provisioner: Provisioner,
    body: PasswordReset | None = None,
) -> PasswordResetResponse:
    """Set a tenant's password, or issue a temporary one when none is given."""
    chosen = body.password if body else None
    password = await provisioner.reset_password(name, chosen)
    return PasswordResetResponse(
        tenant=normalize_tenant_name(name),
        temporary_password=None if chosen else password,
    )


@protected.get("/diagnose", response_model=DataDirDiagnosis)
async def diagnose(provisioner: Provisioner) -> DataDirDiagnosis:
    return await provisioner.diagnose()


@protected.post("/cleanup", response_model=CleanupResponse)
async def cleanup(provisioner: Provisioner) -> CleanupResponse:
    """Remove registry entries whose storage no longer exists."""
    return CleanupResponse(removed=await provisioner.cleanup_orphans())


# ── Coupons ──────────────────────────────────────────────────

@protected.get("/coupons", response_model=list[CouponRead])
async def list_coupons(registry: Registry) -> list[CouponRead]:
    return [CouponRead.model_validate(c) for c in await registry.list_coupons()]


@protected.post("/coupons", response_model=CouponRead, status_code=status.HTTP_201_CREATED)
async def create_coupon(body: CouponCreate, registry: Registry) -> CouponRead:
    coupon = await registry.create_coupon(body)
    logger.info("Admin created coupon %s (%s, %s)", coupon.code, coupon.type, coupon.value)
    return CouponRead.model_validate(coupon)


@protected.delete("/coupons/{code}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_coupon(code: str, registry: Registry) -> None:
    if not await registry.delete_coupon(code):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Coupon not found")


router.include_router(protected)
