"""Tenant registration — available on the apex domain, no session required."""

from datetime import datetime

from fastapi import APIRouter, status
from pydantic import BaseModel, Field

from tenantry.api.deps import AppSettings, Provisioner

router = APIRouter(prefix="/register", tags=["register"])


# ── Schemas ──────────────────────────────────────────────────

class RegisterRequest(BaseModel):
    tenant: str = Field(min_length=1, max_length=255)


class RegisterResponse(BaseModel):
    tenant: str
    url: str
    trial_ends_at: datetime | None


class AvailabilityResponse(BaseModel):
    name: str
    available: bool
    reason: str | None = None


# ── Routes ───────────────────────────────────────────────────

@router.get("/check/{name}", response_model=AvailabilityResponse)
async def check_name(name: str, provisioner: Provisioner) -> AvailabilityResponse:
    """Report whether a tenant name can be registered."""
    result = await provisioner.check(name)
    return AvailabilityResponse(name=result.name, available=result.available, reason=result.reason)


@router.post(
    "",
    response_model=RegisterResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Register a new tenant",
)
async def register_tenant(
    body: RegisterRequest,
    provisioner: Provisioner,
    settings: AppSettings,
) -> RegisterResponse:
    """Create the tenant's storage and registry entry, starting its trial.

    The name is lowercased before validation, so ``API`` is rejected as reserved.
    """
    entry = await provisioner.register(body.tenant)
    return RegisterResponse(
        tenant=entry.name,
        url=f"https://{entry.name}.{settings.base_domain}",
        trial_ends_at=entry.trial_ends_at,
    )
