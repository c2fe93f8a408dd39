"""Current tenant — billing / trial status and coupon redemption."""

import math
from datetime import datetime

from fastapi import APIRouter
from pydantic import BaseModel, Field

from tenantry.api.deps import TENANT_GUARDS, Coupons, Gate, Registry, Tenant
from tenantry.models.base import utcnow
from tenantry.models.coupon import CouponType
from tenantry.models.tenant import TenantStatus
from tenantry.services.coupons import RedemptionOutcome

router = APIRouter(prefix="/tenant", tags=["tenant"], dependencies=TENANT_GUARDS)


# ── Schemas ──────────────────────────────────────────────────

class TenantStatusResponse(BaseModel):
    tenant: str
    status: TenantStatus
    legacy: bool = False
    locked: bool = False
    trial_ends_at: datetime | None = None
    days_remaining: int | None = None
    has_payment_method: bool = False
    coupons: list[str] = Field(default_factory=list)


class RedeemRequest(BaseModel):
    code: str = Field(min_length=1, max_length=64)


class RedeemResponse(BaseModel):
    code: str
    type: CouponType
    outcome: RedemptionOutcome
    message: str
    status: TenantStatus
    trial_ends_at: datetime | None
    discount_percent: int | None = None


# ── Routes ───────────────────────────────────────────────────

@router.get("/status", response_model=TenantStatusResponse)
async def tenant_status(tenant: Tenant, registry: Registry, gate: Gate) -> TenantStatusResponse:
    entry = await registry.get_entry(tenant)

    # Legacy tenant (not in registry): unrestricted
    if entry is None:
        return TenantStatusResponse(
            tenant=tenant,
            status=TenantStatus.ACTIVE,
            legacy=True,
            has_payment_method=True,
        )

    days_remaining = None
    if entry.trial_ends_at is not None:
        seconds = (entry.trial_ends_at - utcnow()).total_seconds()
        days_remaining = max(0, math.ceil(seconds / 86400))

    return TenantStatusResponse(
        tenant=tenant,
        status=entry.status,
        locked=await gate.is_locked(tenant),
        trial_ends_at=entry.trial_ends_at,
        days_remaining=days_remaining,
        has_payment_method=bool(entry.stripe_subscription_id),
        coupons=await registry.coupon_ledger(tenant),
    )


@router.post("/redeem", response_model=RedeemResponse)
async def redeem_coupon(body: RedeemRequest, tenant: Tenant, coupons: Coupons) -> RedeemResponse:
    result = await coupons.redeem(body.code, tenant)
    return RedeemResponse(
        code=result.code,
        type=result.type,
        outcome=result.outcome,
        message=result.message,
        status=result.status,
        trial_ends_at=result.trial_ends_at,
        discount_percent=result.discount_percent,
    )
