"""Billing — Stripe checkout, customer portal, status and webhook."""

from fastapi import APIRouter, Request
from pydantic import BaseModel

from tenantry.api.deps import TENANT_GUARDS, Billing, Registry, Tenant
from tenantry.models.tenant import TenantStatus

router = APIRouter(prefix="/billing", tags=["billing"], dependencies=TENANT_GUARDS)

# Stripe calls in without a session; authenticity comes from the signature
webhook_router = APIRouter(prefix="/billing", tags=["billing"])


class BillingStatus(BaseModel):
    status: TenantStatus
    has_subscription: bool
    legacy: bool = False
    discount_percent: int | None = None


class RedirectResponse(BaseModel):
    url: str


@router.get("/status", response_model=BillingStatus)
async def billing_status(tenant: Tenant, registry: Registry) -> BillingStatus:
    entry = await registry.get_entry(tenant)
    if entry is None:
        return BillingStatus(status=TenantStatus.ACTIVE, has_subscription=True, legacy=True)
    return BillingStatus(
        status=entry.status,
        has_subscription=bool(entry.stripe_subscription_id),
        discount_percent=entry.discount_percent,
    )


@router.post("/checkout", response_model=RedirectResponse)
async def checkout(tenant: Tenant, billing: Billing) -> RedirectResponse:
    """Start a Stripe Checkout session, applying any redeemed discount."""
    return RedirectResponse(url=await billing.create_checkout_session(tenant))


@router.post("/portal", response_model=RedirectResponse)
async def portal(tenant: Tenant, billing: Billing) -> RedirectResponse:
    return RedirectResponse(url=await billing.create_portal_session(tenant))


@webhook_router.post("/webhook")
async def stripe_webhook(request: Request, billing: Billing) -> dict:
    payload = await request.body()
    event = billing.verify_webhook(payload, request.headers.get("stripe-signature", ""))
    await billing.handle_event(event)
    return {"received": True}
