"""Billing service for Stripe operations.

Checkout and the customer portal are hosted by Stripe. Webhook events keep
the registry entry in sync: a completed checkout activates the tenant, a
deleted subscription or failed payment expires it.
"""

from __future__ import annotations

import asyncio
import json
import logging

import stripe

from tenantry.core.config import Settings
from tenantry.core.errors import BillingNotConfigured, InvalidWebhook, NoBillingAccount
from tenantry.models.tenant import TenantStatus
from tenantry.services.registry import RegistryStore

logger = logging.getLogger(__name__)


class BillingService:
    def __init__(self, settings: Settings, registry: RegistryStore) -> None:
        self.settings = settings
        self.registry = registry
        if settings.stripe_secret_key:
            stripe.api_key = settings.stripe_secret_key

    @property
    def configured(self) -> bool:
        return self.settings.billing_enabled

    def _require_configured(self) -> None:
        if not self.configured:
            raise BillingNotConfigured()

    def tenant_url(self, tenant: str) -> str:
        return f"https://{tenant}.{self.settings.base_domain}"

    async def create_checkout_session(self, tenant: str) -> str:
        """Create a subscription Checkout session and return its URL."""
        self._require_configured()
        if not self.settings.stripe_price_id:
            raise BillingNotConfigured("Stripe price not configured.")

        entry = await self.registry.get_entry(tenant)
        base_url = self.tenant_url(tenant)
        params: dict = {
            "mode": "subscription",
            "line_items": [{"price": self.settings.stripe_price_id, "quantity": 1}],
            "success_url": f"{base_url}/settings?billing=success",
            "cancel_url": f"{base_url}/settings?billing=cancelled",
            "client_reference_id": tenant,
            "metadata": {"tenant": tenant},
            "subscription_data": {"metadata": {"tenant": tenant}},
        }
        # Subscription mode creates a customer when none is passed
        if entry is not None and entry.stripe_customer_id:
            params["customer"] = entry.stripe_customer_id

        # Discount from a redeemed coupon
        if entry is not None and entry.stripe_coupon_id:
            params["discounts"] = [{"coupon": entry.stripe_coupon_id}]

        session = await asyncio.to_thread(stripe.checkout.Session.create, **params)
        logger.info("Created checkout session %s for tenant %s", session.id, tenant)
        return session.url

    async def create_portal_session(self, tenant: str) -> str:
        self._require_configured()
        entry = await self.registry.get_entry(tenant)
        if entry is None or not entry.stripe_customer_id:
            raise NoBillingAccount()

        session = await asyncio.to_thread(
            stripe.billing_portal.Session.create,
            customer=entry.stripe_customer_id,
            return_url=f"{self.tenant_url(tenant)}/settings",
        )
        logger.info("Created portal session for tenant %s", tenant)
        return session.url

    def verify_webhook(self, payload: bytes, signature: str) -> dict:
        """Check the Stripe signature and return the decoded event."""
        self._require_configured()
        try:
            stripe.Webhook.construct_event(
                payload, signature, self.settings.stripe_webhook_secret
            )
        except (ValueError, stripe.SignatureVerificationError) as exc:
            logger.warning("Webhook signature verification failed: %s", exc)
            raise InvalidWebhook() from exc
        return json.loads(payload)

    async def handle_event(self, event: dict) -> str | None:
        """Apply a webhook event to the registry. Returns the affected tenant."""
        event_type = event.get("type")
        obj = event.get("data", {}).get("object", {})

        if event_type == "checkout.session.completed":
            tenant = (obj.get("metadata") or {}).get("tenant") or obj.get("client_reference_id")
            customer, subscription = obj.get("customer"), obj.get("subscription")
            if tenant and customer and subscription:
                await self.registry.attach_subscription(tenant, customer, subscription)
                logger.info("Tenant %s activated via Stripe checkout", tenant)
                return tenant

        elif event_type == "customer.subscription.deleted":
            tenant = (obj.get("metadata") or {}).get("tenant")
            if tenant:
                await self.registry.set_status(tenant, TenantStatus.EXPIRED)
                logger.info("Tenant %s subscription cancelled", tenant)
                return tenant

        elif event_type == "invoice.payment_failed":
            details = obj.get("subscription_details") or {}
            tenant = (details.get("metadata") or {}).get("tenant")
            if tenant:
                await self.registry.set_status(tenant, TenantStatus.EXPIRED)
                logger.info("Tenant %s payment failed", tenant)
                return tenant

        else:
            logger.debug("Ignoring Stripe event %s", event_type)
        return None
