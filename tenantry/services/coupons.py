"""Coupon redemption against a tenant's registry entry."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import StrEnum

from sqlalchemy import or_, update
from sqlalchemy.exc import IntegrityError
from sqlmodel import select

from tenantry.core.errors import (
    AlreadyRedeemedError,
    CouponExhaustedError,
    CouponExpiredError,
    CouponNotFoundError,
    TenantNotFound,
)
from tenantry.core.locks import KeyedLock
from tenantry.models.base import utcnow
from tenantry.models.coupon import Coupon, CouponRedemption, CouponType
from tenantry.models.tenant import RegistryEntry, TenantStatus
from tenantry.services.registry import RegistryStore, expire_if_overdue

logger = logging.getLogger(__name__)


class RedemptionOutcome(StrEnum):
    TRIAL_EXTENDED = "trial_extended"
    ACCOUNT_ACTIVATED = "account_activated"
    DISCOUNT_PENDING = "discount_pending"


_MESSAGES = {
    RedemptionOutcome.TRIAL_EXTENDED: "Trial extended successfully",
    RedemptionOutcome.ACCOUNT_ACTIVATED: "Account activated successfully",
    RedemptionOutcome.DISCOUNT_PENDING: "Discount will be applied at checkout",
}


@dataclass(frozen=True, slots=True)
class RedemptionResult:
    code: str
    type: CouponType
    outcome: RedemptionOutcome
    status: TenantStatus
    trial_ends_at: datetime | None
    discount_percent: int | None = None

    @property
    def message(self) -> str:
        return _MESSAGES[self.outcome]


def apply_coupon(entry: RegistryEntry, coupon: Coupon, now: datetime) -> RedemptionOutcome:
    """Mutate ``entry`` with the coupon's effect."""
    if coupon.type == CouponType.TRIAL_EXTENSION:
        # Extend from the current trial end, or from now if it already passed
        base = max(entry.trial_ends_at, now) if entry.trial_ends_at else now
        entry.trial_ends_at = base + timedelta(days=coupon.value)
        if entry.status == TenantStatus.EXPIRED:
            entry.status = TenantStatus.TRIALING
        outcome = RedemptionOutcome.TRIAL_EXTENDED
    elif coupon.type == CouponType.FREE_ACCESS:
        entry.status = TenantStatus.FREE
        entry.trial_ends_at = None
        outcome = RedemptionOutcome.ACCOUNT_ACTIVATED
    else:
        entry.discount_percent = coupon.value
        entry.stripe_coupon_id = coupon.stripe_coupon_id
        outcome = RedemptionOutcome.DISCOUNT_PENDING
    entry.updated_at = now
    return outcome


class CouponEngine:
    """Validates coupon codes and applies them exactly once per tenant."""

    def __init__(self, registry: RegistryStore) -> None:
        self.registry = registry
        self._locks = KeyedLock()

    async def redeem(self, code: str, tenant: str) -> RedemptionResult:
        code = code.strip().upper()
        async with self._locks.hold((code, tenant)), self.registry.lock_entry(tenant):
            try:
                result = await self._redeem(code, tenant)
            except IntegrityError as exc:
                # Unique (coupon, tenant) row written by another process first
                raise AlreadyRedeemedError() from exc

        logger.info("Tenant %s redeemed coupon %s (%s)", tenant, code, result.outcome)
        return result

    async def _redeem(self, code: str, tenant: str) -> RedemptionResult:
        now = utcnow()
        async with self.registry.session() as session:
            coupon = await session.get(Coupon, code)
            if coupon is None:
                raise CouponNotFoundError()
            if coupon.expires_at is not None and coupon.expires_at < now:
                raise CouponExpiredError()
            if coupon.max_redemptions is not None and coupon.times_redeemed >= coupon.max_redemptions:
                raise CouponExhaustedError()

            already = await session.execute(
                select(CouponRedemption.id).where(
                    CouponRedemption.coupon_code == code,
                    CouponRedemption.tenant_name == tenant,
                )
            )
            if already.first() is not None:
                raise AlreadyRedeemedError()

            entry = await session.get(RegistryEntry, tenant)
            if entry is None:
                raise TenantNotFound("Tenant not found in registry")
            expire_if_overdue(entry, now)

            # Claim a redemption slot; fails if another tenant took the last one
            claimed = await session.execute(
                update(Coupon)
                .where(
                    Coupon.code == code,
                    or_(
                        Coupon.max_redemptions.is_(None),  # type: ignore[union-attr]
                        Coupon.times_redeemed < Coupon.max_redemptions,  # type: ignore[operator]
                    ),
                )
                .values(times_redeemed=Coupon.times_redeemed + 1)
                .execution_options(synchronize_session=False)
            )
            if claimed.rowcount != 1:
                await session.rollback()
                raise CouponExhaustedError()

            outcome = apply_coupon(entry, coupon, now)
            session.add(entry)
            session.add(CouponRedemption(coupon_code=code, tenant_name=tenant, redeemed_at=now))
            await session.commit()

            return RedemptionResult(
                code=code,
                type=coupon.type,
                outcome=outcome,
                status=entry.status,
                trial_ends_at=entry.trial_ends_at,
                discount_percent=entry.discount_percent,
            )
