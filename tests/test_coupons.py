"""Coupon redemption engine — effects, validation order and exactly-once rules."""

import asyncio
from datetime import timedelta

import pytest
from pydantic import ValidationError

from tenantry.core.errors import (
    AlreadyRedeemedError,
    CouponExhaustedError,
    CouponExpiredError,
    CouponNotFoundError,
    TenantNotFound,
)
from tenantry.models.base import utcnow
from tenantry.models.coupon import CouponCreate, CouponType
from tenantry.models.tenant import TenantStatus
from tenantry.services.coupons import CouponEngine, RedemptionOutcome
from tenantry.services.registry import RegistryStore


@pytest.fixture
def engine(registry: RegistryStore) -> CouponEngine:
    return CouponEngine(registry)


async def _coupon(registry: RegistryStore, code: str, type_: CouponType, value: int = 0, **kwargs):
    return await registry.create_coupon(CouponCreate(code=code, type=type_, value=value, **kwargs))


@pytest.mark.asyncio
async def test_trial_extension_adds_to_current_end(registry, engine):
    """EXTEND30 on a trial ending in 5 days → ends in 35 days."""
    await registry.create_entry("acme", trial_days=5)
    before = (await registry.get_entry("acme")).trial_ends_at
    await _coupon(registry, "EXTEND30", CouponType.TRIAL_EXTENSION, 30, max_redemptions=100)

    result = await engine.redeem("extend30", "acme")

    assert result.outcome == RedemptionOutcome.TRIAL_EXTENDED
    assert result.message == "Trial extended successfully"
    assert result.trial_ends_at == before + timedelta(days=30)
    assert result.status == TenantStatus.TRIALING

    coupon = await registry.get_coupon("EXTEND30")
    assert coupon.times_redeemed == 1
    assert await registry.coupon_ledger("acme") == ["EXTEND30"]


@pytest.mark.asyncio
async def test_second_redemption_by_same_tenant_rejected(registry, engine):
    await registry.create_entry("acme", trial_days=5)
    await _coupon(registry, "EXTEND30", CouponType.TRIAL_EXTENSION, 30, max_redemptions=100)
    first = await engine.redeem("EXTEND30", "acme")

    with pytest.raises(AlreadyRedeemedError):
        await engine.redeem("EXTEND30", "acme")

    entry = await registry.get_entry("acme")
    assert entry.trial_ends_at == first.trial_ends_at
    assert (await registry.get_coupon("EXTEND30")).times_redeemed == 1


@pytest.mark.asyncio
async def test_concurrent_redemptions_apply_once(registry, engine):
    await registry.create_entry("acme", trial_days=5)
    await _coupon(registry, "EXTEND30", CouponType.TRIAL_EXTENSION, 30, max_redemptions=100)

    results = await asyncio.gather(
        *(engine.redeem("EXTEND30", "acme") for _ in range(5)), return_exceptions=True
    )

    successes = [r for r in results if not isinstance(r, Exception)]
    assert len(successes) == 1
    assert all(isinstance(r, AlreadyRedeemedError) for r in results if r not in successes)
    assert (await registry.get_coupon("EXTEND30")).times_redeemed == 1


@pytest.mark.asyncio
async def test_max_redemptions_across_tenants(registry, engine):
    for name in ("t1", "t2", "t3"):
        await registry.create_entry(name, trial_days=5)
    await _coupon(registry, "TWO", CouponType.TRIAL_EXTENSION, 7, max_redemptions=2)

    results = await asyncio.gather(
        *(engine.redeem("TWO", name) for name in ("t1", "t2", "t3")), return_exceptions=True
    )

    assert sum(not isinstance(r, Exception) for r in results) == 2
    assert sum(isinstance(r, CouponExhaustedError) for r in results) == 1
    assert (await registry.get_coupon("TWO")).times_redeemed == 2
    assert len(await registry.redeemed_by("TWO")) == 2


@pytest.mark.asyncio
async def test_extension_revives_expired_trial_from_now(registry, engine):
    await registry.create_entry("acme", trial_days=5)
    await registry.update_entry("acme", trial_ends_at=utcnow() - timedelta(days=10))
    assert (await registry.get_entry("acme")).status == TenantStatus.EXPIRED
    await _coupon(registry, "WEEK", CouponType.TRIAL_EXTENSION, 7)

    result = await engine.redeem("WEEK", "acme")

    assert result.status == TenantStatus.TRIALING
    remaining = result.trial_ends_at - utcnow()
    assert timedelta(days=6) < remaining <= timedelta(days=7)


@pytest.mark.asyncio
async def test_free_access_clears_trial(registry, engine):
    await registry.create_entry("acme", trial_days=5)
    await _coupon(registry, "FREEBIE", CouponType.FREE_ACCESS)

    result = await engine.redeem("FREEBIE", "acme")

    assert result.outcome == RedemptionOutcome.ACCOUNT_ACTIVATED
    entry = await registry.get_entry("acme")
    assert entry.status == TenantStatus.FREE
    assert entry.trial_ends_at is None


@pytest.mark.asyncio
async def test_discount_is_recorded_for_checkout(registry, engine):
    await registry.create_entry("acme", trial_days=5)
    await _coupon(registry, "HALF", CouponType.DISCOUNT, 50, stripe_coupon_id="co_half")

    result = await engine.redeem("HALF", "acme")

    assert result.outcome == RedemptionOutcome.DISCOUNT_PENDING
    assert result.discount_percent == 50
    entry = await registry.get_entry("acme")
    assert entry.status == TenantStatus.TRIALING
    assert entry.stripe_coupon_id == "co_half"


@pytest.mark.asyncio
async def test_unknown_coupon(registry, engine):
    await registry.create_entry("acme", trial_days=5)
    with pytest.raises(CouponNotFoundError):
        await engine.redeem("NOPE", "acme")


@pytest.mark.asyncio
async def test_expired_coupon(registry, engine):
    await registry.create_entry("acme", trial_days=5)
    await _coupon(
        registry, "OLD", CouponType.TRIAL_EXTENSION, 7, expires_at=utcnow() - timedelta(days=1)
    )
    with pytest.raises(CouponExpiredError):
        await engine.redeem("OLD", "acme")
    assert (await registry.get_coupon("OLD")).times_redeemed == 0


@pytest.mark.asyncio
async def test_exhausted_checked_before_already_redeemed(registry, engine):
    await registry.create_entry("acme", trial_days=5)
    await _coupon(registry, "ONCE", CouponType.TRIAL_EXTENSION, 7, max_redemptions=1)
    await engine.redeem("ONCE", "acme")

    with pytest.raises(CouponExhaustedError):
        await engine.redeem("ONCE", "acme")


@pytest.mark.asyncio
async def test_legacy_tenant_cannot_redeem(registry, engine):
    await _coupon(registry, "WEEK", CouponType.TRIAL_EXTENSION, 7)
    with pytest.raises(TenantNotFound):
        await engine.redeem("WEEK", "legacy")
    assert (await registry.get_coupon("WEEK")).times_redeemed == 0


def test_discount_cannot_exceed_full_price():
    with pytest.raises(ValidationError):
        CouponCreate(code="HUGE", type=CouponType.DISCOUNT, value=250)
    # The cap only concerns percentages; extensions count days
    assert CouponCreate(code="YEAR", type=CouponType.TRIAL_EXTENSION, value=365).value == 365
