"""Registry store — shared billing / trial metadata for all tenants.

The registry is independent of the per-tenant stores. It is opened once at
startup and closed at shutdown. Read-modify-write sequences on one tenant's
entry are serialized with a per-tenant lock; the database transaction makes
each of them atomic.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import datetime, timedelta

from sqlalchemy import delete, func, text
from sqlalchemy.exc import DatabaseError, IntegrityError, InterfaceError, OperationalError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession
from sqlalchemy.orm import sessionmaker
from sqlmodel import SQLModel, select

from tenantry.core.database import create_engine, create_session_factory
from tenantry.core.errors import CouponCodeTaken, RegistryUnavailable, TenantNameTaken
from tenantry.core.locks import KeyedLock
from tenantry.core.security import generate_coupon_code
from tenantry.models import REGISTRY_TABLES
from tenantry.models.base import as_naive_utc, utcnow
from tenantry.models.coupon import Coupon, CouponCreate, CouponRedemption
from tenantry.models.tenant import RegistryEntry, RegistryStats, TenantStatus

logger = logging.getLogger(__name__)


def expire_if_overdue(entry: RegistryEntry, now: datetime | None = None) -> bool:
    """Flip a trialing entry whose trial has ended to expired. Returns True if changed."""
    now = now or utcnow()
    if (
        entry.status == TenantStatus.TRIALING
        and entry.trial_ends_at is not None
        and entry.trial_ends_at < now
    ):
        entry.status = TenantStatus.EXPIRED
        entry.updated_at = now
        return True
    return False


class RegistryStore:
    def __init__(self, url: str) -> None:
        self.url = url
        self._engine: AsyncEngine | None = None
        self._session_factory: sessionmaker | None = None
        self._locks = KeyedLock()

    # ── Lifecycle ─────────────────────────────────────────────

    async def open(self) -> None:
        if self._engine is not None:
            return
        engine = create_engine(self.url)
        try:
            async with engine.begin() as conn:
                await conn.run_sync(SQLModel.metadata.create_all, tables=REGISTRY_TABLES)
        except (OperationalError, DatabaseError) as exc:
            await engine.dispose()
            logger.exception("Failed to open tenant registry at %s", self.url)
            raise RegistryUnavailable() from exc
        self._engine = engine
        self._session_factory = create_session_factory(engine)
        logger.info("Opened tenant registry")

    async def close(self) -> None:
        if self._engine is None:
            return
        await self._engine.dispose()
        self._engine = None
        self._session_factory = None
        logger.info("Closed tenant registry")

    @property
    def is_open(self) -> bool:
        return self._engine is not None

    @asynccontextmanager
    async def session(self) -> AsyncIterator[AsyncSession]:
        """Yield a registry session; storage failures become RegistryUnavailable."""
        if self._session_factory is None:
            raise RegistryUnavailable("Registry not initialized")
        try:
            async with self._session_factory() as session:
                yield session
        except IntegrityError:
            raise
        except (OperationalError, InterfaceError, DatabaseError) as exc:
            logger.exception("Registry operation failed")
            raise RegistryUnavailable() from exc

    def lock_entry(self, name: str):
        """Serialize read-modify-write on one tenant's entry."""
        return self._locks.hold(name)

    async def ping(self) -> bool:
        async with self.session() as session:
            await session.execute(text("SELECT 1"))
        return True

    # ── Tenants ───────────────────────────────────────────────

    async def get_entry(self, name: str) -> RegistryEntry | None:
        """Return the tenant's entry, or None for legacy (unregistered) tenants.

        A trial found to be over is persisted as expired on the way out.
        """
        async with self.lock_entry(name), self.session() as session:
            entry = await session.get(RegistryEntry, name)
            if entry is not None and expire_if_overdue(entry):
                session.add(entry)
                await session.commit()
                logger.info("Trial expired for tenant %s", name)
            return entry

    async def has_entry(self, name: str) -> bool:
        async with self.session() as session:
            return await session.get(RegistryEntry, name) is not None

    async def create_entry(self, name: str, trial_days: int) -> RegistryEntry:
        now = utcnow()
        entry = RegistryEntry(
            name=name,
            status=TenantStatus.TRIALING,
            trial_ends_at=now + timedelta(days=trial_days),
            created_at=now,
            updated_at=now,
        )
        try:
            async with self.session() as session:
                session.add(entry)
                await session.commit()
        except IntegrityError as exc:
            raise TenantNameTaken() from exc
        return entry

    async def update_entry(
        self,
        name: str,
        *,
        status: TenantStatus | None = None,
        trial_ends_at: datetime | None = None,
    ) -> RegistryEntry | None:
        """Admin override of status and/or trial end. Returns None if unknown."""
        trial_ends_at = as_naive_utc(trial_ends_at)
        async with self.lock_entry(name), self.session() as session:
            entry = await session.get(RegistryEntry, name)
            if entry is None:
                return None
            if trial_ends_at is not None:
                entry.trial_ends_at = trial_ends_at
                if status is None and entry.status == TenantStatus.EXPIRED and trial_ends_at > utcnow():
                    entry.status = TenantStatus.TRIALING
            if status is not None:
                entry.status = status
            entry.updated_at = utcnow()
            session.add(entry)
            await session.commit()
            return entry

    async def set_status(self, name: str, status: TenantStatus) -> bool:
        return await self.update_entry(name, status=status) is not None

    async def attach_subscription(
        self, name: str, customer_id: str, subscription_id: str
    ) -> bool:
        """Record a completed checkout and activate the tenant.

        A pending coupon discount has now been applied, so it is cleared.
        """
        async with self.lock_entry(name), self.session() as session:
            entry = await session.get(RegistryEntry, name)
            if entry is None:
                return False
            entry.stripe_customer_id = customer_id
            entry.stripe_subscription_id = subscription_id
            entry.status = TenantStatus.ACTIVE
            entry.discount_percent = None
            entry.stripe_coupon_id = None
            entry.updated_at = utcnow()
            session.add(entry)
            await session.commit()
            return True

    async def list_entries(self) -> list[RegistryEntry]:
        async with self.session() as session:
            result = await session.execute(
                select(RegistryEntry).order_by(RegistryEntry.created_at.desc())  # type: ignore[attr-defined]
            )
            return list(result.scalars().all())

    async def names(self) -> list[str]:
        async with self.session() as session:
            result = await session.execute(select(RegistryEntry.name))
            return list(result.scalars().all())

    async def stats(self) -> RegistryStats:
        async with self.session() as session:
            result = await session.execute(
                select(RegistryEntry.status, func.count()).group_by(RegistryEntry.status)
            )
            counts = {TenantStatus(status): count for status, count in result.all()}
        return RegistryStats(
            total=sum(counts.values()),
            trialing=counts.get(TenantStatus.TRIALING, 0),
            active=counts.get(TenantStatus.ACTIVE, 0),
            expired=counts.get(TenantStatus.EXPIRED, 0),
            free=counts.get(TenantStatus.FREE, 0),
        )

    async def delete_entry(self, name: str) -> bool:
        """Remove a tenant's entry and its redemptions (admin / cleanup only)."""
        async with self.lock_entry(name), self.session() as session:
            entry = await session.get(RegistryEntry, name)
            await session.execute(
                delete(CouponRedemption).where(CouponRedemption.tenant_name == name)  # type: ignore[arg-type]
            )
            if entry is not None:
                await session.delete(entry)
            await session.commit()
            return entry is not None

    async def expire_overdue_trials(self) -> list[str]:
        """Persist ``expired`` on every trial that has ended."""
        now = utcnow()
        expired: list[str] = []
        async with self.session() as session:
            result = await session.execute(
                select(RegistryEntry).where(
                    RegistryEntry.status == TenantStatus.TRIALING,
                    RegistryEntry.trial_ends_at < now,  # type: ignore[operator]
                )
            )
            for entry in result.scalars().all():
                if expire_if_overdue(entry, now):
                    session.add(entry)
                    expired.append(entry.name)
            await session.commit()
        return expired

    # ── Coupons ───────────────────────────────────────────────

    async def create_coupon(self, body: CouponCreate) -> Coupon:
        coupon = Coupon(
            code=(body.code or generate_coupon_code()).strip().upper(),
            type=body.type,
            value=body.value,
            max_redemptions=body.max_redemptions,
            expires_at=body.expires_at,
            stripe_coupon_id=body.stripe_coupon_id,
        )
        try:
            async with self.session() as session:
                session.add(coupon)
                await session.commit()
        except IntegrityError as exc:
            raise CouponCodeTaken() from exc
        return coupon

    async def get_coupon(self, code: str) -> Coupon | None:
        async with self.session() as session:
            return await session.get(Coupon, code.strip().upper())

    async def list_coupons(self) -> list[Coupon]:
        async with self.session() as session:
            result = await session.execute(
                select(Coupon).order_by(Coupon.created_at.desc())  # type: ignore[attr-defined]
            )
            return list(result.scalars().all())

    async def delete_coupon(self, code: str) -> bool:
        code = code.strip().upper()
        async with self.session() as session:
            coupon = await session.get(Coupon, code)
            if coupon is None:
                return False
            await session.execute(
                delete(CouponRedemption).where(CouponRedemption.coupon_code == code)  # type: ignore[arg-type]
            )
            await session.delete(coupon)
            await session.commit()
            return True

    async def coupon_ledger(self, name: str) -> list[str]:
        """Codes the tenant has redeemed, oldest first."""
        async with self.session() as session:
            result = await session.execute(
                select(CouponRedemption.coupon_code)
                .where(CouponRedemption.tenant_name == name)
                .order_by(CouponRedemption.redeemed_at, CouponRedemption.id)
            )
            return list(result.scalars().all())

    async def redeemed_by(self, code: str) -> set[str]:
        async with self.session() as session:
            result = await session.execute(
                select(CouponRedemption.tenant_name).where(
                    CouponRedemption.coupon_code == code.strip().upper()
                )
            )
            return set(result.scalars().all())
