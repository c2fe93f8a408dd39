"""Tenant registration and removal across the registry and the store pool."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field

from tenantry.core.errors import InvalidTenantName, TenantNameTaken, TenantNotFound
from tenantry.core.locks import KeyedLock
from tenantry.core.names import TENANT_NAME_RE, normalize_tenant_name, validate_tenant_name
from tenantry.core.security import generate_temporary_password, hash_password
from tenantry.models.tenant import RegistryEntry
from tenantry.models.tenant_data import PASSWORD_HASH_KEY
from tenantry.services.registry import RegistryStore
from tenantry.services.store_pool import SqliteStorageEngine, TenantStorePool

logger = logging.getLogger(__name__)


@dataclass
class Availability:
    name: str
    available: bool
    reason: str | None = None


@dataclass
class TenantDiagnosis:
    name: str
    has_dir: bool
    has_db: bool
    loaded: bool


@dataclass
class DataDirDiagnosis:
    data_dir: str
    exists: bool
    writable: bool
    registry_open: bool
    tenants: list[TenantDiagnosis] = field(default_factory=list)


class TenantProvisioner:
    def __init__(
        self,
        registry: RegistryStore,
        pool: TenantStorePool,
        *,
        trial_days: int,
    ) -> None:
        self.registry = registry
        self.pool = pool
        self.trial_days = trial_days
        self._locks = KeyedLock()

    async def is_available(self, name: str) -> bool:
        # Storage without an entry belongs to a legacy tenant
        return not self.pool.exists(name) and not await self.registry.has_entry(name)

    async def check(self, raw: str) -> Availability:
        try:
            name = validate_tenant_name(raw)
        except InvalidTenantName as exc:
            return Availability(name=raw.strip().lower(), available=False, reason=exc.extra.get("reason"))
        if not await self.is_available(name):
            return Availability(name=name, available=False, reason="taken")
        return Availability(name=name, available=True)

    async def register(self, raw: str) -> RegistryEntry:
        """Validate, create backing storage, then record the registry entry.

        Storage is created before the entry is written, so the tenant's first
        real request never pays for it.
        """
        name = validate_tenant_name(raw)
        async with self._locks.hold(name):
            if not await self.is_available(name):
                raise TenantNameTaken()

            await self.pool.provision(name)
            try:
                entry = await self.registry.create_entry(name, self.trial_days)
            except TenantNameTaken:
                raise
            except Exception:
                logger.exception("Registry write failed for %s, removing its storage", name)
                await self.pool.discard(name, remove_storage=True)
                raise

        logger.info("Registered tenant %s (trial until %s)", name, entry.trial_ends_at)
        return entry

    async def remove(self, raw: str) -> bool:
        """Delete the tenant's entry, redemptions and storage."""
        name = normalize_tenant_name(raw)
        if not TENANT_NAME_RE.match(name):
            return False
        async with self._locks.hold(name):
            existed = await self.registry.delete_entry(name)
            had_storage = self.pool.exists(name)
            await self.pool.discard(name, remove_storage=True)
        logger.info("Removed tenant %s", name)
        return existed or had_storage

    async def reset_password(self, raw: str, password: str | None = None) -> str:
        """Overwrite the tenant's password and return it.

        A temporary password is generated when none is given. Works for any
        tenant with storage, registered or legacy, outside of a request.
        """
        name = normalize_tenant_name(raw)
        # Shape check only; a legacy store may carry a reserved name
        if not TENANT_NAME_RE.match(name) or not self.pool.exists(name):
            raise TenantNotFound()
        store = await self.pool.acquire(name)
        password = password or generate_temporary_password()
        await store.set_setting(PASSWORD_HASH_KEY, hash_password(password))
        logger.info("Reset password for tenant %s", name)
        return password

    async def cleanup_orphans(self) -> list[str]:
        """Drop registry entries whose storage has disappeared."""
        removed: list[str] = []
        for name in await self.registry.names():
            if not self.pool.exists(name):
                await self.registry.delete_entry(name)
                removed.append(name)
        if removed:
            logger.warning("Removed orphaned registry entries: %s", ", ".join(removed))
        return removed

    async def diagnose(self) -> DataDirDiagnosis:
        storage = self.pool.storage
        data_dir = storage.data_dir if isinstance(storage, SqliteStorageEngine) else None
        exists = data_dir is not None and data_dir.is_dir()
        report = DataDirDiagnosis(
            data_dir=str(data_dir) if data_dir else "",
            exists=exists,
            writable=exists and os.access(data_dir, os.W_OK),  # type: ignore[arg-type]
            registry_open=self.registry.is_open,
        )
        for entry in await self.registry.list_entries():
            report.tenants.append(
                TenantDiagnosis(
                    name=entry.name,
                    has_dir=data_dir is not None and (data_dir / entry.name).is_dir(),
                    has_db=storage.exists(entry.name),
                    loaded=entry.name in self.pool,
                )
            )
        return report
