"""Tenant store pool — lazily opened, isolated per-tenant databases.

Each tenant owns one SQLite file under ``<data_dir>/<tenant>/``. Handles are
opened on first use and kept for the life of the process; request handlers
borrow them and never close them.

Concurrent first requests for the same tenant share a single initialization
task. The task runs independently of the requests awaiting it, so a client
disconnecting mid-request cannot abort work other waiters depend on. A failed
initialization is forgotten, and the next request tries again.
"""

from __future__ import annotations

import asyncio
import logging
import shutil
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from functools import partial
from pathlib import Path
from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession
from sqlmodel import SQLModel

from tenantry.core.database import create_engine, create_session_factory, sqlite_url
from tenantry.core.errors import StoreInitializationFailed
from tenantry.models.base import utcnow
from tenantry.models.tenant_data import TENANT_TABLES, Setting

logger = logging.getLogger(__name__)


class TenantStore:
    """Handle on one tenant's isolated database."""

    def __init__(self, tenant: str, path: Path, engine: AsyncEngine) -> None:
        self.tenant = tenant
        self.path = path
        self.engine = engine
        self._session_factory = create_session_factory(engine)

    def __repr__(self) -> str:
        return f"<TenantStore {self.tenant}>"

    @asynccontextmanager
    async def session(self) -> AsyncIterator[AsyncSession]:
        async with self._session_factory() as session:
            yield session

    async def get_setting(self, key: str) -> str | None:
        async with self.session() as session:
            setting = await session.get(Setting, key)
            return setting.value if setting else None

    async def set_setting(self, key: str, value: str) -> None:
        async with self.session() as session:
            setting = await session.get(Setting, key)
            if setting is None:
                setting = Setting(key=key, value=value)
            else:
                setting.value = value
                setting.updated_at = utcnow()
            session.add(setting)
            await session.commit()


class StorageEngine(Protocol):
    """Backing storage for tenant stores."""

    def exists(self, tenant: str) -> bool: ...

    async def open(self, tenant: str) -> TenantStore: ...

    async def close(self, store: TenantStore) -> None: ...

    async def remove(self, tenant: str) -> None: ...


class SqliteStorageEngine:
    """One SQLite database per tenant directory."""

    DB_FILENAME = "tenant.db"

    def __init__(self, data_dir: Path) -> None:
        self.data_dir = Path(data_dir)

    def tenant_dir(self, tenant: str) -> Path:
        return self.data_dir / tenant

    def path_for(self, tenant: str) -> Path:
        return self.tenant_dir(tenant) / self.DB_FILENAME

    def exists(self, tenant: str) -> bool:
        return self.path_for(tenant).is_file()

    async def open(self, tenant: str) -> TenantStore:
        """Open (creating if absent) the tenant's database and ensure its schema."""
        path = self.path_for(tenant)
        created = not path.exists()
        await asyncio.to_thread(path.parent.mkdir, parents=True, exist_ok=True)

        engine = create_engine(sqlite_url(path))
        try:
            async with engine.begin() as conn:
                await conn.run_sync(SQLModel.metadata.create_all, tables=TENANT_TABLES)
        except BaseException:
            await engine.dispose()
            raise

        if created:
            logger.info("Created new database for tenant: %s", tenant)
        else:
            logger.info("Loaded database for tenant: %s", tenant)
        return TenantStore(tenant, path, engine)

    async def close(self, store: TenantStore) -> None:
        await store.engine.dispose()

    async def remove(self, tenant: str) -> None:
        directory = self.tenant_dir(tenant)
        if directory.exists():
            await asyncio.to_thread(shutil.rmtree, directory)


class TenantStorePool:
    """Process-wide map of tenant name to its open store."""

    def __init__(self, engine: StorageEngine) -> None:
        self._engine = engine
        self._stores: dict[str, TenantStore] = {}
        self._pending: dict[str, asyncio.Task[TenantStore]] = {}

    @property
    def storage(self) -> StorageEngine:
        return self._engine

    @property
    def loaded(self) -> list[str]:
        return sorted(self._stores)

    def __contains__(self, tenant: object) -> bool:
        return tenant in self._stores

    def exists(self, tenant: str) -> bool:
        """True if the tenant has backing storage (loaded or on disk)."""
        return tenant in self._stores or self._engine.exists(tenant)

    async def acquire(self, tenant: str) -> TenantStore:
        """Return the tenant's store, initializing it on first use."""
        store = self._stores.get(tenant)
        if store is not None:
            return store

        task = self._pending.get(tenant)
        if task is None:
            task = asyncio.create_task(
                self._initialize(tenant), name=f"tenant-store-init:{tenant}"
            )
            self._pending[tenant] = task
            task.add_done_callback(partial(self._forget_pending, tenant))

        # Cancelling this caller must not cancel the shared initialization
        return await asyncio.shield(task)

    async def provision(self, tenant: str) -> TenantStore:
        """Create storage for a newly registered tenant before confirming it."""
        store = await self.acquire(tenant)
        logger.info("Provisioned storage for tenant %s", tenant)
        return store

    async def discard(self, tenant: str, *, remove_storage: bool = False) -> None:
        """Close the tenant's handle, optionally deleting its storage."""
        task = self._pending.get(tenant)
        if task is not None:
            await asyncio.gather(task, return_exceptions=True)
        store = self._stores.pop(tenant, None)
        if store is not None:
            await self._engine.close(store)
        if remove_storage:
            await self._engine.remove(tenant)

    async def close(self) -> None:
        """Close every handle. Called once at shutdown."""
        if self._pending:
            await asyncio.gather(*self._pending.values(), return_exceptions=True)
        stores = list(self._stores.values())
        self._stores.clear()
        for store in stores:
            await self._engine.close(store)
        logger.info("Closed %d tenant stores", len(stores))

    async def _initialize(self, tenant: str) -> TenantStore:
        try:
            store = await self._engine.open(tenant)
        except StoreInitializationFailed:
            raise
        except Exception as exc:
            logger.exception("Failed to initialize database for tenant %s", tenant)
            raise StoreInitializationFailed(tenant) from exc
        self._stores[tenant] = store
        return store

    def _forget_pending(self, tenant: str, task: asyncio.Task) -> None:
        if self._pending.get(tenant) is task:
            del self._pending[tenant]
        # Mark the failure as retrieved even when every waiter went away
        if not task.cancelled():
            task.exception()
