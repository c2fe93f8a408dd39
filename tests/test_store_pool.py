"""Tenant store pool: single-flight initialization, failure retry, isolation."""

import asyncio
from collections import Counter
from pathlib import Path
from unittest.mock import MagicMock

import pytest

from tenantry.core.errors import StoreInitializationFailed
from tenantry.models.tenant_data import Transaction
from tenantry.services.store_pool import SqliteStorageEngine, TenantStore, TenantStorePool


class FakeStorage:
    """In-memory storage engine that counts opens and can fail on demand."""

    def __init__(self, *, delay: float = 0.05, failures: int = 0):
        self.delay = delay
        self.failures = failures
        self.opens: Counter[str] = Counter()
        self.closed: list[str] = []
        self.removed: list[str] = []

    def exists(self, tenant: str) -> bool:
        return True

    async def open(self, tenant: str) -> TenantStore:
        self.opens[tenant] += 1
        await asyncio.sleep(self.delay)
        if self.failures:
            self.failures -= 1
            raise OSError("disk unavailable")
        return TenantStore(tenant, Path(f"/fake/{tenant}"), MagicMock())

    async def close(self, store: TenantStore) -> None:
        self.closed.append(store.tenant)

    async def remove(self, tenant: str) -> None:
        self.removed.append(tenant)


@pytest.mark.asyncio
async def test_concurrent_acquire_initializes_once():
    storage = FakeStorage()
    pool = TenantStorePool(storage)

    stores = await asyncio.gather(*(pool.acquire("acme") for _ in range(10)))

    assert storage.opens["acme"] == 1
    assert all(store is stores[0] for store in stores)
    assert pool.loaded == ["acme"]


@pytest.mark.asyncio
async def test_failed_initialization_is_shared_and_not_cached():
    storage = FakeStorage(failures=1)
    pool = TenantStorePool(storage)

    results = await asyncio.gather(
        *(pool.acquire("acme") for _ in range(3)), return_exceptions=True
    )
    assert all(isinstance(r, StoreInitializationFailed) for r in results)
    assert storage.opens["acme"] == 1
    assert "acme" not in pool

    # Next request retries from scratch
    store = await pool.acquire("acme")
    assert store.tenant == "acme"
    assert storage.opens["acme"] == 2


@pytest.mark.asyncio
async def test_cancelled_caller_does_not_abort_shared_initialization():
    storage = FakeStorage(delay=0.1)
    pool = TenantStorePool(storage)

    first = asyncio.create_task(pool.acquire("acme"))
    await asyncio.sleep(0.01)
    first.cancel()
    with pytest.raises(asyncio.CancelledError):
        await first

    store = await pool.acquire("acme")
    assert store.tenant == "acme"
    assert storage.opens["acme"] == 1


@pytest.mark.asyncio
async def test_different_tenants_initialize_concurrently():
    """alpha's init waits for beta's to start; a global lock would deadlock."""
    beta_started = asyncio.Event()

    class Rendezvous(FakeStorage):
        async def open(self, tenant):
            if tenant == "alpha":
                await asyncio.wait_for(beta_started.wait(), timeout=1)
            else:
                beta_started.set()
            return await super().open(tenant)

    pool = TenantStorePool(Rendezvous(delay=0))
    alpha, beta = await asyncio.gather(pool.acquire("alpha"), pool.acquire("beta"))
    assert (alpha.tenant, beta.tenant) == ("alpha", "beta")


@pytest.mark.asyncio
async def test_discard_and_close():
    storage = FakeStorage(delay=0)
    pool = TenantStorePool(storage)
    await pool.acquire("acme")
    await pool.acquire("beta")

    await pool.discard("acme", remove_storage=True)
    assert storage.closed == ["acme"]
    assert storage.removed == ["acme"]
    assert pool.loaded == ["beta"]

    await pool.close()
    assert storage.closed == ["acme", "beta"]
    assert pool.loaded == []


@pytest.mark.asyncio
async def test_sqlite_stores_are_isolated(tmp_path):
    from datetime import date

    from sqlmodel import select

    pool = TenantStorePool(SqliteStorageEngine(tmp_path))
    acme = await pool.acquire("acme")
    beta = await pool.acquire("beta")

    async with acme.session() as session:
        session.add(Transaction(amount=12.5, description="coffee", booked_on=date(2024, 1, 2)))
        await session.commit()

    async with beta.session() as session:
        result = await session.execute(select(Transaction))
        assert result.scalars().all() == []

    assert (tmp_path / "acme" / "tenant.db").is_file()
    assert acme.path != beta.path
    await pool.close()


@pytest.mark.asyncio
async def test_sqlite_settings_roundtrip(tmp_path):
    pool = TenantStorePool(SqliteStorageEngine(tmp_path))
    store = await pool.acquire("acme")

    assert await store.get_setting("theme") is None
    await store.set_setting("theme", "dark")
    await store.set_setting("theme", "light")
    assert await store.get_setting("theme") == "light"
    await pool.close()


@pytest.mark.asyncio
async def test_corrupt_database_fails_then_recovers(tmp_path):
    storage = SqliteStorageEngine(tmp_path)
    path = storage.path_for("acme")
    path.parent.mkdir(parents=True)
    path.write_bytes(b"this is not a sqlite database" * 100)

    pool = TenantStorePool(storage)
    with pytest.raises(StoreInitializationFailed) as exc_info:
        await pool.acquire("acme")
    assert exc_info.value.tenant == "acme"
    assert "acme" not in pool

    path.unlink()
    store = await pool.acquire("acme")
    assert await store.get_setting("missing") is None
    await pool.close()
