"""ARQ worker entrypoint."""

from arq import cron
from arq.connections import RedisSettings

from tenantry.core.config import get_settings
from tenantry.services.provisioning import TenantProvisioner
from tenantry.services.registry import RegistryStore
from tenantry.services.store_pool import SqliteStorageEngine, TenantStorePool
from tenantry.workers.maintenance import cleanup_orphans, expire_trials


def _redis_settings() -> RedisSettings:
    """Parse REDIS_URL into ARQ RedisSettings."""
    return RedisSettings.from_dsn(get_settings().redis_url)


async def startup(ctx: dict) -> None:
    """Called when the worker starts."""
    settings = get_settings()
    registry = RegistryStore(settings.resolved_registry_url)
    await registry.open()
    pool = TenantStorePool(SqliteStorageEngine(settings.data_dir))
    ctx["registry"] = registry
    ctx["pool"] = pool
    ctx["provisioner"] = TenantProvisioner(registry, pool, trial_days=settings.trial_days)


async def shutdown(ctx: dict) -> None:
    """Called when the worker shuts down."""
    await ctx["pool"].close()
    await ctx["registry"].close()


class WorkerSettings:
    """ARQ worker configuration."""
    functions = [expire_trials, cleanup_orphans]
    cron_jobs = [
        cron(expire_trials, minute={0, 15, 30, 45}),
        cron(cleanup_orphans, hour={3}, minute={0}),
    ]
    on_startup = startup
    on_shutdown = shutdown
    redis_settings = _redis_settings()
    max_jobs = 10
    job_timeout = 300


if __name__ == "__main__":
    from arq import run_worker
    run_worker(WorkerSettings)  # type: ignore[arg-type]
