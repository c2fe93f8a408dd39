"""FastAPI application entrypoint."""

import logging
import re
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.sessions import SessionMiddleware

from tenantry.api.errors import install_exception_handlers
from tenantry.api.middleware import TenantContextMiddleware
from tenantry.api.v1 import v1_router
from tenantry.core.config import Settings, get_settings
from tenantry.services.billing import BillingService
from tenantry.services.coupons import CouponEngine
from tenantry.services.entitlement import EntitlementGate
from tenantry.services.provisioning import TenantProvisioner
from tenantry.services.registry import RegistryStore
from tenantry.services.store_pool import SqliteStorageEngine, TenantStorePool

logger = logging.getLogger(__name__)

SESSION_COOKIE = "tenantry_session"


def _cors_origin_regex(base_domain: str) -> str:
    """Any subdomain of the base domain, plus localhost for development."""
    base = re.escape(base_domain)
    return rf"^https?://(([a-z0-9-]+\.)?{base}|localhost)(:\d+)?$"


def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or get_settings()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        # Startup: registry first, tenant stores open lazily on first request
        registry = RegistryStore(settings.resolved_registry_url)
        await registry.open()
        pool = TenantStorePool(SqliteStorageEngine(settings.data_dir))

        app.state.registry = registry
        app.state.pool = pool
        app.state.gate = EntitlementGate(registry, enforce=settings.enforce_trials)
        app.state.coupons = CouponEngine(registry)
        app.state.provisioner = TenantProvisioner(registry, pool, trial_days=settings.trial_days)
        app.state.billing = BillingService(settings, registry)
        logger.info(
            "Started in %s mode, base domain %s, data directory %s",
            settings.deployment_mode,
            settings.base_domain,
            settings.data_dir,
        )
        try:
            yield
        finally:
            # Shutdown: the only place tenant stores are closed
            await pool.close()
            await registry.close()

    app = FastAPI(
        title="Tenantry",
        version="0.1.0",
        description="Tenant context and isolation layer for a multi-tenant SaaS backend",
        lifespan=lifespan,
    )
    app.state.settings = settings
    install_exception_handlers(app)

    # ── Middleware (last added runs first) ───────────────────
    app.add_middleware(
        TenantContextMiddleware,
        base_domain=settings.base_domain,
        default_tenant=settings.default_tenant,
    )
    app.add_middleware(
        SessionMiddleware,
        secret_key=settings.session_secret,
        session_cookie=SESSION_COOKIE,
        max_age=settings.session_max_age,
        same_site="lax",
        https_only=settings.session_https_only,
        domain=settings.session_cookie_domain,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origin_regex=_cors_origin_regex(settings.base_domain),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # ── API routes ───────────────────────────────────────────
    app.include_router(v1_router)

    @app.get("/health", tags=["system"])
    async def health_check(request: Request) -> dict:
        registry: RegistryStore = request.app.state.registry
        return {
            "status": "ok",
            "registry": "ok" if registry.is_open else "closed",
            "loaded_tenants": len(request.app.state.pool.loaded),
        }

    return app


app = create_app()
