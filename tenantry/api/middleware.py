"""Request tenant resolution.

Runs before any route code: derives the tenant from the ``Host`` header and
publishes it as the ambient tenant for the whole request.
"""

import logging

from starlette.datastructures import Headers
from starlette.types import ASGIApp, Receive, Scope, Send

from tenantry.core.context import resolve_tenant, tenant_scope

logger = logging.getLogger(__name__)


class TenantContextMiddleware:
    def __init__(
        self,
        app: ASGIApp,
        *,
        base_domain: str,
        default_tenant: str | None = None,
    ) -> None:
        self.app = app
        self.base_domain = base_domain
        self.default_tenant = default_tenant

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] not in ("http", "websocket"):
            await self.app(scope, receive, send)
            return

        host = Headers(scope=scope).get("host")
        tenant = resolve_tenant(host, self.base_domain, self.default_tenant)
        scope.setdefault("state", {})["tenant"] = tenant
        logger.debug("Resolved host %s to tenant %s", host, tenant)

        with tenant_scope(tenant):
            await self.app(scope, receive, send)
