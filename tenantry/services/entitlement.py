"""Entitlement gate — blocks writes for tenants whose trial has expired."""

import logging

from tenantry.core.errors import TrialExpiredError
from tenantry.models.tenant import TenantStatus
from tenantry.services.registry import RegistryStore

logger = logging.getLogger(__name__)

# Always reachable, so a locked-out tenant can still sign in, pay, and manage the account
ALLOWED_PATH_PREFIXES: tuple[str, ...] = (
    "/v1/auth",
    "/v1/tenant",
    "/v1/billing",
    "/v1/settings",
)

SAFE_METHODS = frozenset({"GET", "HEAD", "OPTIONS"})


def is_allowed_path(path: str) -> bool:
    return any(path == prefix or path.startswith(f"{prefix}/") for prefix in ALLOWED_PATH_PREFIXES)


class EntitlementGate:
    def __init__(self, registry: RegistryStore, *, enforce: bool = True) -> None:
        self.registry = registry
        self.enforce = enforce

    async def is_locked(self, tenant: str) -> bool:
        """True if the tenant is currently barred from mutating requests."""
        if not self.enforce:
            return False
        entry = await self.registry.get_entry(tenant)
        # No entry: legacy tenant, never restricted
        return entry is not None and entry.status == TenantStatus.EXPIRED

    async def check(self, tenant: str | None, method: str, path: str) -> None:
        """Raise TrialExpiredError if this request must be blocked."""
        if not self.enforce or tenant is None:
            return
        if method.upper() in SAFE_METHODS:
            return
        if is_allowed_path(path):
            return
        if await self.is_locked(tenant):
            logger.info("Blocked %s %s for expired tenant %s", method, path, tenant)
            raise TrialExpiredError(allowed_paths=list(ALLOWED_PATH_PREFIXES))
