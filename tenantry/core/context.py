"""Ambient per-request tenant context.

The tenant resolved for a request lives in a ``ContextVar``. Each request runs
in its own asyncio task with its own copy of the context, so concurrent
requests for different tenants never observe each other's value.
"""

from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar

from tenantry.core.names import is_valid_tenant_name, normalize_tenant_name

_current_tenant: ContextVar[str | None] = ContextVar("current_tenant", default=None)


def current_tenant() -> str | None:
    """Return the tenant resolved for the request being processed, if any."""
    return _current_tenant.get()


@contextmanager
def tenant_scope(tenant: str | None) -> Iterator[None]:
    """Publish ``tenant`` as the ambient tenant for the enclosed block."""
    token = _current_tenant.set(tenant)
    try:
        yield
    finally:
        _current_tenant.reset(token)


def _strip_port(host: str) -> str:
    host = host.strip().lower().rstrip(".")
    if host.startswith("["):  # IPv6 literal
        return host.split("]", 1)[0] + "]"
    return host.split(":", 1)[0]


def resolve_tenant(
    host: str | None,
    base_domain: str,
    default_tenant: str | None = None,
) -> str | None:
    """Derive a tenant name from a request host.

    ``acme.example.com`` resolves to ``acme`` when ``base_domain`` is
    ``example.com``. The bare base domain resolves to no tenant. Hosts outside
    the base domain (local development, direct IP access) fall back to
    ``default_tenant``. Invalid or reserved candidates resolve to no tenant
    instead of raising, so generic traffic is unaffected.
    """
    if not host:
        return None

    hostname = _strip_port(host)
    base = base_domain.strip().lower().rstrip(".")

    if hostname == base:
        return None
    if hostname.endswith(f".{base}"):
        candidate = hostname[: -(len(base) + 1)]
    elif default_tenant:
        candidate = default_tenant
    else:
        return None

    if not is_valid_tenant_name(candidate):
        return None
    return normalize_tenant_name(candidate)
