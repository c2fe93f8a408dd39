"""Binding between a cookie session and the tenant it was issued under.

A session records the tenant it was created for. Replaying it against any
other tenant is rejected, even when the session does not look authenticated,
so a cookie scoped too broadly can never reach another tenant's data.
"""

from collections.abc import Mapping, MutableMapping
from dataclasses import dataclass
from typing import Any

from tenantry.core.errors import CrossTenantSessionError, NotAuthenticatedError

SESSION_AUTH_KEY = "is_authenticated"
SESSION_TENANT_KEY = "tenant"
SESSION_ADMIN_KEY = "is_admin"


@dataclass(frozen=True, slots=True)
class SessionState:
    is_authenticated: bool = False
    tenant: str | None = None
    is_admin: bool = False

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "SessionState":
        return cls(
            is_authenticated=data.get(SESSION_AUTH_KEY) is True,
            tenant=data.get(SESSION_TENANT_KEY) or None,
            is_admin=data.get(SESSION_ADMIN_KEY) is True,
        )


def check_session_binding(session: SessionState, current: str | None) -> None:
    if current and session.tenant and session.tenant != current:
        raise CrossTenantSessionError()


def require_authenticated(session: SessionState, current: str | None) -> None:
    # Binding first: a stale session from another tenant is a mismatch, not a logout
    check_session_binding(session, current)
    if not session.is_authenticated:
        raise NotAuthenticatedError()


def bind_session(data: MutableMapping[str, Any], tenant: str) -> None:
    """Mark the session authenticated for ``tenant``."""
    data[SESSION_AUTH_KEY] = True
    data[SESSION_TENANT_KEY] = tenant


def clear_authentication(data: MutableMapping[str, Any]) -> None:
    data.pop(SESSION_AUTH_KEY, None)
    data.pop(SESSION_TENANT_KEY, None)
