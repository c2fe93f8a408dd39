"""Tenant name rules shared by registration and subdomain resolution."""

import re

from tenantry.core.errors import InvalidTenantName

# Lowercase alphanumerics and hyphens, 1-63 chars, no leading/trailing hyphen
TENANT_NAME_RE = re.compile(r"^[a-z0-9]([a-z0-9-]{0,61}[a-z0-9])?$")

RESERVED_NAMES = frozenset({
    "www",
    "api",
    "admin",
    "app",
    "mail",
    "smtp",
    "ftp",
    "ns1",
    "ns2",
    "_registry",
})


def normalize_tenant_name(raw: str) -> str:
    return raw.strip().lower()


def validate_tenant_name(raw: str) -> str:
    """Normalize ``raw`` and return it, or raise InvalidTenantName."""
    name = normalize_tenant_name(raw)
    if not TENANT_NAME_RE.match(name):
        raise InvalidTenantName(
            "Invalid tenant name. Use lowercase letters, numbers, "
            "and hyphens (1-63 characters).",
            reason="invalid",
        )
    if name in RESERVED_NAMES:
        raise InvalidTenantName("This name is reserved.", reason="reserved")
    return name


def is_valid_tenant_name(raw: str) -> bool:
    try:
        validate_tenant_name(raw)
    except InvalidTenantName:
        return False
    return True
