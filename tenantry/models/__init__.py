"""Import all models so SQLModel.metadata picks them up."""

from tenantry.models.coupon import (
    Coupon,
    CouponCreate,
    CouponRead,
    CouponRedemption,
    CouponType,
)
from tenantry.models.tenant import (
    RegistryEntry,
    RegistryEntryRead,
    RegistryEntryUpdate,
    RegistryStats,
    TenantStatus,
)
from tenantry.models.tenant_data import (
    PASSWORD_HASH_KEY,
    TENANT_TABLES,
    Setting,
    Transaction,
    TransactionCreate,
    TransactionRead,
)

REGISTRY_TABLES = [
    RegistryEntry.__table__,  # type: ignore[attr-defined]
    Coupon.__table__,  # type: ignore[attr-defined]
    CouponRedemption.__table__,  # type: ignore[attr-defined]
]

__all__ = [
    "PASSWORD_HASH_KEY",
    "Coupon",
    "CouponCreate",
    "CouponRead",
    "CouponRedemption",
    "CouponType",
    "REGISTRY_TABLES",
    "RegistryEntry",
    "RegistryEntryRead",
    "RegistryEntryUpdate",
    "RegistryStats",
    "Setting",
    "TENANT_TABLES",
    "TenantStatus",
    "Transaction",
    "TransactionCreate",
    "TransactionRead",
]
