"""Registry entry — billing / trial metadata for one tenant."""

from datetime import datetime
from enum import StrEnum

from pydantic import field_validator
from sqlmodel import Field, SQLModel

from tenantry.models.base import TimestampMixin, as_naive_utc


class TenantStatus(StrEnum):
    TRIALING = "trialing"
    ACTIVE = "active"
    EXPIRED = "expired"
    FREE = "free"


class RegistryEntry(TimestampMixin, SQLModel, table=True):
    __tablename__ = "tenants"

    name: str = Field(primary_key=True, max_length=63)
    status: TenantStatus = Field(default=TenantStatus.TRIALING, index=True)
    trial_ends_at: datetime | None = Field(default=None)

    # Billing collaborator references. Informational only: ``status`` decides.
    stripe_customer_id: str | None = Field(default=None, max_length=255)
    stripe_subscription_id: str | None = Field(default=None, max_length=255)

    # Set by a redeemed discount coupon, applied at next checkout
    discount_percent: int | None = Field(default=None)
    stripe_coupon_id: str | None = Field(default=None, max_length=255)


# ── Pydantic schemas ─────────────────────────────────────────

class RegistryEntryRead(SQLModel):
    name: str
    status: TenantStatus
    trial_ends_at: datetime | None
    stripe_customer_id: str | None
    stripe_subscription_id: str | None
    discount_percent: int | None
    created_at: datetime


class RegistryEntryUpdate(SQLModel):
    status: TenantStatus | None = None
    trial_ends_at: datetime | None = None

    @field_validator("trial_ends_at")
    @classmethod
    def normalize_trial_end(cls, value: datetime | None) -> datetime | None:
        return as_naive_utc(value)


class RegistryStats(SQLModel):
    total: int = 0
    trialing: int = 0
    active: int = 0
    expired: int = 0
    free: int = 0
