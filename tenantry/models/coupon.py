"""Coupon models — redeemable codes and the per-tenant redemption ledger."""

from datetime import datetime
from enum import StrEnum

from pydantic import field_validator, model_validator
from sqlalchemy import UniqueConstraint
from sqlmodel import Field, SQLModel

from tenantry.models.base import as_naive_utc, utcnow


class CouponType(StrEnum):
    TRIAL_EXTENSION = "trial_extension"  # value = days
    FREE_ACCESS = "free_access"
    DISCOUNT = "discount"  # value = percent


class Coupon(SQLModel, table=True):
    __tablename__ = "coupons"

    code: str = Field(primary_key=True, max_length=64)
    type: CouponType = Field(nullable=False)
    value: int = Field(default=0)
    max_redemptions: int | None = Field(default=None)  # None = unlimited
    times_redeemed: int = Field(default=0, nullable=False)
    expires_at: datetime | None = Field(default=None)
    stripe_coupon_id: str | None = Field(default=None, max_length=255)
    created_at: datetime = Field(default_factory=utcnow, nullable=False)


class CouponRedemption(SQLModel, table=True):
    __tablename__ = "coupon_redemptions"
    __table_args__ = (
        UniqueConstraint("coupon_code", "tenant_name", name="uq_redemption_coupon_tenant"),
    )

    id: int | None = Field(default=None, primary_key=True)
    coupon_code: str = Field(foreign_key="coupons.code", nullable=False, index=True)
    tenant_name: str = Field(nullable=False, index=True, max_length=63)
    redeemed_at: datetime = Field(default_factory=utcnow, nullable=False)


# ── Pydantic schemas ─────────────────────────────────────────

class CouponCreate(SQLModel):
    code: str | None = Field(default=None, max_length=64)
    type: CouponType
    value: int = Field(ge=0)
    max_redemptions: int | None = Field(default=1, ge=1)
    expires_at: datetime | None = None
    stripe_coupon_id: str | None = None

    @field_validator("expires_at")
    @classmethod
    def normalize_expiry(cls, value: datetime | None) -> datetime | None:
        return as_naive_utc(value)

    @model_validator(mode="after")
    def check_discount_percent(self) -> "CouponCreate":
        if self.type == CouponType.DISCOUNT and self.value > 100:
            raise ValueError("A discount cannot exceed 100 percent")
        return self


class CouponRead(SQLModel):
    code: str
    type: CouponType
    value: int
    max_redemptions: int | None
    times_redeemed: int
    expires_at: datetime | None
    stripe_coupon_id: str | None
    created_at: datetime
