"""Tables living inside each tenant's isolated store."""

from datetime import date, datetime

from sqlmodel import Field, SQLModel

from tenantry.models.base import TimestampMixin, utcnow


class Setting(SQLModel, table=True):
    __tablename__ = "settings"

    key: str = Field(primary_key=True, max_length=100)
    value: str = Field(nullable=False)
    updated_at: datetime = Field(default_factory=utcnow, nullable=False)


class Transaction(TimestampMixin, SQLModel, table=True):
    __tablename__ = "transactions"

    id: int | None = Field(default=None, primary_key=True)
    amount: float = Field(nullable=False)
    description: str = Field(default="", max_length=500)
    booked_on: date = Field(nullable=False, index=True)


# ── Pydantic schemas ─────────────────────────────────────────

class TransactionCreate(SQLModel):
    amount: float
    description: str = Field(default="", max_length=500)
    booked_on: date


class TransactionRead(SQLModel):
    id: int
    amount: float
    description: str
    booked_on: date


# Setting key holding the tenant's Argon2 password hash
PASSWORD_HASH_KEY = "password_hash"

TENANT_TABLES = [Setting.__table__, Transaction.__table__]  # type: ignore[attr-defined]
