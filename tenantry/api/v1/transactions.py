"""Transactions — tenant data, read and written through the tenant's own store."""

from fastapi import APIRouter, status
from sqlmodel import select

from tenantry.api.deps import TENANT_GUARDS, Store
from tenantry.models.tenant_data import Transaction, TransactionCreate, TransactionRead

router = APIRouter(prefix="/transactions", tags=["transactions"], dependencies=TENANT_GUARDS)


@router.get("", response_model=list[TransactionRead])
async def list_transactions(store: Store) -> list[TransactionRead]:
    async with store.session() as session:
        result = await session.execute(
            select(Transaction).order_by(
                Transaction.booked_on.desc(),  # type: ignore[attr-defined]
                Transaction.id.desc(),  # type: ignore[union-attr]
            )
        )
        return [TransactionRead.model_validate(t) for t in result.scalars().all()]


@router.post("", response_model=TransactionRead, status_code=status.HTTP_201_CREATED)
async def create_transaction(body: TransactionCreate, store: Store) -> TransactionRead:
    transaction = Transaction(**body.model_dump())
    async with store.session() as session:
        session.add(transaction)
        await session.commit()
        await session.refresh(transaction)
    return TransactionRead.model_validate(transaction)
