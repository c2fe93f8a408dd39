"""Tenant settings."""

from fastapi import APIRouter, HTTPException, status
from pydantic import BaseModel, Field

from tenantry.api.deps import TENANT_GUARDS, Store
from tenantry.core.security import hash_password, verify_password
from tenantry.models.tenant_data import PASSWORD_HASH_KEY

router = APIRouter(prefix="/settings", tags=["settings"], dependencies=TENANT_GUARDS)


class PasswordChange(BaseModel):
    current_password: str
    new_password: str = Field(min_length=8, max_length=128)


@router.put("/password", status_code=status.HTTP_204_NO_CONTENT)
async def change_password(body: PasswordChange, store: Store) -> None:
    password_hash = await store.get_setting(PASSWORD_HASH_KEY)
    if password_hash is None or not verify_password(body.current_password, password_hash):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Current password is incorrect",
        )
    await store.set_setting(PASSWORD_HASH_KEY, hash_password(body.new_password))
