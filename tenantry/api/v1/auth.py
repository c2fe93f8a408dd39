"""Per-tenant authentication — password setup, login, logout."""

from fastapi import APIRouter, Depends, HTTPException, Request, status
from pydantic import BaseModel, Field

from tenantry.api.deps import RawSession, Store, Tenant, enforce_entitlement
from tenantry.core.security import hash_password, verify_password
from tenantry.models.tenant_data import PASSWORD_HASH_KEY
from tenantry.services.session_guard import (
    bind_session,
    check_session_binding,
    clear_authentication,
)

router = APIRouter(
    prefix="/auth",
    tags=["auth"],
    dependencies=[Depends(enforce_entitlement)],
)


# ── Schemas ──────────────────────────────────────────────────

class PasswordRequest(BaseModel):
    password: str = Field(min_length=8, max_length=128)


class LoginRequest(BaseModel):
    password: str


class AuthStatus(BaseModel):
    tenant: str
    is_authenticated: bool
    is_setup_complete: bool


# ── Routes ───────────────────────────────────────────────────

@router.get("/status", response_model=AuthStatus)
async def auth_status(tenant: Tenant, session: RawSession, store: Store) -> AuthStatus:
    check_session_binding(session, tenant)
    return AuthStatus(
        tenant=tenant,
        is_authenticated=session.is_authenticated,
        is_setup_complete=await store.get_setting(PASSWORD_HASH_KEY) is not None,
    )


@router.post("/setup", response_model=AuthStatus)
async def setup(
    body: PasswordRequest,
    request: Request,
    tenant: Tenant,
    session: RawSession,
    store: Store,
) -> AuthStatus:
    """Set the tenant's password once and sign in."""
    check_session_binding(session, tenant)
    if await store.get_setting(PASSWORD_HASH_KEY) is not None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Setup already completed",
        )

    await store.set_setting(PASSWORD_HASH_KEY, hash_password(body.password))
    bind_session(request.session, tenant)
    return AuthStatus(tenant=tenant, is_authenticated=True, is_setup_complete=True)


@router.post("/login", response_model=AuthStatus)
async def login(
    body: LoginRequest,
    request: Request,
    tenant: Tenant,
    session: RawSession,
    store: Store,
) -> AuthStatus:
    check_session_binding(session, tenant)
    password_hash = await store.get_setting(PASSWORD_HASH_KEY)
    if password_hash is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Setup not completed",
        )
    if not verify_password(body.password, password_hash):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid password",
        )

    bind_session(request.session, tenant)
    return AuthStatus(tenant=tenant, is_authenticated=True, is_setup_complete=True)


@router.post("/logout", status_code=status.HTTP_204_NO_CONTENT)
async def logout(request: Request, tenant: Tenant, session: RawSession) -> None:
    check_session_binding(session, tenant)
    clear_authentication(request.session)
