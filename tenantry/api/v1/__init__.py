"""V1 API router aggregation."""

from fastapi import APIRouter

from tenantry.api.v1.admin import router as admin_router
from tenantry.api.v1.auth import router as auth_router
from tenantry.api.v1.billing import router as billing_router
from tenantry.api.v1.billing import webhook_router as billing_webhook_router
from tenantry.api.v1.register import router as register_router
from tenantry.api.v1.settings import router as settings_router
from tenantry.api.v1.tenant import router as tenant_router
from tenantry.api.v1.transactions import router as transactions_router

v1_router = APIRouter(prefix="/v1")
v1_router.include_router(register_router)
v1_router.include_router(auth_router)
v1_router.include_router(tenant_router)
v1_router.include_router(billing_webhook_router)
v1_router.include_router(billing_router)
v1_router.include_router(settings_router)
v1_router.include_router(transactions_router)
v1_router.include_router(admin_router)
