"""Error kinds raised by the tenancy layer.

Every error carries a stable machine-readable ``code`` and the HTTP status the
API boundary answers with. Infrastructure failures set ``expose = False`` so
the boundary replaces their message with a generic one.
"""

from typing import Any


class TenancyError(Exception):
    code = "tenancy_error"
    status_code = 500
    expose = True

    def __init__(self, message: str = "", **extra: Any) -> None:
        super().__init__(message or self.__class__.__doc__ or self.code)
        self.extra = extra


# ── Tenant names / registration ──────────────────────────────

class InvalidTenantName(TenancyError):
    """Invalid tenant name."""

    code = "invalid_tenant_name"
    status_code = 400


class TenantNameTaken(TenancyError):
    """This name is already taken."""

    code = "tenant_name_taken"
    status_code = 409


class TenantNotFound(TenancyError):
    """Tenant not found."""

    code = "tenant_not_found"
    status_code = 404


# ── Infrastructure ───────────────────────────────────────────

class StoreInitializationFailed(TenancyError):
    """Tenant store could not be initialized."""

    code = "store_unavailable"
    status_code = 503
    expose = False

    def __init__(self, tenant: str, message: str = "") -> None:
        super().__init__(message or f"Failed to initialize store for tenant {tenant!r}")
        self.tenant = tenant


class RegistryUnavailable(TenancyError):
    """Tenant registry is unavailable."""

    code = "registry_unavailable"
    status_code = 503
    expose = False


# ── Sessions ─────────────────────────────────────────────────

class CrossTenantSessionError(TenancyError):
    """Session does not match tenant."""

    code = "session_tenant_mismatch"
    status_code = 401


class NotAuthenticatedError(TenancyError):
    """Not authenticated."""

    code = "not_authenticated"
    status_code = 401


class AdminAuthRequired(TenancyError):
    """Admin authentication required."""

    code = "admin_auth_required"
    status_code = 401


# ── Entitlement ──────────────────────────────────────────────

class TrialExpiredError(TenancyError):
    """Your trial has expired. Please upgrade to continue."""

    code = "trial_expired"
    status_code = 403


# ── Coupons ──────────────────────────────────────────────────

class CouponError(TenancyError):
    status_code = 400


class CouponCodeTaken(CouponError):
    """A coupon with this code already exists."""

    code = "coupon_code_taken"
    status_code = 409


class CouponNotFoundError(CouponError):
    """Coupon not found."""

    code = "coupon_not_found"


class CouponExpiredError(CouponError):
    """Coupon has expired."""

    code = "coupon_expired"


class CouponExhaustedError(CouponError):
    """Coupon has been fully redeemed."""

    code = "coupon_exhausted"


class AlreadyRedeemedError(CouponError):
    """Coupon already redeemed by this tenant."""

    code = "already_redeemed"


# ── Billing ──────────────────────────────────────────────────

class BillingNotConfigured(TenancyError):
    """Billing is not configured."""

    code = "billing_not_configured"
    status_code = 503


class NoBillingAccount(TenancyError):
    """No billing account found."""

    code = "no_billing_account"
    status_code = 400


class InvalidWebhook(TenancyError):
    """Webhook signature verification failed."""

    code = "invalid_webhook"
    status_code = 400


# ── Admin ────────────────────────────────────────────────────

class AdminNotConfigured(TenancyError):
    """Admin not configured."""

    code = "admin_not_configured"
    status_code = 503
