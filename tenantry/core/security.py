"""Security utilities: password hashing, admin token and coupon code helpers."""

import hmac
import secrets

from passlib.context import CryptContext

# ── Password hashing (Argon2) ────────────────────────────────

pwd_context = CryptContext(schemes=["argon2"], deprecated="auto")


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain: str, hashed: str) -> bool:
    return pwd_context.verify(plain, hashed)


# ── Admin token ──────────────────────────────────────────────

def admin_token_matches(candidate: str, expected: str) -> bool:
    """Constant-time comparison; an unset admin token never matches."""
    if not expected or not candidate:
        return False
    return hmac.compare_digest(candidate.encode(), expected.encode())


# ── Coupon codes ─────────────────────────────────────────────

_COUPON_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"


def generate_coupon_code(length: int = 8) -> str:
    """Random upper-case code without look-alike characters (0/O, 1/I)."""
    return "".join(secrets.choice(_COUPON_ALPHABET) for _ in range(length))


def generate_temporary_password() -> str:
    return secrets.token_urlsafe(9)
