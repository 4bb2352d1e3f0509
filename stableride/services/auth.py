"""
Password hashing, login lockout and token issuing.
"""
from datetime import datetime, timedelta, timezone

from passlib.context import CryptContext

from stableride.config import get_settings
from stableride.services.booking_state import as_utc

settings = get_settings()
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(password: str, password_hash: str | None) -> bool:
    if not password_hash:
        return False
    return pwd_context.verify(password, password_hash)


def is_locked(user, now: datetime | None = None) -> bool:
    if user.locked_until is None:
        return False
    return as_utc(user.locked_until) > (now or datetime.now(timezone.utc))


def register_failed_login(user, now: datetime | None = None) -> None:
    """After max_login_attempts failures the account is locked for lockout_minutes."""
    user.login_attempts = (user.login_attempts or 0) + 1
    if user.login_attempts >= settings.max_login_attempts:
        user.locked_until = (now or datetime.now(timezone.utc)) + timedelta(minutes=settings.lockout_minutes)
        user.login_attempts = 0


def register_successful_login(user) -> None:
    user.login_attempts = 0
    user.locked_until = None
