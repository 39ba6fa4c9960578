from datetime import datetime, timedelta, timezone
from typing import Any, cast

from jose import jwt
from passlib.context import CryptContext
from sqlalchemy import select
from sqlalchemy.orm import Session

from natours.config import Settings
from natours.infrastructure.db.models import User, as_utc

pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")


def hash_password(password: str) -> str:
    return cast(str, pwd_context.hash(password))


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return cast(bool, pwd_context.verify(plain_password, hashed_password))


def create_access_token(user_id: int, settings: Settings, expires_days: int | None = None) -> str:
    lifetime = expires_days if expires_days is not None else settings.jwt_expires_in_days
    issued_at = datetime.now(timezone.utc)
    payload = {"sub": str(user_id), "iat": issued_at, "exp": issued_at + timedelta(days=lifetime)}
    return cast(str, jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm))


def decode_access_token(token: str, settings: Settings) -> dict[str, Any]:
    """Return the verified claims; raises ``jose.JWTError`` (or its expiry subclass)."""
    return cast(dict[str, Any], jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm]))


def changed_password_after(user: User, issued_at: int) -> bool:
    if user.password_changed_at is None:
        return False
    return int(as_utc(user.password_changed_at).timestamp()) > issued_at


def mark_password_changed(user: User) -> None:
    # Back-dated so a token issued right after the change stays valid.
    user.password_changed_at = datetime.now(timezone.utc) - timedelta(seconds=1)


def authenticate_user(db: Session, email: str, password: str) -> User | None:
    user = db.execute(select(User).where(User.email == email.lower())).scalar_one_or_none()
    if user is None:
        return None
    if not user.active:
        return None
    if not verify_password(password, user.hashed_password):
        return None
    return user
