from __future__ import annotations

import hashlib
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

import bcrypt
from jose import JWTError, jwt

from docbox.config import Settings


@dataclass
class TokenPayload:
    sub: uuid.UUID
    token_type: str
    exp: datetime


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return bcrypt.checkpw(plain_password.encode("utf-8"), hashed_password.encode("utf-8"))


def _encode(user_id: uuid.UUID, token_type: str, expire: datetime, settings: Settings) -> str:
    payload = {
        "sub": str(user_id),
        "exp": expire,
        "type": token_type,
        # Two tokens minted in the same second must still differ
        "jti": uuid.uuid4().hex,
    }
    return jwt.encode(payload, settings.secret_key, algorithm=settings.algorithm)


def create_access_token(user_id: uuid.UUID, settings: Settings | None = None) -> str:
    if settings is None:
        settings = Settings()
    expire = datetime.now(timezone.utc) + timedelta(minutes=settings.access_token_expire_minutes)
    return _encode(user_id, "access", expire, settings)


def create_refresh_token(user_id: uuid.UUID, settings: Settings | None = None) -> str:
    if settings is None:
        settings = Settings()
    expire = datetime.now(timezone.utc) + timedelta(days=settings.refresh_token_expire_days)
    return _encode(user_id, "refresh", expire, settings)


def decode_token(token: str, settings: Settings | None = None) -> TokenPayload | None:
    if settings is None:
        settings = Settings()
    try:
        payload = jwt.decode(token, settings.secret_key, algorithms=[settings.algorithm])
        user_id = uuid.UUID(payload["sub"])
        token_type = payload.get("type", "access")
        exp = datetime.fromtimestamp(payload["exp"], tz=timezone.utc)
        return TokenPayload(sub=user_id, token_type=token_type, exp=exp)
    except (JWTError, ValueError, KeyError):
        return None


def hash_token(token: str) -> str:
    """Hash a refresh token for storage."""
    return hashlib.sha256(token.encode()).hexdigest()


def as_utc(value: datetime) -> datetime:
    """SQLite hands back naive datetimes; treat them as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value
