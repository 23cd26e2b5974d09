from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from docbox.auth.models import RefreshToken, User
from docbox.auth.schemas import TokenResponse, UserCreate, UserUpdate
from docbox.auth.utils import (
    as_utc,
    create_access_token,
    create_refresh_token,
    decode_token,
    hash_password,
    hash_token,
    verify_password,
)
from docbox.config import Settings
from docbox.core.exceptions import ConflictError, ValidationError

logger = logging.getLogger(__name__)


async def register_user(
    db: AsyncSession,
    user_data: UserCreate,
    settings: Settings,
) -> User:
    email = user_data.email
    result = await db.execute(select(User).where(User.email == email))
    if result.scalar_one_or_none() is not None:
        raise ConflictError(f"A user with email {email} already exists.")

    user = User(
        email=email,
        hashed_password=hash_password(user_data.password),
        full_name=user_data.full_name,
        phone=user_data.phone,
    )
    db.add(user)
    await db.commit()
    await db.refresh(user)
    logger.info("Registered user %s", user.id)
    return user


async def _issue_tokens(db: AsyncSession, user: User, settings: Settings) -> TokenResponse:
    access_token = create_access_token(user.id, settings)
    refresh_token = create_refresh_token(user.id, settings)

    db.add(
        RefreshToken(
            user_id=user.id,
            token_hash=hash_token(refresh_token),
            expires_at=datetime.now(timezone.utc) + timedelta(days=settings.refresh_token_expire_days),
        )
    )
    await db.commit()
    return TokenResponse(
        access_token=access_token,
        refresh_token=refresh_token,
        expires_in=settings.access_token_expire_minutes * 60,
    )


async def authenticate_user(
    db: AsyncSession,
    email: str,
    password: str,
    settings: Settings,
) -> TokenResponse:
    result = await db.execute(select(User).where(User.email == email.lower()))
    user = result.scalar_one_or_none()

    if user is None or not verify_password(password, user.hashed_password):
        raise ValidationError("Invalid email or password.")

    if not user.is_active:
        raise ValidationError("Account is deactivated.")

    return await _issue_tokens(db, user, settings)


async def refresh_tokens(
    db: AsyncSession,
    refresh_token: str,
    settings: Settings,
) -> TokenResponse:
    token_data = decode_token(refresh_token, settings)
    if token_data is None or token_data.token_type != "refresh":
        raise ValidationError("Invalid or expired refresh token.")

    result = await db.execute(
        select(RefreshToken).where(
            RefreshToken.token_hash == hash_token(refresh_token),
            RefreshToken.revoked == False,  # noqa: E712
        )
    )
    stored_token = result.scalar_one_or_none()

    if stored_token is None:
        raise ValidationError("Refresh token not found or already revoked.")

    if as_utc(stored_token.expires_at) < datetime.now(timezone.utc):
        raise ValidationError("Refresh token has expired.")

    stored_token.revoked = True

    user = await db.get(User, token_data.sub)
    if user is None or not user.is_active:
        raise ValidationError("User not found or inactive.")

    return await _issue_tokens(db, user, settings)


async def revoke_refresh_token(db: AsyncSession, refresh_token: str) -> None:
    result = await db.execute(
        select(RefreshToken).where(RefreshToken.token_hash == hash_token(refresh_token))
    )
    stored_token = result.scalar_one_or_none()
    if stored_token:
        stored_token.revoked = True
        await db.commit()


async def update_profile(db: AsyncSession, user: User, updates: UserUpdate) -> User:
    if updates.full_name is not None:
        user.full_name = updates.full_name
    if updates.phone is not None:
        user.phone = updates.phone
    if updates.password is not None:
        user.hashed_password = hash_password(updates.password)
    await db.commit()
    await db.refresh(user)
    return user
