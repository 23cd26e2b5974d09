from typing import Annotated

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from docbox.auth.models import User
from docbox.auth.schemas import (
    TokenRefreshRequest,
    UserCreate,
    UserLogin,
    UserResponse,
    UserUpdate,
)
from docbox.auth.service import (
    authenticate_user,
    refresh_tokens,
    register_user,
    revoke_refresh_token,
    update_profile,
)
from docbox.dependencies import get_current_user, get_db

router = APIRouter()


@router.post("/register", status_code=201)
async def register(
    user_data: UserCreate,
    db: Annotated[AsyncSession, Depends(get_db)],
    request: Request,
) -> dict:
    user = await register_user(db, user_data, request.app.state.settings)
    return {"data": UserResponse.model_validate(user)}


@router.post("/login")
async def login(
    credentials: UserLogin,
    db: Annotated[AsyncSession, Depends(get_db)],
    request: Request,
) -> dict:
    tokens = await authenticate_user(db, credentials.email, credentials.password, request.app.state.settings)
    return {"data": tokens}


@router.post("/refresh")
async def refresh(
    body: TokenRefreshRequest,
    db: Annotated[AsyncSession, Depends(get_db)],
    request: Request,
) -> dict:
    tokens = await refresh_tokens(db, body.refresh_token, request.app.state.settings)
    return {"data": tokens}


@router.post("/logout")
async def logout(
    body: TokenRefreshRequest,
    db: Annotated[AsyncSession, Depends(get_db)],
    _: Annotated[User, Depends(get_current_user)],
) -> dict:
    await revoke_refresh_token(db, body.refresh_token)
    return {"data": {"message": "Logged out successfully"}}


@router.get("/me")
async def get_me(
    current_user: Annotated[User, Depends(get_current_user)],
) -> dict:
    return {"data": UserResponse.model_validate(current_user)}


@router.put("/me")
async def update_me(
    updates: UserUpdate,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> dict:
    user = await update_profile(db, current_user, updates)
    return {"data": UserResponse.model_validate(user)}
