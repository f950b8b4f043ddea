"""
Routes d'authentification / Authentication routes.
Login, vérification du token, profil et gestion des utilisateurs (admin).
"""

import logging
import math

from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from eter_reports.api.deps import client_ip, get_current_user, require_admin
from eter_reports.config import settings
from eter_reports.database import get_db
from eter_reports.models.user import User
from eter_reports.rate_limit import limiter
from eter_reports.schemas.auth import LoginRequest, MessageResponse, TokenResponse
from eter_reports.schemas.user import (
    ChangePasswordRequest,
    ProfileUpdate,
    UserCreate,
    UserListResponse,
    UserRead,
    UserResponse,
    UserUpdate,
)
from eter_reports.services import auth_service
from eter_reports.utils.auth import create_access_token

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/login", response_model=TokenResponse)
@limiter.limit(settings.RATE_LIMIT_LOGIN)
async def login(request: Request, data: LoginRequest, db: AsyncSession = Depends(get_db)):
    """Connexion par identifiants / Login with credentials."""
    user = await auth_service.authenticate(db, data.username, data.password, ip=client_ip(request))
    return TokenResponse(
        access_token=create_access_token(user.id, user.username, user.role.value),
        user=UserRead.model_validate(user),
    )


@router.get("/verify", response_model=UserResponse)
async def verify(user: User = Depends(get_current_user)):
    """Vérifier le token courant / Verify the current token."""
    return UserResponse(message="Token is valid", user=UserRead.model_validate(user))


@router.post("/logout", response_model=MessageResponse)
async def logout(request: Request, user: User = Depends(get_current_user)):
    """Déconnexion (token sans état) / Logout (stateless token, client discards it)."""
    logger.info("User logged out: %s (ip=%s)", user.username, client_ip(request))
    return MessageResponse(message="Logout successful")


@router.get("/profile", response_model=UserResponse)
async def get_profile(user: User = Depends(get_current_user)):
    return UserResponse(user=UserRead.model_validate(user))


@router.put("/profile", response_model=UserResponse)
async def update_profile(
    data: ProfileUpdate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    user.name = data.name
    await db.flush()
    logger.info("Profile updated for user: %s", user.username)
    return UserResponse(message="Profile updated successfully", user=UserRead.model_validate(user))


@router.put("/change-password", response_model=MessageResponse)
async def change_password(
    data: ChangePasswordRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await auth_service.change_password(db, user, data.current_password, data.new_password)
    return MessageResponse(message="Password changed successfully")


# --- Administration des utilisateurs / User administration ---
@router.get("/users", response_model=UserListResponse)
async def list_users(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(require_admin),
):
    users, total = await auth_service.list_users(db, page, limit)
    return UserListResponse(
        users=[UserRead.model_validate(u) for u in users],
        pagination={
            "current": page,
            "total": math.ceil(total / limit),
            "count": len(users),
            "total_records": total,
        },
    )


@router.post("/users", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def create_user(
    data: UserCreate,
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(require_admin),
):
    user = await auth_service.create_user(db, data, admin)
    return UserResponse(message="User created successfully", user=UserRead.model_validate(user))


@router.put("/users/{user_id}", response_model=UserResponse)
async def update_user(
    user_id: int,
    data: UserUpdate,
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(require_admin),
):
    user = await auth_service.update_user(db, user_id, data, admin)
    return UserResponse(message="User updated successfully", user=UserRead.model_validate(user))


@router.delete("/users/{user_id}", response_model=MessageResponse)
async def delete_user(
    user_id: int,
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(require_admin),
):
    await auth_service.delete_user(db, user_id, admin)
    return MessageResponse(message="User deleted successfully")
