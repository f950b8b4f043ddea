"""
Schémas User / User schemas.
Création, mise à jour, profil et changement de mot de passe.
"""

import re
from datetime import datetime
from typing import Annotated

from pydantic import BaseModel, BeforeValidator, Field, StringConstraints, field_validator

from eter_reports.models.user import UserRole
from eter_reports.schemas.report import CleanText


def _normalize_username(value):
    return value.strip().lower() if isinstance(value, str) else value


# Minuscules avant le motif / lowercased before the pattern check
Username = Annotated[
    Annotated[str, StringConstraints(min_length=3, max_length=30, pattern=r"^[a-z0-9_.\-]+$")],
    BeforeValidator(_normalize_username),
]
DisplayName = Annotated[CleanText, StringConstraints(min_length=1, max_length=100)]


def check_password_strength(value: str) -> str:
    """Au moins 6 caractères, une minuscule, une majuscule, un chiffre.
    At least 6 characters with a lowercase letter, an uppercase letter and a digit.
    """
    if len(value) < 6:
        raise ValueError("Password must be at least 6 characters long")
    if not (re.search(r"[a-z]", value) and re.search(r"[A-Z]", value) and re.search(r"\d", value)):
        raise ValueError("Password must contain at least one lowercase letter, one uppercase letter, and one number")
    return value


class UserCreate(BaseModel):
    username: Username
    password: str = Field(max_length=128)
    name: DisplayName
    role: UserRole = UserRole.USER

    @field_validator("password")
    @classmethod
    def password_strength(cls, value: str) -> str:
        return check_password_strength(value)


class UserUpdate(BaseModel):
    name: DisplayName | None = None
    role: UserRole | None = None
    is_active: bool | None = None


class ProfileUpdate(BaseModel):
    name: DisplayName


class ChangePasswordRequest(BaseModel):
    current_password: str = Field(min_length=1, max_length=128)
    new_password: str = Field(max_length=128)

    @field_validator("new_password")
    @classmethod
    def new_password_strength(cls, value: str) -> str:
        return check_password_strength(value)


class UserRead(BaseModel):
    id: int
    username: str
    name: str
    role: UserRole
    is_active: bool
    last_login: datetime | None = None
    created_at: datetime
    updated_at: datetime
    model_config = {"from_attributes": True}


class UserResponse(BaseModel):
    success: bool = True
    message: str | None = None
    user: UserRead


class UserListResponse(BaseModel):
    success: bool = True
    users: list[UserRead]
    pagination: dict
