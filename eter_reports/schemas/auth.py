"""
Schémas d'authentification / Authentication schemas.
Login et réponse avec token.
"""

from pydantic import BaseModel, Field

from eter_reports.schemas.user import UserRead


class LoginRequest(BaseModel):
    """Requête de connexion / Login request."""
    username: str = Field(min_length=1, max_length=100)
    password: str = Field(min_length=1, max_length=200)


class TokenResponse(BaseModel):
    """Réponse avec token / Token response."""
    success: bool = True
    message: str = "Login successful"
    access_token: str
    token_type: str = "bearer"
    user: UserRead


class MessageResponse(BaseModel):
    success: bool = True
    message: str
