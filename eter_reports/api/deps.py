"""
Dépendances d'authentification et d'autorisation / Authentication and authorization dependencies.
Injectées dans les routes via Depends().
"""

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from eter_reports.database import get_db
from eter_reports.errors import AuthenticationError, PermissionDenied
from eter_reports.models.user import User, UserRole
from eter_reports.utils.auth import decode_token

security = HTTPBearer(auto_error=False)


def client_ip(request: Request) -> str:
    """Extraire l'IP client / Extract client IP (supports X-Forwarded-For behind proxy)."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


async def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
    db: AsyncSession = Depends(get_db),
) -> User:
    """Extraire et valider l'utilisateur depuis le JWT / Extract and validate user from JWT."""
    if credentials is None:
        raise AuthenticationError("Access token required", code="NO_TOKEN")

    payload = decode_token(credentials.credentials)
    if payload is None:
        raise AuthenticationError("Invalid or expired token", code="INVALID_TOKEN")

    user = await db.get(User, int(payload["sub"]))
    if user is None or not user.is_active:
        raise AuthenticationError("User not found or inactive", code="INVALID_TOKEN")

    return user


def require_role(*roles: UserRole):
    """Factory de dépendance qui vérifie le rôle / Dependency factory that checks the user role."""

    async def _check(user: User = Depends(get_current_user)) -> User:
        if user.role not in roles:
            raise PermissionDenied("Insufficient permissions")
        return user

    return _check


require_admin = require_role(UserRole.ADMIN)
