"""
Mots de passe et jetons / Passwords and tokens.
bcrypt pour le stockage, JWT HS256 signé avec SECRET_KEY pour les sessions admin.
bcrypt for storage, HS256 JWT signed with SECRET_KEY for admin sessions.
"""

from datetime import datetime, timedelta, timezone

import bcrypt
from jose import JWTError, jwt

from eter_reports.config import settings

TOKEN_TYPE = "access"


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(plain_password: str, hashed_password: str) -> bool:
    try:
        return bcrypt.checkpw(plain_password.encode("utf-8"), hashed_password.encode("utf-8"))
    except ValueError:
        # Hash corrompu en base / malformed stored hash
        return False


def create_access_token(user_id: int, username: str, role: str, now: datetime | None = None) -> str:
    """Jeton porteur avec identité et rôle / Bearer token carrying identity and role."""
    issued = now or datetime.now(timezone.utc)
    claims = {
        "sub": str(user_id),
        "username": username,
        "role": role,
        "type": TOKEN_TYPE,
        "iat": issued,
        "exp": issued + timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES),
    }
    return jwt.encode(claims, settings.SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def decode_token(token: str) -> dict | None:
    """None si signature invalide, expiré ou mauvais type / None when bad, expired or wrong type."""
    try:
        claims = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.JWT_ALGORITHM])
    except JWTError:
        return None
    if claims.get("type") != TOKEN_TYPE or not str(claims.get("sub", "")).isdigit():
        return None
    return claims
