"""
Service d'authentification / Authentication service.
Connexion avec verrouillage après échecs répétés, mot de passe, gestion des comptes.
Login with lockout after repeated failures, password change, account management.

Le compteur d'échecs est incrémenté en une seule requête UPDATE pour que deux
tentatives simultanées ne se perdent pas.
The failure counter is incremented in a single UPDATE so that two concurrent
attempts are never lost.
"""

import logging
from datetime import datetime, timedelta

from sqlalchemy import and_, case, func, null, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from eter_reports.config import settings
from eter_reports.database import utc_now
from eter_reports.errors import (
    AccountLockedError,
    AuthenticationError,
    ConflictError,
    NotFoundError,
    ValidationFailed,
)
from eter_reports.models.user import User
from eter_reports.schemas.user import UserCreate, UserUpdate
from eter_reports.services.audit_service import record_audit
from eter_reports.utils.auth import hash_password, verify_password

logger = logging.getLogger(__name__)


async def register_failed_attempt(db: AsyncSession, user: User, now: datetime | None = None) -> User:
    """Incrémenter le compteur, verrouiller au seuil / Bump the counter, lock at the threshold.

    Un verrou expiré repart à 1 tentative / An expired lock restarts at 1 attempt.
    """
    now = now or utc_now()
    expired = and_(User.lock_until.is_not(None), User.lock_until < now)
    await db.execute(
        update(User)
        .where(User.id == user.id)
        .values(
            login_attempts=case((expired, 1), else_=User.login_attempts + 1),
            lock_until=case(
                (expired, null()),
                (
                    User.login_attempts + 1 >= settings.MAX_LOGIN_ATTEMPTS,
                    now + timedelta(minutes=settings.LOCK_TIME_MINUTES),
                ),
                else_=User.lock_until,
            ),
        )
        .execution_options(synchronize_session=False)
    )
    await db.refresh(user)
    return user


def reset_attempts(user: User, now: datetime | None = None) -> None:
    user.login_attempts = 0
    user.lock_until = None
    user.last_login = now or utc_now()


async def authenticate(
    db: AsyncSession,
    username: str,
    password: str,
    ip: str | None = None,
    now: datetime | None = None,
) -> User:
    """Vérifier les identifiants / Check credentials.

    Raises AuthenticationError (401) or AccountLockedError (423).
    Les échecs sont validés (commit) avant l'exception pour survivre au rollback.
    Failures are committed before raising so they survive the request rollback.
    """
    now = now or utc_now()
    username = username.strip().lower()
    result = await db.execute(
        select(User).where(User.username == username, User.is_active.is_(True))
    )
    user = result.scalar_one_or_none()

    if user is None:
        record_audit(db, "auth", 0, "LOGIN_FAILED", {"username": username, "ip": ip}, user=username)
        await db.commit()
        logger.warning("Login attempt with invalid or inactive username: %s (ip=%s)", username, ip)
        raise AuthenticationError("Invalid credentials")

    if user.is_locked(now):
        logger.warning("Login attempt on locked account: %s (ip=%s)", user.username, ip)
        raise AccountLockedError(user.lock_until)

    if not verify_password(password, user.hashed_password):
        await register_failed_attempt(db, user, now)
        record_audit(
            db, "auth", user.id, "LOGIN_FAILED",
            {"ip": ip, "attempts": user.login_attempts}, user=user.username,
        )
        if user.is_locked(now):
            record_audit(db, "auth", user.id, "ACCOUNT_LOCKED", {"until": user.lock_until}, user=user.username)
            logger.warning("Account locked until %s: %s", user.lock_until.isoformat(), user.username)
        await db.commit()
        logger.warning(
            "Failed login for %s (attempt %d, ip=%s)", user.username, user.login_attempts, ip
        )
        raise AuthenticationError("Invalid credentials")

    reset_attempts(user, now)
    record_audit(db, "auth", user.id, "LOGIN", {"ip": ip}, user=user.username)
    logger.info("User logged in: %s (ip=%s)", user.username, ip)
    return user


async def change_password(
    db: AsyncSession, user: User, current_password: str, new_password: str, now: datetime | None = None
) -> None:
    """Changer son mot de passe / Change one's own password."""
    now = now or utc_now()
    if user.is_locked(now):
        raise AccountLockedError(user.lock_until)

    if not verify_password(current_password, user.hashed_password):
        await register_failed_attempt(db, user, now)
        await db.commit()
        raise ValidationFailed("Current password is incorrect", code="INVALID_CURRENT_PASSWORD")

    user.hashed_password = hash_password(new_password)
    user.login_attempts = 0
    user.lock_until = None
    record_audit(db, "user", user.id, "PASSWORD_CHANGE", user=user.username)
    logger.info("Password changed for user: %s", user.username)


# --- Gestion des comptes / Account management ---
async def get_user(db: AsyncSession, user_id: int) -> User:
    user = await db.get(User, user_id)
    if user is None:
        raise NotFoundError("User not found", code="USER_NOT_FOUND")
    return user


async def list_users(db: AsyncSession, page: int = 1, limit: int = 10) -> tuple[list[User], int]:
    result = await db.execute(
        select(User).order_by(User.created_at.desc(), User.id.desc()).offset((page - 1) * limit).limit(limit)
    )
    total = (await db.execute(select(func.count(User.id)))).scalar() or 0
    return list(result.scalars().all()), total


async def create_user(db: AsyncSession, data: UserCreate, actor: User) -> User:
    existing = await db.execute(select(User.id).where(User.username == data.username))
    if existing.scalar_one_or_none() is not None:
        raise ConflictError("Username already exists", code="USERNAME_EXISTS")

    user = User(
        username=data.username,
        name=data.name,
        hashed_password=hash_password(data.password),
        role=data.role,
        is_active=True,
    )
    db.add(user)
    try:
        await db.flush()
    except IntegrityError as exc:
        await db.rollback()
        raise ConflictError("Username already exists", code="USERNAME_EXISTS") from exc

    record_audit(db, "user", user.id, "CREATE", {"username": user.username, "role": user.role.value}, user=actor.username)
    logger.info("User created: %s (role=%s) by %s", user.username, user.role.value, actor.username)
    return user


async def update_user(db: AsyncSession, user_id: int, data: UserUpdate, actor: User) -> User:
    user = await get_user(db, user_id)
    changes = data.model_dump(exclude_unset=True, exclude_none=True)
    for field, value in changes.items():
        setattr(user, field, value)
    if changes:
        record_audit(db, "user", user.id, "UPDATE", changes, user=actor.username)
        await db.flush()
    logger.info("User updated: %s by %s (%s)", user.username, actor.username, ", ".join(changes))
    return user


async def delete_user(db: AsyncSession, user_id: int, actor: User) -> None:
    if user_id == actor.id:
        raise ValidationFailed("Cannot delete your own account", code="CANNOT_DELETE_SELF")
    user = await get_user(db, user_id)
    await db.delete(user)
    record_audit(db, "user", user_id, "DELETE", {"username": user.username}, user=actor.username)
    await db.flush()
    logger.info("User deleted: %s by %s", user.username, actor.username)
