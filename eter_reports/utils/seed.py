"""
Seed de l'administrateur / Admin seeding.
Crée le compte admin par défaut au premier démarrage si aucun utilisateur n'existe.
Creates default admin account on first startup if no users exist.
"""

import logging

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from eter_reports.config import settings
from eter_reports.models.user import User, UserRole
from eter_reports.utils.auth import hash_password

logger = logging.getLogger(__name__)


async def seed_admin(session: AsyncSession) -> User | None:
    """Créer l'admin si aucun utilisateur n'existe / Create admin if no users exist."""
    result = await session.execute(select(func.count(User.id)))
    count = result.scalar()

    if count:
        logger.info("%d existing user(s), admin seed skipped", count)
        return None

    admin = User(
        username=settings.DEFAULT_ADMIN_USERNAME.lower(),
        name="Administrator",
        hashed_password=hash_password(settings.DEFAULT_ADMIN_PASSWORD),
        role=UserRole.ADMIN,
        is_active=True,
    )
    session.add(admin)
    await session.commit()
    logger.warning("Default admin '%s' created, change its password after first login", admin.username)
    return admin
