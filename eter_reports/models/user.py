"""
Modèle Utilisateur / User model.
Identifiants, rôle et état de verrouillage partagé entre instances.
Credentials, role and lockout state shared across server instances.
"""

import enum
from datetime import datetime

from sqlalchemy import Boolean, DateTime, Enum, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from eter_reports.database import Base, utc_now


class UserRole(str, enum.Enum):
    """Rôle utilisateur / User role."""
    ADMIN = "admin"
    SUPERVISOR = "supervisor"
    USER = "user"


class User(Base):
    """Utilisateur de l'application / Application user."""

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    username: Mapped[str] = mapped_column(String(30), unique=True, nullable=False)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    hashed_password: Mapped[str] = mapped_column(String(255), nullable=False)
    role: Mapped[UserRole] = mapped_column(
        Enum(UserRole, values_callable=lambda e: [m.value for m in e]), default=UserRole.USER
    )
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    last_login: Mapped[datetime | None] = mapped_column(DateTime)
    login_attempts: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    lock_until: Mapped[datetime | None] = mapped_column(DateTime)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utc_now)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utc_now, onupdate=utc_now)

    def is_locked(self, now: datetime | None = None) -> bool:
        """Compte verrouillé ? / Is the account currently locked?"""
        return self.lock_until is not None and self.lock_until > (now or utc_now())

    def __repr__(self) -> str:
        return f"<User {self.username} ({self.role.value if self.role else '-'})>"
