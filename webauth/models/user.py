"""
User model: the authentication identity.

Each User represents a login credential (email + hashed password) with a
role used for authorization. Besides the credential, the record carries
the state needed for session invalidation and password recovery:

  - password_changed_at: tokens issued before this instant are rejected
  - password_reset_token / password_reset_expires: hash and expiry of the
    single-use token emailed by the forgot-password flow

Roles:
  - USER: default role for self-service signup
  - GUIDE / LEAD_GUIDE: staff roles
  - ADMIN: user management

The password is stored as an Argon2id hash, never in plaintext.
"""

import enum
import uuid
from datetime import datetime, timedelta, timezone

from sqlalchemy import String, DateTime, Enum
from sqlalchemy.orm import Mapped, mapped_column

from webauth.config import settings
from webauth.database import Base
from webauth.security import (
    generate_reset_token,
    hash_password,
    hash_reset_token,
    verify_password,
)


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes; everything is stored in UTC.
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class UserRole(str, enum.Enum):
    """
    Role a user holds within the application.

    Inherits from str so the enum value serializes naturally to JSON.
    """
    USER = "user"
    GUIDE = "guide"
    LEAD_GUIDE = "lead-guide"
    ADMIN = "admin"


class User(Base):
    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(
        primary_key=True,
        default=uuid.uuid4,
    )

    name: Mapped[str] = mapped_column(String(100), nullable=False)

    # Email is the login identifier, stored lowercased
    email: Mapped[str] = mapped_column(
        String(255),
        unique=True,
        nullable=False,
        index=True,
    )

    photo: Mapped[str] = mapped_column(
        String(255),
        default="default.jpg",
        nullable=False,
    )

    hashed_password: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )

    role: Mapped[UserRole] = mapped_column(
        Enum(UserRole, values_callable=lambda roles: [r.value for r in roles]),
        default=UserRole.USER,
        nullable=False,
    )

    password_changed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    # SHA-256 hex digest of the emailed reset token
    password_reset_token: Mapped[str | None] = mapped_column(
        String(64),
        nullable=True,
        index=True,
    )
    password_reset_expires: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    # Audit timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False,
    )

    # --- Password handling ---

    def set_password(self, plain_password: str) -> None:
        """
        Hash and store a new password.

        For an existing user the change time is recorded one second in the
        past, so that a token issued right after the change (same second)
        is still accepted by changed_password_after().
        """
        is_new = self.hashed_password is None
        self.hashed_password = hash_password(plain_password)
        if not is_new:
            self.password_changed_at = datetime.now(timezone.utc) - timedelta(seconds=1)

    def correct_password(self, candidate_password: str) -> bool:
        return verify_password(candidate_password, self.hashed_password)

    def changed_password_after(self, jwt_issued_at: int) -> bool:
        """
        Return True if the password was changed after the token was issued.

        Args:
            jwt_issued_at: The token's "iat" claim, in seconds since epoch.
        """
        if self.password_changed_at is None:
            return False
        changed_timestamp = int(_as_utc(self.password_changed_at).timestamp())
        return jwt_issued_at < changed_timestamp

    # --- Password reset ---

    def create_password_reset_token(self) -> str:
        """
        Generate a reset token, store its hash and expiry, and return it.

        Only the returned raw token can be used to reset the password; it is
        sent by email and never persisted.
        """
        reset_token = generate_reset_token()
        self.password_reset_token = hash_reset_token(reset_token)
        self.password_reset_expires = datetime.now(timezone.utc) + timedelta(
            minutes=settings.PASSWORD_RESET_EXPIRE_MINUTES
        )
        return reset_token

    def clear_password_reset_token(self) -> None:
        self.password_reset_token = None
        self.password_reset_expires = None

    def __repr__(self) -> str:
        return f"<User {self.email} ({self.role.value})>"
