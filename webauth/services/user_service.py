"""
User administration service: list, fetch and delete user records.

Only reachable through admin-restricted routes.
"""

import logging
import uuid

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from webauth.exceptions import UserNotFoundError
from webauth.models.user import User

logger = logging.getLogger(__name__)


async def list_users(db: AsyncSession, limit: int = 50, offset: int = 0) -> list[User]:
    """List users, oldest first."""
    result = await db.execute(
        select(User)
        .order_by(User.created_at)
        .limit(limit)
        .offset(offset)
    )
    return list(result.scalars().all())


async def get_user(db: AsyncSession, user_id: uuid.UUID) -> User:
    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()
    if user is None:
        raise UserNotFoundError(f"No user found with id {user_id}")
    return user


async def delete_user(db: AsyncSession, user_id: uuid.UUID) -> None:
    """
    Permanently delete a user.

    Sessions issued to the user stop working immediately: get_current_user
    rejects tokens whose user no longer exists.
    """
    user = await get_user(db, user_id)
    await db.delete(user)
    await db.flush()
    logger.info("User %s deleted", user_id)
