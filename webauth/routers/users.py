"""
User administration router: admin-only endpoints.

All endpoints require the ADMIN role (restrict_to(UserRole.ADMIN)).

Endpoints (mounted under /api/v1/users, after the auth router so that
/me and /session are matched before /{user_id}):
  GET    (root)       List users
  GET    /{user_id}   Get one user
  DELETE /{user_id}   Delete a user
"""

import uuid

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from webauth.database import get_db
from webauth.dependencies import restrict_to
from webauth.models.user import User, UserRole
from webauth.schemas.user import (
    UserDetailData,
    UserDetailResponse,
    UserListData,
    UserListResponse,
    UserResponse,
)
from webauth.services import user_service

router = APIRouter()

require_admin = restrict_to(UserRole.ADMIN)


@router.get(
    "",
    response_model=UserListResponse,
    summary="[Admin] List users",
)
async def list_users(
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    users = await user_service.list_users(db, limit=limit, offset=offset)
    return UserListResponse(
        results=len(users),
        data=UserListData(users=[UserResponse.model_validate(u) for u in users]),
    )


@router.get(
    "/{user_id}",
    response_model=UserDetailResponse,
    summary="[Admin] Get a user",
)
async def get_user(
    user_id: uuid.UUID,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    user = await user_service.get_user(db, user_id)
    return UserDetailResponse(data=UserDetailData(user=UserResponse.model_validate(user)))


@router.delete(
    "/{user_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="[Admin] Delete a user",
)
async def delete_user(
    user_id: uuid.UUID,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    await user_service.delete_user(db, user_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
