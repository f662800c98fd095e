"""
Pydantic schemas for User-related responses.

These schemas control what user data is exposed through the API.
hashed_password and the password reset fields are NEVER included in any
response schema.
"""

import uuid
from datetime import datetime

from pydantic import BaseModel

from webauth.models.user import UserRole


class UserResponse(BaseModel):
    """Public representation of a User."""
    id: uuid.UUID
    name: str
    email: str
    photo: str
    role: UserRole
    created_at: datetime

    model_config = {"from_attributes": True}


class UserListData(BaseModel):
    users: list[UserResponse]


class UserListResponse(BaseModel):
    status: str = "success"
    results: int
    data: UserListData


class UserDetailData(BaseModel):
    user: UserResponse


class UserDetailResponse(BaseModel):
    status: str = "success"
    data: UserDetailData


class SessionData(BaseModel):
    user: UserResponse | None = None


class SessionResponse(BaseModel):
    """Response of the session check; user is null when not logged in."""
    status: str = "success"
    data: SessionData
