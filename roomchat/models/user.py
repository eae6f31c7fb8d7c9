from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class User(BaseModel):
    id: int
    email: str | None = None
    name: str
    avatar: str | None = None
    online: bool = False
    last_seen: datetime | None = None
    created_at: datetime | None = None


class RoomMember(User):
    joined_at: datetime | None = None
    is_admin: bool = False


class AuthRequest(BaseModel):
    action: str
    email: str | None = None
    password: str | None = None
    name: str | None = None
    avatar: str | None = None


class AuthResponse(BaseModel):
    user: User
    token: str


class ProfileUpdate(BaseModel):
    name: str | None = None
    avatar: str | None = None


class UserSearchRequest(BaseModel):
    query: str = ""
    limit: int = Field(20, ge=1, le=100)


class PresenceUpdate(BaseModel):
    status: str = "offline"


class UserResponse(BaseModel):
    user: User


class UserListResponse(BaseModel):
    users: list[User]


class AddMemberRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    room_id: int = Field(alias="roomId")
    user_id: int = Field(alias="userId")


class TransferAdminRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    room_id: int = Field(alias="roomId")
    new_admin_id: int = Field(alias="newAdminId")
