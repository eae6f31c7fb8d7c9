from __future__ import annotations

from datetime import datetime, timezone
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from roomchat.models.user import RoomMember

RoomType = Literal["group", "dm"]

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


class Room(BaseModel):
    id: int
    name: str
    description: str | None = None
    type: RoomType = "group"
    admin_id: int | None = None
    created_by: int | None = None  # immutable creator; admin_id is authoritative
    member_count: int = 0
    last_message_at: datetime | None = None
    unread_count: int = 0
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def activity_at(self) -> datetime:
        """max(last_message_at, updated_at, created_at); naive values are taken as UTC."""
        stamps = [
            ts if ts.tzinfo else ts.replace(tzinfo=timezone.utc)
            for ts in (self.last_message_at, self.updated_at, self.created_at)
            if ts is not None
        ]
        return max(stamps, default=_EPOCH)


def sort_by_activity(rooms: list[Room]) -> list[Room]:
    """Most recently active first; ties keep their incoming order."""
    return sorted(rooms, key=lambda r: r.activity_at, reverse=True)


class CreateRoomRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: str = ""
    description: str | None = None
    type: RoomType = "group"
    member_ids: list[int] = Field(default_factory=list, alias="memberIds")


class RoomIdRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    room_id: int | None = Field(None, alias="roomId")


class CreateDMRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    target_user_id: int | None = Field(None, alias="targetUserId")


class RoomListResponse(BaseModel):
    rooms: list[Room]


class RoomResponse(BaseModel):
    room: Room


class DMResponse(BaseModel):
    room: Room
    is_new: bool


class LeaveRoomResponse(BaseModel):
    success: bool = True
    deleted: bool = False
    message: str


class RoomMembersResponse(BaseModel):
    success: bool = True
    members: list[RoomMember]
    room: Room | None = None
