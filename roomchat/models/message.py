from __future__ import annotations

import json
from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

MessageType = Literal["text", "file"]


class ReactionUser(BaseModel):
    id: int
    name: str | None = None
    avatar: str | None = None
    timestamp: datetime | None = None


class ReactionAggregate(BaseModel):
    emoji: str
    count: int = 0
    users: list[ReactionUser] = []


class FileDescriptor(BaseModel):
    id: int
    name: str
    type: str | None = None
    size: int
    url: str


class Message(BaseModel):
    id: int
    room_id: int | None = None
    user_id: int
    user_name: str | None = None
    user_avatar: str | None = None
    content: str
    type: MessageType = "text"
    file_id: int | None = None
    created_at: datetime
    read_by: list[int] = []
    reactions: list[ReactionAggregate] = []

    def file_descriptor(self) -> FileDescriptor | None:
        """Decode the structured content of a ``file`` message."""
        if self.type != "file":
            return None
        try:
            payload = json.loads(self.content)
        except ValueError:
            return None
        if not isinstance(payload, dict) or "file" not in payload:
            return None
        return FileDescriptor.model_validate(payload["file"])


class SendMessageRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    room_id: int | None = Field(None, alias="roomId")
    content: str = ""
    type: MessageType = "text"


class MarkReadRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    message_ids: list[int] | None = Field(None, alias="messageIds")


class ForwardRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    message_id: int | None = Field(None, alias="messageId")
    target_room_id: int | None = Field(None, alias="targetRoomId")


class UploadFileRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    room_id: int | None = Field(None, alias="roomId")
    file_name: str | None = Field(None, alias="fileName")
    file_type: str | None = Field(None, alias="fileType")
    file_data: str | None = Field(None, alias="fileData")


class ReactionRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    message_id: int | None = Field(None, alias="messageId")
    emoji: str | None = None


class MessagesResponse(BaseModel):
    messages: list[Message]


class MessageResponse(BaseModel):
    success: bool = True
    message: Message


class ReactionsResponse(BaseModel):
    success: bool = True
    reactions: list[ReactionAggregate]
    total: int


class RoomReactionsResponse(BaseModel):
    success: bool = True
    reactions: dict[int, list[ReactionAggregate]]
