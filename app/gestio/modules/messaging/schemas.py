from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import Field

from app.gestio.schemas import ApiModel, OutModel


class ConversationIn(ApiModel):
    participants: list[int] = Field(min_length=1)
    name: str | None = Field(default=None, max_length=255)
    is_direct_message: bool = False
    initial_message: str | None = None


class ConversationUpdateIn(ApiModel):
    name: str | None = Field(default=None, min_length=1, max_length=255)
    add_participants: list[int] = Field(default_factory=list)
    remove_participants: list[int] = Field(default_factory=list)


class MessageIn(ApiModel):
    conversation_id: int
    content: str = Field(min_length=1)
    attachments: list[Any] | None = None
    is_system_message: bool = False


class UserSummaryOut(OutModel):
    id: int
    name: str | None
    email: str


class ParticipantOut(OutModel):
    user_id: int
    joined_at: datetime
    last_read_at: datetime | None
    user: UserSummaryOut


class ConversationOut(OutModel):
    id: int
    name: str
    is_direct_message: bool
    created_at: datetime
    updated_at: datetime
    participants: list[ParticipantOut]


class MessageOut(OutModel):
    id: int
    conversation_id: int
    sender_id: int | None
    content: str
    attachments: list[Any] | None
    is_system_message: bool
    created_at: datetime
    sender: UserSummaryOut | None
