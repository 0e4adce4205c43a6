import datetime

from pydantic import BaseModel, Field

from src.domain.models.entities.enums import ParticipantRole, RoomType


class ChatRoomCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    type: RoomType
    member_ids: list[int] = Field(default_factory=list)


class ChatRoomUpdate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)


class ParticipantResponse(BaseModel):
    user_id: int
    role: ParticipantRole
    joined_at: datetime.datetime

    model_config = {"from_attributes": True}


class ChatRoomResponse(BaseModel):
    id: int
    name: str
    type: RoomType
    created_at: datetime.datetime
    updated_at: datetime.datetime
    participants: list[ParticipantResponse] = Field(
        validation_alias="active_participants"
    )

    model_config = {"from_attributes": True, "populate_by_name": True}


class ChatRoomListResponse(BaseModel):
    items: list[ChatRoomResponse]
    total: int
    page: int
    per_page: int


class JoinResponse(BaseModel):
    message: str
    participant_count: int


class ParticipantCreate(BaseModel):
    user_id: int
    role: ParticipantRole = ParticipantRole.MEMBER


class MessageCreate(BaseModel):
    content: str = Field(..., min_length=1, max_length=10_000)


class MessageResponse(BaseModel):
    id: int
    room_id: int
    author_id: int
    content: str
    created_at: datetime.datetime
    updated_at: datetime.datetime
    topic: str

    model_config = {"from_attributes": True}


class MessageListResponse(BaseModel):
    items: list[MessageResponse]
    total: int
    page: int
    per_page: int
