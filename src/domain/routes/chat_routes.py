import logging

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from src.base.core.dependencies import (
    get_chat_service,
    get_current_user,
    get_db_session,
)
from src.base.errors import ApiError
from src.base.models.user import CurrentUser
from src.domain.auth.authorization import Action, ensure_granted
from src.domain.auth.failures import AccessFailure
from src.domain.models.chat_schemas import (
    ChatRoomCreate,
    ChatRoomListResponse,
    ChatRoomResponse,
    ChatRoomUpdate,
    JoinResponse,
    MessageCreate,
    MessageListResponse,
    MessageResponse,
    ParticipantCreate,
    ParticipantResponse,
)
from src.domain.models.entities.chat_room import ChatRoom
from src.domain.models.entities.message import Message
from src.domain.services.chat_service import ChatService

router = APIRouter(tags=["Chat"])
logger = logging.getLogger(__name__)

MAX_PER_PAGE = 100
# Keeps (page - 1) * per_page within a signed 64-bit OFFSET.
MAX_PAGE = (2**63 - 1) // MAX_PER_PAGE


async def _load_room(
    session: AsyncSession, service: ChatService, room_id: int
) -> ChatRoom:
    room = await service.get_room(session, room_id)
    if room is None:
        raise ApiError.from_failure(AccessFailure.NOT_FOUND, "Chat room not found")
    return room


async def _load_message(
    session: AsyncSession, service: ChatService, message_id: int
) -> Message:
    message = await service.get_message(session, message_id)
    if message is None:
        raise ApiError.from_failure(AccessFailure.NOT_FOUND, "Message not found")
    return message


@router.get("/chat_rooms", response_model=ChatRoomListResponse)
async def list_rooms(
    page: int = Query(1, ge=1, le=MAX_PAGE),
    per_page: int = Query(30, ge=1, le=MAX_PER_PAGE),
    user: CurrentUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
    service: ChatService = Depends(get_chat_service),
):
    """Rooms the caller can see: public rooms and rooms they participate in."""
    rooms, total = await service.list_rooms(session, user, page, per_page)
    return ChatRoomListResponse(
        items=[ChatRoomResponse.model_validate(r) for r in rooms],
        total=total,
        page=page,
        per_page=per_page,
    )


@router.post(
    "/chat_rooms", status_code=status.HTTP_201_CREATED, response_model=ChatRoomResponse
)
async def create_room(
    body: ChatRoomCreate,
    user: CurrentUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
    service: ChatService = Depends(get_chat_service),
):
    """Create a room. The creator becomes its admin."""
    room = await service.create_room(
        session, user, body.name, body.type, body.member_ids
    )
    if isinstance(room, AccessFailure):
        raise ApiError.from_failure(room, "Unknown member id")
    return ChatRoomResponse.model_validate(room)


@router.get("/chat_rooms/{room_id}", response_model=ChatRoomResponse)
async def get_room(
    room_id: int,
    user: CurrentUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
    service: ChatService = Depends(get_chat_service),
):
    room = await _load_room(session, service, room_id)
    ensure_granted(user, "chat_room", Action.VIEW, room)
    return ChatRoomResponse.model_validate(room)


@router.patch("/chat_rooms/{room_id}", response_model=ChatRoomResponse)
async def update_room(
    room_id: int,
    body: ChatRoomUpdate,
    user: CurrentUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
    service: ChatService = Depends(get_chat_service),
):
    """Rename a room (room admin or global admin)."""
    room = await _load_room(session, service, room_id)
    ensure_granted(user, "chat_room", Action.EDIT, room)
    room = await service.rename_room(session, room, body.name)
    return ChatRoomResponse.model_validate(room)


@router.delete("/chat_rooms/{room_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_room(
    room_id: int,
    user: CurrentUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
    service: ChatService = Depends(get_chat_service),
):
    """Delete a room and its messages. Public rooms need a global admin."""
    room = await _load_room(session, service, room_id)
    ensure_granted(user, "chat_room", Action.DELETE, room)
    await service.delete_room(session, room)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/chat_rooms/{room_id}/join", response_model=JoinResponse)
async def join_room(
    room_id: int,
    user: CurrentUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
    service: ChatService = Depends(get_chat_service),
):
    room = await _load_room(session, service, room_id)
    result = await service.join_room(session, user, room)
    if isinstance(result, AccessFailure):
        raise ApiError.from_failure(result)
    _, joined = result
    return JoinResponse(
        message="Successfully joined the room" if joined else "Already a participant",
        participant_count=len(room.active_participants),
    )


@router.post(
    "/chat_rooms/{room_id}/participants",
    status_code=status.HTTP_201_CREATED,
    response_model=ParticipantResponse,
)
async def add_participant(
    room_id: int,
    body: ParticipantCreate,
    user: CurrentUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
    service: ChatService = Depends(get_chat_service),
):
    """Add someone to a room, or bring back a participant who left (EDIT required)."""
    room = await _load_room(session, service, room_id)
    ensure_granted(user, "chat_room", Action.EDIT, room)
    participant = await service.add_participant(session, room, body.user_id, body.role)
    if isinstance(participant, AccessFailure):
        raise ApiError.from_failure(participant)
    return ParticipantResponse.model_validate(participant)


@router.delete(
    "/chat_rooms/{room_id}/participants/me", status_code=status.HTTP_204_NO_CONTENT
)
async def leave_room(
    room_id: int,
    user: CurrentUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
    service: ChatService = Depends(get_chat_service),
):
    room = await _load_room(session, service, room_id)
    if not await service.leave_room(session, user, room):
        raise ApiError.from_failure(
            AccessFailure.NOT_FOUND, "Not a participant of this room"
        )
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post(
    "/chat_rooms/{room_id}/messages",
    status_code=status.HTTP_201_CREATED,
    response_model=MessageResponse,
)
async def post_message(
    room_id: int,
    body: MessageCreate,
    user: CurrentUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
    service: ChatService = Depends(get_chat_service),
):
    room = await _load_room(session, service, room_id)
    ensure_granted(user, "chat_room", Action.VIEW, room)
    message = await service.post_message(session, user, room, body.content)
    return MessageResponse.model_validate(message)


@router.get("/messages", response_model=MessageListResponse)
async def list_messages(
    room_id: int | None = Query(None),
    page: int = Query(1, ge=1, le=MAX_PAGE),
    per_page: int = Query(30, ge=1, le=MAX_PER_PAGE),
    user: CurrentUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
    service: ChatService = Depends(get_chat_service),
):
    """Messages of every room visible to the caller, optionally for one room."""
    messages, total = await service.list_messages(
        session, user, room_id=room_id, page=page, per_page=per_page
    )
    return MessageListResponse(
        items=[MessageResponse.model_validate(m) for m in messages],
        total=total,
        page=page,
        per_page=per_page,
    )


@router.get("/messages/{message_id}", response_model=MessageResponse)
async def get_message(
    message_id: int,
    user: CurrentUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
    service: ChatService = Depends(get_chat_service),
):
    message = await _load_message(session, service, message_id)
    ensure_granted(user, "message", Action.VIEW, message)
    return MessageResponse.model_validate(message)


@router.delete("/messages/{message_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_message(
    message_id: int,
    user: CurrentUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
    service: ChatService = Depends(get_chat_service),
):
    """Delete a message. Only its author may do so."""
    message = await _load_message(session, service, message_id)
    ensure_granted(user, "message", Action.DELETE, message)
    await service.delete_message(session, message)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
