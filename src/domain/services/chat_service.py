import logging
from typing import Any

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from src.base.models.user import CurrentUser
from src.base.utils.time_utils import utcnow
from src.domain.auth.authorization import visible_message_clause, visible_room_clause
from src.domain.auth.failures import AccessFailure
from src.domain.models.entities.chat_participant import ChatParticipant
from src.domain.models.entities.chat_room import ChatRoom
from src.domain.models.entities.enums import ParticipantRole, RoomType
from src.domain.models.entities.message import Message
from src.domain.models.entities.user import User
from src.domain.services.message_publisher import LoggingPublisher, MessagePublisher

logger = logging.getLogger(__name__)


def message_payload(message: Message) -> dict[str, Any]:
    return {
        "id": message.id,
        "room_id": message.room_id,
        "author_id": message.author_id,
        "content": message.content,
        "created_at": message.created_at.isoformat(),
    }


class ChatService:
    """Rooms, participants and messages.

    Access decisions are made by the caller (see src/domain/auth/authorization.py);
    listing methods apply the visibility filter in SQL so hidden rooms never
    count towards totals.
    """

    def __init__(self, publisher: MessagePublisher | None = None):
        self._publisher = publisher or LoggingPublisher()

    # Rooms

    async def create_room(
        self,
        session: AsyncSession,
        creator: CurrentUser,
        name: str,
        room_type: RoomType,
        member_ids: list[int] | None = None,
    ) -> ChatRoom | AccessFailure:
        """Create a room with ``creator`` as its admin participant."""
        member_ids = [m for m in dict.fromkeys(member_ids or []) if m != creator.id]
        if member_ids:
            result = await session.execute(
                select(func.count()).select_from(User).where(User.id.in_(member_ids))
            )
            if result.scalar_one() != len(member_ids):
                return AccessFailure.NOT_FOUND

        room = ChatRoom(name=name, type=room_type)
        room.participants.append(
            ChatParticipant(user_id=creator.id, role=ParticipantRole.ADMIN)
        )
        for member_id in member_ids:
            room.participants.append(
                ChatParticipant(user_id=member_id, role=ParticipantRole.MEMBER)
            )
        session.add(room)
        await session.commit()
        await session.refresh(room)
        logger.info(
            "Created %s room id=%s by user id=%s", room_type.value, room.id, creator.id
        )
        return room

    async def get_room(self, session: AsyncSession, room_id: int) -> ChatRoom | None:
        return await session.get(ChatRoom, room_id)

    async def list_rooms(
        self,
        session: AsyncSession,
        user: CurrentUser,
        page: int = 1,
        per_page: int = 30,
    ) -> tuple[list[ChatRoom], int]:
        """Rooms ``user`` can view, one page at a time, with the visible total."""
        clause = visible_room_clause(user)
        total = (
            await session.execute(
                select(func.count()).select_from(ChatRoom).where(clause)
            )
        ).scalar_one()
        result = await session.execute(
            select(ChatRoom)
            .where(clause)
            .order_by(ChatRoom.id)
            .offset((page - 1) * per_page)
            .limit(per_page)
        )
        return list(result.scalars().all()), total

    async def rename_room(
        self, session: AsyncSession, room: ChatRoom, name: str
    ) -> ChatRoom:
        room.name = name
        await session.commit()
        await session.refresh(room)
        logger.info("Renamed room id=%s", room.id)
        return room

    async def delete_room(self, session: AsyncSession, room: ChatRoom) -> None:
        room_id = room.id
        await session.execute(delete(Message).where(Message.room_id == room_id))
        await session.delete(room)
        await session.commit()
        logger.info("Deleted room id=%s", room_id)

    # Participants

    async def join_room(
        self, session: AsyncSession, user: CurrentUser, room: ChatRoom
    ) -> tuple[ChatParticipant, bool] | AccessFailure:
        """Join a public room as a member.

        Returns the participant row and whether anything changed; joining
        twice is a no-op and a previously left room is rejoined.
        """
        if room.type != RoomType.PUBLIC:
            return AccessFailure.NOT_JOINABLE

        participant = room.participant_for(user.id)
        if participant is not None and participant.is_active:
            return participant, False

        if participant is not None:
            participant.deleted_at = None
        else:
            participant = ChatParticipant(user_id=user.id, role=ParticipantRole.MEMBER)
            room.participants.append(participant)

        await session.commit()
        logger.info("User id=%s joined room id=%s", user.id, room.id)
        return participant, True

    async def add_participant(
        self,
        session: AsyncSession,
        room: ChatRoom,
        user_id: int,
        role: ParticipantRole = ParticipantRole.MEMBER,
    ) -> ChatParticipant | AccessFailure:
        if await session.get(User, user_id) is None:
            return AccessFailure.NOT_FOUND

        participant = room.participant_for(user_id)
        if participant is not None and participant.is_active:
            return AccessFailure.ALREADY_PARTICIPANT

        if participant is not None:
            participant.deleted_at = None
            participant.role = role
            logger.info("Restored participant user id=%s in room id=%s", user_id, room.id)
        else:
            participant = ChatParticipant(user_id=user_id, role=role)
            room.participants.append(participant)
            logger.info("Added participant user id=%s to room id=%s", user_id, room.id)

        await session.commit()
        return participant

    async def leave_room(
        self, session: AsyncSession, user: CurrentUser, room: ChatRoom
    ) -> bool:
        """Soft-delete the caller's participant row. False if not a participant."""
        participant = room.participant_for(user.id)
        if participant is None or not participant.is_active:
            return False
        participant.deleted_at = utcnow()
        await session.commit()
        logger.info("User id=%s left room id=%s", user.id, room.id)
        return True

    async def restore_participants(self, session: AsyncSession, room: ChatRoom) -> int:
        """Bring back everyone who left ``room``. Returns how many were restored."""
        restored = 0
        for participant in room.participants:
            if not participant.is_active:
                participant.deleted_at = None
                restored += 1
        if restored:
            await session.flush()
            logger.info("Restored %s participant(s) in room id=%s", restored, room.id)
        return restored

    # Messages

    async def post_message(
        self,
        session: AsyncSession,
        author: CurrentUser,
        room: ChatRoom,
        content: str,
    ) -> Message:
        message = Message(author_id=author.id, room=room, content=content)
        session.add(message)
        if room.type == RoomType.DIRECT:
            # A direct conversation reappears for a participant who had left it.
            await self.restore_participants(session, room)
        await session.commit()
        logger.info("User id=%s posted message id=%s", author.id, message.id)

        await self._publisher.publish(message.topic, message_payload(message))
        return message

    async def get_message(
        self, session: AsyncSession, message_id: int
    ) -> Message | None:
        return await session.get(Message, message_id)

    async def list_messages(
        self,
        session: AsyncSession,
        user: CurrentUser,
        room_id: int | None = None,
        page: int = 1,
        per_page: int = 30,
    ) -> tuple[list[Message], int]:
        """Messages of rooms ``user`` can view; the total counts only those."""
        conditions = [visible_message_clause(user)]
        if room_id is not None:
            conditions.append(Message.room_id == room_id)

        total = (
            await session.execute(
                select(func.count())
                .select_from(Message)
                .join(ChatRoom, Message.room_id == ChatRoom.id)
                .where(*conditions)
            )
        ).scalar_one()
        result = await session.execute(
            select(Message)
            .join(ChatRoom, Message.room_id == ChatRoom.id)
            .where(*conditions)
            .order_by(Message.created_at, Message.id)
            .offset((page - 1) * per_page)
            .limit(per_page)
        )
        return list(result.scalars().all()), total

    async def delete_message(self, session: AsyncSession, message: Message) -> None:
        message_id = message.id
        await session.delete(message)
        await session.commit()
        logger.info("Deleted message id=%s", message_id)
