from src.domain.models.entities.chat_participant import ChatParticipant
from src.domain.models.entities.chat_room import ChatRoom
from src.domain.models.entities.enums import ParticipantRole, RoomType
from src.domain.models.entities.message import Message
from src.domain.models.entities.refresh_token import RefreshToken
from src.domain.models.entities.user import User

__all__ = [
    "ChatParticipant",
    "ChatRoom",
    "Message",
    "ParticipantRole",
    "RefreshToken",
    "RoomType",
    "User",
]
