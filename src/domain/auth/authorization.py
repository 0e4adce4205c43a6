# Domain-level authorization: who may view, edit or delete chat rooms and
# messages. Decisions depend on the room type, the caller's participant row
# and the caller's global roles; the token only identifies the caller.
#
# The in-memory checks and the query-level filter used for listings are
# kept side by side here so that they cannot drift apart.
#
# Global role checks (ROLE_ADMIN for admin endpoints) live in
# src/base/auth/rbac.py.

import logging
from enum import Enum
from typing import Any, Callable

from sqlalchemy import ColumnElement, and_, exists, false, or_

from src.base.errors import ApiError
from src.base.models.user import CurrentUser
from src.domain.auth.failures import AccessFailure
from src.domain.models.entities.chat_participant import ChatParticipant
from src.domain.models.entities.chat_room import ChatRoom
from src.domain.models.entities.enums import RoomType
from src.domain.models.entities.message import Message

logger = logging.getLogger(__name__)


class Action(str, Enum):
    VIEW = "view"
    EDIT = "edit"
    DELETE = "delete"


def _active_participant(user: CurrentUser, room: ChatRoom) -> ChatParticipant | None:
    participant = room.participant_for(user.id)
    if participant is None or not participant.is_active:
        return None
    return participant


def can_view_room(user: CurrentUser | None, room: ChatRoom) -> bool:
    if user is None:
        return False
    if room.type == RoomType.PUBLIC:
        return True
    return _active_participant(user, room) is not None


def can_edit_room(user: CurrentUser | None, room: ChatRoom) -> bool:
    if user is None:
        return False
    if user.is_admin:
        return True
    participant = _active_participant(user, room)
    return participant is not None and participant.is_admin


def can_delete_room(user: CurrentUser | None, room: ChatRoom) -> bool:
    if user is None:
        return False
    # Public rooms are shared; only global admins may remove them.
    if room.type == RoomType.PUBLIC:
        return user.is_admin
    return can_edit_room(user, room)


def can_view_message(user: CurrentUser | None, message: Message) -> bool:
    return can_view_room(user, message.room)


def can_delete_message(user: CurrentUser | None, message: Message) -> bool:
    if user is None:
        return False
    return message.author_id == user.id


CAPABILITIES: dict[tuple[str, Action], Callable[[CurrentUser | None, Any], bool]] = {
    ("chat_room", Action.VIEW): can_view_room,
    ("chat_room", Action.EDIT): can_edit_room,
    ("chat_room", Action.DELETE): can_delete_room,
    ("message", Action.VIEW): can_view_message,
    ("message", Action.DELETE): can_delete_message,
}


def is_granted(
    user: CurrentUser | None, resource: str, action: Action, target: Any
) -> bool:
    """Look up and apply the capability check. Unknown pairs are denied."""
    check = CAPABILITIES.get((resource, action))
    if check is None:
        return False
    return check(user, target)


def ensure_granted(
    user: CurrentUser | None, resource: str, action: Action, target: Any
) -> None:
    """Raise a 403 ApiError unless ``user`` may perform ``action`` on ``target``."""
    if not is_granted(user, resource, action, target):
        logger.info(
            "Denied %s on %s id=%s for user %s",
            action.value,
            resource,
            getattr(target, "id", None),
            user.id if user else None,
        )
        raise ApiError.from_failure(AccessFailure.FORBIDDEN)


def visible_room_clause(user: CurrentUser | None) -> ColumnElement[bool]:
    """SQL form of ``can_view_room``: public, or the caller is an active participant."""
    if user is None:
        return false()
    return or_(
        ChatRoom.type == RoomType.PUBLIC,
        exists().where(
            and_(
                ChatParticipant.room_id == ChatRoom.id,
                ChatParticipant.user_id == user.id,
                ChatParticipant.deleted_at.is_(None),
            )
        ),
    )


def visible_message_clause(user: CurrentUser | None) -> ColumnElement[bool]:
    """SQL form of ``can_view_message``; join Message to ChatRoom before applying."""
    return visible_room_clause(user)

