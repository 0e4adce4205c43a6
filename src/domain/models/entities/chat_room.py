import datetime

from sqlalchemy import DateTime, Enum, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from src.base.config.database import Base
from src.base.utils.time_utils import utcnow
from src.domain.models.entities.enums import RoomType


class ChatRoom(Base):
    __tablename__ = "chat_rooms"

    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(String(255))
    type: Mapped[RoomType] = mapped_column(Enum(RoomType), index=True)
    created_at: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow
    )
    updated_at: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow
    )

    # Includes soft-deleted rows; use active_participants for membership.
    participants: Mapped[list["ChatParticipant"]] = relationship(  # noqa: F821
        back_populates="room",
        lazy="selectin",
        cascade="all, delete-orphan",
    )

    @property
    def active_participants(self) -> list["ChatParticipant"]:  # noqa: F821
        return [p for p in self.participants if p.deleted_at is None]

    def participant_for(self, user_id: int) -> "ChatParticipant | None":  # noqa: F821
        """Participant row for ``user_id`` (active or not), if any."""
        return next((p for p in self.participants if p.user_id == user_id), None)
