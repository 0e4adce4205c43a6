import datetime

from sqlalchemy import JSON, CheckConstraint, DateTime, String
from sqlalchemy.orm import Mapped, mapped_column

from src.base.config.database import Base
from src.base.utils.time_utils import utcnow
from src.base.models.role import Role


class User(Base):
    __tablename__ = "users"
    # Either a local password or a linked external identity, never neither.
    __table_args__ = (
        CheckConstraint(
            "password_hash IS NOT NULL OR external_id IS NOT NULL",
            name="ck_users_has_credential",
        ),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    email: Mapped[str] = mapped_column(String(180), unique=True, index=True)
    password_hash: Mapped[str | None] = mapped_column(String(255))
    name: Mapped[str | None] = mapped_column(String(255))
    picture: Mapped[str | None] = mapped_column(String(1024))
    external_id: Mapped[str | None] = mapped_column(String(255), unique=True)
    roles: Mapped[list[str]] = mapped_column(
        JSON, default=lambda: [Role.USER.value]
    )
    created_at: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow
    )
    updated_at: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow
    )

    @property
    def role_labels(self) -> list[str]:
        """Stored roles, always including ROLE_USER."""
        labels = list(self.roles or [])
        if Role.USER.value not in labels:
            labels.insert(0, Role.USER.value)
        return labels

    @property
    def has_password(self) -> bool:
        return self.password_hash is not None

    @property
    def has_external_identity(self) -> bool:
        return self.external_id is not None
