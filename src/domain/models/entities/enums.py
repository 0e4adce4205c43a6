import enum


class RoomType(str, enum.Enum):
    DIRECT = "direct"
    GROUP = "group"
    PUBLIC = "public"


class ParticipantRole(str, enum.Enum):
    ADMIN = "admin"
    MEMBER = "member"
