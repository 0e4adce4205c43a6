from enum import Enum


class Role(Enum):
    """Global role labels stored on a user account"""

    USER = "ROLE_USER"
    ADMIN = "ROLE_ADMIN"
