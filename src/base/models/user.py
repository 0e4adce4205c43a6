"""
Authenticated principal module.

This module defines the CurrentUser model that represents the caller of a
request once its access token has been validated. Roles are re-read from the
user record on every request; the token itself only carries the subject.
"""

from pydantic import BaseModel, Field

from src.base.models.role import Role


class CurrentUser(BaseModel):
    """
    Represents an authenticated user in the system.

    Stored in ``request.state.user`` by the JWT middleware and handed to
    route handlers through dependencies.

    Attributes:
        id: Primary key of the user record (the token's 'sub' claim)
        email: The user's (lower-cased) email address
        name: The user's display name
        picture: Optional avatar URL
        roles: Global role labels, always including ROLE_USER
    """

    id: int = Field(..., description="User id, taken from the token subject")
    email: str = Field(..., description="User's email address")
    name: str | None = Field(None, description="User's display name")
    picture: str | None = Field(None, description="Avatar URL")
    roles: list[str] = Field(
        default_factory=lambda: [Role.USER.value],
        description="Global role labels",
    )

    @property
    def is_admin(self) -> bool:
        return Role.ADMIN.value in self.roles

    model_config = {
        "json_schema_extra": {
            "example": {
                "id": 42,
                "email": "user@example.com",
                "name": "Jane Doe",
                "picture": None,
                "roles": ["ROLE_USER"],
            }
        }
    }
