import datetime

from pydantic import BaseModel, Field


class UserResponse(BaseModel):
    id: int
    email: str
    name: str | None
    picture: str | None
    roles: list[str] = Field(validation_alias="role_labels")
    created_at: datetime.datetime
    updated_at: datetime.datetime
    has_password: bool
    has_external_identity: bool

    model_config = {"from_attributes": True, "populate_by_name": True}


class UserUpdate(BaseModel):
    name: str | None = Field(None, min_length=1, max_length=255)
    picture: str | None = Field(None, max_length=1024)


class PasswordChange(BaseModel):
    current_password: str = Field(..., min_length=1)
    new_password: str = Field(..., min_length=1)


class RevokedTokensResponse(BaseModel):
    revoked: int
