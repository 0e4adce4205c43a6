import datetime

from pydantic import BaseModel, Field


class LoginRequest(BaseModel):
    email: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)


class RegisterRequest(BaseModel):
    email: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)
    name: str | None = Field(None, max_length=255)


class RefreshRequest(BaseModel):
    refresh_token: str = Field(..., min_length=1)


class UserSummary(BaseModel):
    id: int
    email: str
    name: str | None
    picture: str | None
    roles: list[str] = Field(validation_alias="role_labels")
    created_at: datetime.datetime
    has_external_identity: bool

    model_config = {"from_attributes": True, "populate_by_name": True}


class TokenResponse(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "Bearer"
    expires_in: int
    user: UserSummary


class AuthMethods(BaseModel):
    email_password: bool = True
    google_sso: bool


class AuthStatusResponse(BaseModel):
    auth_methods: AuthMethods
    api_version: str
