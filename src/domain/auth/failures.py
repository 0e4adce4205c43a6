"""Failure taxonomies for credential checks, refresh and chat access.

Each member carries its HTTP status, stable ``error`` code and default
message; routes raise ``ApiError.from_failure(member)``.
"""

from fastapi import status

from src.base.errors import Failure


class CredentialFailure(Failure):
    # Both map to the same status and code; only the message differs.
    INVALID_CREDENTIALS = (
        "invalid_credentials",
        "invalid_credentials",
        "Invalid credentials",
    )
    NO_PASSWORD = (
        "no_password",
        "invalid_credentials",
        "This account uses external sign-in only; use the SSO flow",
    )


class RefreshFailure(Failure):
    INVALID_REFRESH_TOKEN = (
        "invalid_refresh_token",
        "invalid_token",
        "Invalid or expired refresh token",
    )
    EXPIRED_REFRESH_TOKEN = (
        "expired_refresh_token",
        "invalid_token",
        "Refresh token has expired",
    )
    USER_NOT_FOUND = ("user_not_found", "user_not_found", "User not found")


class RegistrationFailure(Failure):
    INVALID_EMAIL = (
        "invalid_email",
        "invalid_email",
        "Invalid email format",
        status.HTTP_400_BAD_REQUEST,
    )
    WEAK_PASSWORD = (
        "weak_password",
        "weak_password",
        "Password does not meet the security requirements",
        status.HTTP_400_BAD_REQUEST,
    )
    EMAIL_EXISTS = (
        "email_exists",
        "email_exists",
        "An account with this email already exists",
        status.HTTP_409_CONFLICT,
    )
    IDENTITY_CONFLICT = (
        "identity_conflict",
        "conflict",
        "This email is already linked to another external account",
        status.HTTP_409_CONFLICT,
    )


class PasswordChangeFailure(Failure):
    NO_PASSWORD = (
        "no_password",
        "no_password",
        "This account uses external sign-in only and has no password",
        status.HTTP_400_BAD_REQUEST,
    )
    INVALID_PASSWORD = (
        "invalid_password",
        "invalid_password",
        "Current password is incorrect",
    )


class AccessFailure(Failure):
    FORBIDDEN = (
        "forbidden",
        "forbidden",
        "Access denied",
        status.HTTP_403_FORBIDDEN,
    )
    NOT_FOUND = (
        "not_found",
        "not_found",
        "Resource not found",
        status.HTTP_404_NOT_FOUND,
    )
    NOT_JOINABLE = (
        "not_joinable",
        "forbidden",
        "Only public rooms can be joined",
        status.HTTP_403_FORBIDDEN,
    )
    ALREADY_PARTICIPANT = (
        "already_participant",
        "conflict",
        "User is already a participant of this room",
        status.HTTP_409_CONFLICT,
    )
