import re

from src.base.auth.passwords import MAX_PASSWORD_BYTES

EMAIL_PATTERN = re.compile(r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$")
MAX_EMAIL_LENGTH = 180


def is_valid_email(email: str) -> bool:
    email = email.strip()
    if not email or len(email) > MAX_EMAIL_LENGTH:
        return False
    if ".." in email:
        return False
    return EMAIL_PATTERN.match(email) is not None


def password_policy_errors(password: str, min_length: int) -> list[str]:
    """Human-readable reasons ``password`` is rejected; empty when acceptable."""
    errors = []
    if len(password) < min_length:
        errors.append(f"Password must be at least {min_length} characters long")
    if len(password.encode("utf-8")) > MAX_PASSWORD_BYTES:
        errors.append(f"Password must not exceed {MAX_PASSWORD_BYTES} bytes")
    if password.strip() == "":
        errors.append("Password must not be blank")
    return errors
