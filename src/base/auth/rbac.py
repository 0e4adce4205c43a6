import logging

from fastapi import Request, status

from src.base.errors import ApiError
from src.base.models.role import Role
from src.base.models.user import CurrentUser

logger = logging.getLogger(__name__)


def get_current_user(request: Request) -> CurrentUser:
    """Dependency returning the authenticated user set by JWTMiddleware."""
    user: CurrentUser | None = getattr(request.state, "user", None)
    if user is None:
        raise ApiError(
            status.HTTP_401_UNAUTHORIZED, "unauthorized", "Not authenticated"
        )
    return user


def require_roles(*required: Role):
    """
    Dependency factory enforcing that the user holds every listed global role.
    """

    def checker(request: Request) -> CurrentUser:
        user = get_current_user(request)
        missing = [r.value for r in required if r.value not in user.roles]
        if missing:
            logger.warning("User %s lacks roles %s", user.id, missing)
            raise ApiError(
                status.HTTP_403_FORBIDDEN, "forbidden", "Insufficient role"
            )
        return user

    return checker
