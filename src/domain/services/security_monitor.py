"""Security event hook and the default monitor behind it.

Components that make authentication decisions take an ``on_event`` callable
and await it with a ``SecurityEvent``. ``SecurityMonitor`` is the default
sink: it logs every event and, when Redis is available, keeps the windowed
counters used to flag brute-force and token-abuse patterns.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Awaitable, Callable

from src.base.infra.redis_counters import RedisCounters
from src.base.middleware.request_context import get_request_context

logger = logging.getLogger(__name__)

FAILED_LOGIN_WINDOW = 300
FAILED_LOGIN_THRESHOLD = 5
REFRESH_WINDOW = 60
REFRESH_THRESHOLD = 10
ACCOUNT_IP_THRESHOLD = 3
RATE_LIMIT_VIOLATION_WINDOW = 3600


class SecurityEventType(str, Enum):
    LOGIN_SUCCESS = "auth.successful_login"
    LOGIN_FAILURE = "auth.failed_login"
    REGISTRATION = "auth.registration"
    TOKEN_REFRESH = "auth.token_refresh"
    REFRESH_REJECTED = "auth.refresh_rejected"
    LOGOUT = "auth.logout"
    TOKENS_REVOKED = "auth.tokens_revoked"
    RATE_LIMITED = "security.rate_limit_violation"


@dataclass(frozen=True)
class SecurityEvent:
    type: SecurityEventType
    user_id: int | None = None
    email: str | None = None
    reason: str | None = None
    ip_address: str = field(
        default_factory=lambda: get_request_context("client_ip", "unknown")
    )
    user_agent: str = field(
        default_factory=lambda: get_request_context("user_agent", "unknown")
    )


SecurityEventHook = Callable[[SecurityEvent], Awaitable[None]]


async def ignore_event(event: SecurityEvent) -> None:
    return None


class SecurityMonitor:
    def __init__(self, counters: RedisCounters | None = None):
        self._counters = counters or RedisCounters()

    async def __call__(self, event: SecurityEvent) -> None:
        extra = {
            "event_type": event.type.value,
            "user_id": event.user_id,
            "ip_address": event.ip_address,
        }
        if event.type == SecurityEventType.LOGIN_FAILURE:
            await self._on_failed_login(event, extra)
        elif event.type == SecurityEventType.LOGIN_SUCCESS:
            logger.info(
                "Successful login user_id=%s ip=%s ua=%s",
                event.user_id,
                event.ip_address,
                event.user_agent,
                extra=extra,
            )
            await self._counters.reset(self._failed_login_key(event.ip_address))
        elif event.type == SecurityEventType.TOKEN_REFRESH:
            await self._on_refresh(event, extra)
        elif event.type == SecurityEventType.RATE_LIMITED:
            logger.warning(
                "Rate limit violation endpoint=%s ip=%s",
                event.reason,
                event.ip_address,
                extra=extra,
            )
            await self._counters.increment(
                self._violation_key(event.ip_address), RATE_LIMIT_VIOLATION_WINDOW
            )
        else:
            logger.info(
                "Security event %s user_id=%s ip=%s reason=%s",
                event.type.value,
                event.user_id,
                event.ip_address,
                event.reason,
                extra=extra,
            )

    @staticmethod
    def _failed_login_key(ip_address: str) -> str:
        return f"security:failed_login:{ip_address}"

    @staticmethod
    def _violation_key(ip_address: str) -> str:
        return f"security:rate_limit_violation:{ip_address}"

    async def record_rate_limit_violation(self, name: str, identifier: str) -> None:
        """Hook for the rate limiter: ``name`` is the limited endpoint."""
        await self(SecurityEvent(type=SecurityEventType.RATE_LIMITED, reason=name))

    async def risk_score(self, ip_address: str) -> int:
        """0-100 score: ten points per recent failed login from this IP and
        twenty per rate limit violation."""
        failures = await self._counters.get(self._failed_login_key(ip_address))
        violations = await self._counters.get(self._violation_key(ip_address))
        return min(failures * 10 + violations * 20, 100)

    async def _on_failed_login(self, event: SecurityEvent, extra: dict) -> None:
        logger.warning(
            "Failed login attempt ip=%s ua=%s reason=%s risk=%s",
            event.ip_address,
            event.user_agent,
            event.reason,
            await self.risk_score(event.ip_address),
            extra=extra,
        )
        failures = await self._counters.increment(
            self._failed_login_key(event.ip_address), FAILED_LOGIN_WINDOW
        )
        if failures >= FAILED_LOGIN_THRESHOLD:
            logger.critical(
                "Possible brute force attack ip=%s failed_attempts=%s",
                event.ip_address,
                failures,
                extra=extra,
            )

        if event.email:
            unique_ips = await self._counters.add_member(
                f"security:login_ips:{event.email.lower()}",
                event.ip_address,
                FAILED_LOGIN_WINDOW,
            )
            if unique_ips >= ACCOUNT_IP_THRESHOLD:
                logger.critical(
                    "Multiple IPs attempting login for the same account unique_ips=%s",
                    unique_ips,
                    extra=extra,
                )

    async def _on_refresh(self, event: SecurityEvent, extra: dict) -> None:
        logger.info(
            "Token refresh user_id=%s ip=%s",
            event.user_id,
            event.ip_address,
            extra=extra,
        )
        refreshes = await self._counters.increment(
            f"security:token_refresh:{event.user_id}", REFRESH_WINDOW
        )
        if refreshes > REFRESH_THRESHOLD:
            logger.warning(
                "Suspicious token refresh activity user_id=%s refresh_count=%s",
                event.user_id,
                refreshes,
                extra=extra,
            )
