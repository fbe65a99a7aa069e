"""PIN brute-force lockout.

Each call recomputes its transition from the current failure count:

    NoSecretSet -> NOT_SET
    Verifying   -> VALID | INVALID(attempts_left) | LOCKED

The per-user failure counter lives in the cache under
``pinFailureCount:<user_id>``. It is bumped with an atomic INCR, so two
concurrent wrong guesses can never be counted as one. The counter expires
``window_seconds`` after the first failure of a window; reaching the
threshold locks the account in the store and drops the counter.
"""

import logging
from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import settings
from src.pm_cache.application.namespaced import NamespacedCache
from src.pm_cache.domain.cache import KeyValueCacheProtocol
from src.pm_common.enums import EntityStatus, PinOutcome
from src.pm_common.errors import (
    ConfigurationError,
    InvalidPinError,
    PinNotSetError,
    UserLockedError,
    UserNotFoundError,
)
from src.pm_gateway.auth.password import verify_pin
from src.pm_gateway.user.models import User
from src.pm_store.application.service import CacheAsideRepository

logger = logging.getLogger("pm.auth")

PIN_FAILURE_NAMESPACE = "pinFailureCount"


@dataclass(frozen=True)
class LockoutDecision:
    outcome: PinOutcome
    is_valid: bool = False
    attempts_left: int = 0
    is_locked: bool = False


class PinLockout:
    def __init__(
        self,
        users: CacheAsideRepository[User],
        cache: KeyValueCacheProtocol,
        max_failures: int | None = None,
        window_seconds: int | None = None,
    ) -> None:
        self._users = users
        self.max_failures = (
            settings.PIN_MAX_FAILURES if max_failures is None else max_failures
        )
        self.window_seconds = (
            settings.PIN_FAILURE_WINDOW_SECONDS if window_seconds is None else window_seconds
        )
        if self.max_failures <= 0 or self.window_seconds <= 0:
            raise ConfigurationError(
                "PIN lockout needs a positive max_failures and window_seconds"
            )
        self._counters = NamespacedCache(cache, PIN_FAILURE_NAMESPACE, self.window_seconds)

    async def failure_count(self, user_id: str) -> int:
        raw = await self._counters.get(user_id)
        return int(raw) if raw is not None else 0

    async def validate_pin(
        self, db: AsyncSession, user_id: str, pin: str
    ) -> LockoutDecision:
        user = await self._users.get_by_id(db, user_id)
        if user is None:
            return LockoutDecision(outcome=PinOutcome.SUBJECT_NOT_FOUND)

        if user.status != EntityStatus.ACTIVE.value:
            return LockoutDecision(outcome=PinOutcome.LOCKED, is_locked=True)

        if not user.pin_secret:
            return LockoutDecision(outcome=PinOutcome.NOT_SET)

        if verify_pin(pin, user.pin_secret):
            await self._counters.delete(user_id)
            return LockoutDecision(outcome=PinOutcome.VALID, is_valid=True)

        count = await self._counters.incr(user_id, self.window_seconds)
        if count is None:
            logger.warning(
                "PIN failure counter unavailable for user=%s, counting as first failure",
                user_id,
            )
            count = 1

        if count >= self.max_failures:
            await self._users.update_by_id(
                db, user_id, {"status": EntityStatus.SUSPENDED.value}
            )
            await self._counters.delete(user_id)
            logger.info("user=%s locked after %d failed PIN attempts", user_id, count)
            return LockoutDecision(outcome=PinOutcome.LOCKED, is_locked=True)

        return LockoutDecision(
            outcome=PinOutcome.INVALID,
            attempts_left=self.max_failures - count,
        )


def raise_for_decision(decision: LockoutDecision, user_id: str) -> None:
    """Map a non-valid decision to the AppError a request handler returns."""
    if decision.outcome is PinOutcome.VALID:
        return
    if decision.outcome is PinOutcome.SUBJECT_NOT_FOUND:
        raise UserNotFoundError(user_id)
    if decision.outcome is PinOutcome.NOT_SET:
        raise PinNotSetError()
    if decision.outcome is PinOutcome.LOCKED:
        raise UserLockedError()
    raise InvalidPinError(decision.attempts_left)
