"""Transaction execution with retry on transient lock conflicts."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from typing import TypeVar

from sqlalchemy.exc import DBAPIError, IntegrityError
from sqlalchemy.orm import Session, sessionmaker

from volunteer_app.core.config import settings

logger = logging.getLogger(__name__)

T = TypeVar("T")

# MySQL: deadlock found when trying to get lock.
DEADLOCK_ERROR_CODE: int = 1213
# MySQL: lock wait timeout exceeded.
LOCK_WAIT_TIMEOUT_ERROR_CODE: int = 1205
# MySQL: duplicate entry for key.
DUPLICATE_ENTRY_ERROR_CODE: int = 1062

RETRYABLE_ERROR_CODES: frozenset[int] = frozenset({DEADLOCK_ERROR_CODE, LOCK_WAIT_TIMEOUT_ERROR_CODE})
RETRYABLE_MESSAGES: tuple[str, ...] = (
    "deadlock found",
    "deadlock detected",
    "lock wait timeout exceeded",
    "database is locked",
)


def _driver_error_code(exc: BaseException) -> int | None:
    orig = getattr(exc, "orig", None)
    args = getattr(orig, "args", None)
    if args and isinstance(args[0], int):
        return args[0]
    return None


def is_retryable_tx_error(exc: BaseException) -> bool:
    """Return whether ``exc`` is a deadlock or lock-wait timeout."""
    if not isinstance(exc, DBAPIError):
        return False
    if _driver_error_code(exc) in RETRYABLE_ERROR_CODES:
        return True
    message = str(exc.orig if exc.orig is not None else exc).lower()
    return any(marker in message for marker in RETRYABLE_MESSAGES)


def is_duplicate_key_error(exc: BaseException) -> bool:
    """Return whether ``exc`` is a unique-constraint violation."""
    if not isinstance(exc, IntegrityError):
        return False
    code = _driver_error_code(exc)
    if code is not None:
        return code == DUPLICATE_ENTRY_ERROR_CODE
    message = str(exc.orig).lower()
    return "unique" in message or "duplicate" in message


class TransactionRunner:
    """Runs units of work in a fresh session and transaction.

    A unit of work may execute more than once: every attempt rolls back
    completely before the next one starts.
    """

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        *,
        max_attempts: int | None = None,
        backoff_ms: int | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.session_factory = session_factory
        self.max_attempts = max(1, max_attempts if max_attempts is not None else settings.tx_max_attempts)
        self.backoff_ms = backoff_ms if backoff_ms is not None else settings.tx_retry_backoff_ms
        self._sleep = sleep

    def run(self, work: Callable[[Session], T]) -> T:
        """Execute ``work`` in one transaction, retrying transient conflicts."""
        for attempt in range(1, self.max_attempts + 1):
            try:
                with self.session_factory() as session:
                    with session.begin():
                        return work(session)
            except DBAPIError as exc:
                if not is_retryable_tx_error(exc) or attempt == self.max_attempts:
                    raise
                logger.warning(
                    "Transient transaction conflict (attempt %d/%d): %s",
                    attempt,
                    self.max_attempts,
                    exc.orig,
                )
                self._sleep(attempt * self.backoff_ms / 1000)
        raise RuntimeError("unreachable")  # pragma: no cover

    def read(self, work: Callable[[Session], T]) -> T:
        """Execute a read-only unit of work without retry."""
        with self.session_factory() as session:
            return work(session)
