import logging
import time
from typing import Callable, TypeVar

from sqlalchemy.exc import DBAPIError, OperationalError, TimeoutError as PoolTimeoutError
from sqlalchemy.orm import Session

from booking_engine.core.errors import PersistenceUnavailable

logger = logging.getLogger(__name__)

T = TypeVar('T')


def is_transient(exc: Exception) -> bool:
    if isinstance(exc, (OperationalError, PoolTimeoutError)):
        return True
    return isinstance(exc, DBAPIError) and bool(exc.connection_invalidated)


def run_with_read_retry(
    operation: Callable[[], T],
    *,
    session: Session | None = None,
    attempts: int = 3,
    delay_seconds: float = 0.05,
    description: str = 'read',
) -> T:
    """Run a read-only ``operation``, retrying transient database faults.

    Only for reads: writes must re-run validation instead of being retried.
    """
    attempts = max(attempts, 1)
    for attempt in range(1, attempts + 1):
        try:
            return operation()
        except (OperationalError, DBAPIError, PoolTimeoutError) as exc:
            if not is_transient(exc):
                raise
            if session is not None:
                session.rollback()
            if attempt == attempts:
                logger.exception('%s failed after %d attempts', description, attempts)
                raise PersistenceUnavailable() from exc
            logger.warning('%s failed (attempt %d/%d), retrying', description, attempt, attempts)
            time.sleep(delay_seconds * (2 ** (attempt - 1)))

    raise PersistenceUnavailable()
