from contextlib import contextmanager
from threading import Lock
from weakref import WeakValueDictionary

from sqlalchemy.orm import Session

from booking_engine.models.user import User


class AdminBookingLock:
    """Serialises validate-then-insert for one admin.

    A process-local lock covers threads of one worker. Across workers the
    ``FOR UPDATE`` row lock on the admin serialises bookings on PostgreSQL
    under READ COMMITTED, where each statement inside ``hold`` sees rows
    committed by the previous holder. SQLite ignores ``FOR UPDATE`` and relies
    on its single-writer file lock. Isolation levels that pin a snapshot at
    the first read of a transaction, such as the MySQL/InnoDB REPEATABLE READ
    default, are not covered because admin resolution reads before ``hold``.

    The row lock lasts until the caller commits or rolls back, so the caller
    must finish its transaction inside ``hold``. Per-admin locks are held
    weakly and dropped once no booking is using them.
    """

    _registry_lock = Lock()
    _locks: 'WeakValueDictionary[int, Lock]' = WeakValueDictionary()

    @classmethod
    def _lock_for(cls, admin_id: int) -> Lock:
        with cls._registry_lock:
            lock = cls._locks.get(admin_id)
            if lock is None:
                lock = Lock()
                cls._locks[admin_id] = lock
            return lock

    @contextmanager
    def hold(self, db: Session, admin_id: int):
        lock = self._lock_for(admin_id)
        with lock:
            db.query(User.id).filter(User.id == admin_id).with_for_update().first()
            yield
