"""Database-level lock rows for coordinating concurrent processes.

This module only knows how to create, sweep and delete rows in the ``locks``
table. Retry policy and scoped execution live in
:mod:`schemalock.services.lock_service`.
"""
from __future__ import annotations

from datetime import datetime
from typing import Callable, Optional

from loguru import logger
from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError, OperationalError

from schemalock.exceptions import StoreUnavailable
from schemalock.lib.database import TableStore
from schemalock.lib.timeutil import utcnow
from schemalock.models.lock import Lock


class LockStore(TableStore):
    """Table-backed map of lock name to expiry time.

    Usage:
        store = LockStore(engine)
        if store.create_if_absent("scan", utcnow() + timedelta(seconds=60)):
            ...
            store.delete("scan")

    Every call opens and closes its own session, so nothing is held between
    calls.
    """

    model = Lock

    def __init__(self, engine, clock: Callable[[], datetime] = utcnow):
        """Initialize lock store.

        Args:
            engine: SQLAlchemy engine of the shared database
            clock: Callable returning the current naive UTC time
        """
        super().__init__(engine)
        self.clock = clock

    def now(self) -> datetime:
        return self.clock()

    def create_if_absent(self, name: str, expires_at: datetime) -> bool:
        """Insert the lock row for ``name``.

        Returns:
            True if the row was created, False if a row with that name exists

        Raises:
            StoreUnavailable: If the database could not run the insert
        """
        self.ensure_ready()
        with self.Session() as session:
            session.add(Lock(name=name, expires_at=expires_at))
            try:
                session.commit()
            except IntegrityError:
                # Another process holds the lock
                session.rollback()
                return False
            except OperationalError as e:
                session.rollback()
                raise StoreUnavailable("create", e) from e
        return True

    def delete_expired(self, now: Optional[datetime] = None) -> int:
        """Remove every lock whose expiry is at or before ``now``.

        Returns:
            Number of locks cleaned up
        """
        self.ensure_ready()
        now = now or self.now()
        with self.Session() as session:
            try:
                result = session.execute(delete(Lock).where(Lock.expires_at <= now))
                session.commit()
            except OperationalError as e:
                session.rollback()
                raise StoreUnavailable("delete_expired", e) from e
        if result.rowcount:
            logger.debug(f"Removed {result.rowcount} expired lock(s)")
        return result.rowcount

    def delete(self, name: str) -> int:
        """Remove the lock row for ``name``. Deleting an absent lock is not an error."""
        self.ensure_ready()
        with self.Session() as session:
            try:
                result = session.execute(delete(Lock).where(Lock.name == name))
                session.commit()
            except OperationalError as e:
                session.rollback()
                raise StoreUnavailable("delete", e) from e
        return result.rowcount

    def get(self, name: str) -> Optional[Lock]:
        self.ensure_ready()
        with self.Session() as session:
            return session.scalar(select(Lock).where(Lock.name == name))

    def is_locked(self, name: str) -> bool:
        """Check if a live lock exists without acquiring or sweeping it."""
        lock = self.get(name)
        return lock is not None and lock.expires_at > self.now()
