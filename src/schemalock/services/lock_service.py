"""Acquire/release named locks with bounded retry.

Mutual exclusion comes from the primary key of the ``locks`` table: among
concurrent inserts for one name only one succeeds until the row expires or
is released. Locks are not renewed while held, so a caller must pick a
``timeout_seconds`` comfortably larger than the work done under the lock;
after it elapses another process may take the lock over.
"""
from __future__ import annotations

import time
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import timedelta
from typing import Callable, Generator, Optional, TypeVar

from loguru import logger
from sqlalchemy.exc import SQLAlchemyError

from schemalock.exceptions import ConfigurationError, LockUnavailable, StoreUnavailable
from schemalock.lib.db_lock import LockStore

T = TypeVar("T")


@dataclass(frozen=True)
class LockOptions:
    """How long a lock lives and how hard to try to get it.

    Attributes:
        timeout_seconds: Seconds after which the lock is considered expired
        max_attempts: Total number of acquisition attempts
        retry_delay_ms: Constant delay between two attempts
    """

    timeout_seconds: float = 60
    max_attempts: int = 1
    retry_delay_ms: float = 500

    def __post_init__(self):
        if self.timeout_seconds <= 0:
            raise ConfigurationError(f"timeout_seconds must be positive, got {self.timeout_seconds}")
        if self.max_attempts < 1:
            raise ConfigurationError(f"max_attempts must be at least 1, got {self.max_attempts}")
        if self.retry_delay_ms < 0:
            raise ConfigurationError(f"retry_delay_ms must not be negative, got {self.retry_delay_ms}")


DEFAULT_LOCK_OPTIONS = LockOptions()


class LockService:
    """Service used to acquire a lock.

    Example:
        service = LockService(LockStore(engine))
        result = service.with_lock("scan", run_scan, LockOptions(max_attempts=3))
    """

    def __init__(self, store: LockStore, sleep: Callable[[float], None] = time.sleep):
        if store is None:
            raise ConfigurationError("LockService requires a lock store")
        self.store = store
        self.sleep = sleep

    def acquire(self, name: str, options: Optional[LockOptions] = None) -> None:
        """Acquire the lock with the specified name.

        Each attempt first sweeps expired locks, then tries to insert the
        lock row. Failed attempts are retried after ``retry_delay_ms`` until
        ``max_attempts`` is reached.

        Raises:
            LockUnavailable: If every attempt failed
        """
        options = options or DEFAULT_LOCK_OPTIONS
        last_error: Optional[StoreUnavailable] = None

        for attempt in range(1, options.max_attempts + 1):
            logger.debug(
                f"Try to acquire the lock {name} "
                f"(attempt={attempt}/{options.max_attempts}, timeout={options.timeout_seconds}s) ..."
            )
            try:
                self.store.delete_expired()
                expires_at = self.store.now() + timedelta(seconds=options.timeout_seconds)
                if self.store.create_if_absent(name, expires_at):
                    logger.debug(f"Acquired the lock {name}")
                    return
                reason = "lock is held"
            except StoreUnavailable as e:
                last_error = e
                reason = e.message

            if attempt < options.max_attempts:
                logger.warning(
                    f"Cannot acquire the lock {name} ({reason}). Retry in {options.retry_delay_ms} milliseconds."
                )
                self.sleep(options.retry_delay_ms / 1000)

        error = LockUnavailable(name, options.max_attempts)
        if last_error is not None:
            raise error from last_error
        raise error

    def release(self, name: str) -> bool:
        """Delete the lock with the given name.

        Best-effort: releasing a lock that is absent (never taken, already
        released or expired and swept) is fine, and a database error is
        logged rather than raised.

        Returns:
            True if a lock row was removed
        """
        logger.debug(f"Release the lock '{name}'")
        try:
            return self.store.delete(name) > 0
        except (StoreUnavailable, SQLAlchemyError) as e:
            logger.error(f"Error releasing lock '{name}': {e}")
            return False

    def with_lock(self, name: str, action: Callable[[], T], options: Optional[LockOptions] = None) -> T:
        """Acquire a lock, execute ``action`` and release the lock.

        ``action`` is not called when the lock cannot be acquired. Once it
        is called the lock is released whether it returns or raises, and its
        exception propagates unchanged.
        """
        acquired = False
        try:
            self.acquire(name, options)
            acquired = True
            return action()
        finally:
            if acquired:
                self.release(name)

    @contextmanager
    def locked(self, name: str, options: Optional[LockOptions] = None) -> Generator[None, None, None]:
        """Context manager form of :meth:`with_lock`.

        Example:
            with service.locked("UPDATE_SCHEMA"):
                # Perform schema change
                pass
        """
        self.acquire(name, options)
        try:
            yield
        finally:
            self.release(name)

    def is_locked(self, name: str) -> bool:
        return self.store.is_locked(name)
