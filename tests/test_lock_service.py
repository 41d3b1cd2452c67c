import threading
import time
from datetime import timedelta

import pytest

from schemalock.exceptions import ConfigurationError, LockUnavailable, StoreUnavailable
from schemalock.lib.database import get_engine, init_db
from schemalock.lib.db_lock import LockStore
from schemalock.services.lock_service import LockOptions, LockService


class CountingLockStore(LockStore):
    def __init__(self, engine, **kwargs):
        super().__init__(engine, **kwargs)
        self.create_calls = 0
        self.sweep_calls = 0

    def create_if_absent(self, name, expires_at):
        self.create_calls += 1
        return super().create_if_absent(name, expires_at)

    def delete_expired(self, now=None):
        self.sweep_calls += 1
        return super().delete_expired(now)


def make_service(engine, clock, sleep=None):
    return LockService(LockStore(engine, clock=clock), sleep=sleep or (lambda seconds: None))


def test_default_options():
    options = LockOptions()
    assert options.timeout_seconds == 60
    assert options.max_attempts == 1
    assert options.retry_delay_ms == 500


@pytest.mark.parametrize("kwargs", [
    {"timeout_seconds": 0},
    {"max_attempts": 0},
    {"retry_delay_ms": -1},
])
def test_invalid_options_are_rejected(kwargs):
    with pytest.raises(ConfigurationError):
        LockOptions(**kwargs)


def test_acquire_sets_expiry_from_timeout(engine, clock):
    service = make_service(engine, clock)
    service.acquire("scan", LockOptions(timeout_seconds=90))

    lock = service.store.get("scan")
    assert (lock.expires_at - clock()).total_seconds() == 90
    assert service.is_locked("scan")


def test_second_process_cannot_acquire_held_lock(db_url, clock):
    process_a = make_service(get_engine(db_url), clock)
    process_b = make_service(get_engine(db_url), clock)

    process_a.acquire("UPDATE_SCHEMA")
    with pytest.raises(LockUnavailable) as excinfo:
        process_b.acquire("UPDATE_SCHEMA")

    assert excinfo.value.name == "UPDATE_SCHEMA"
    assert process_a.is_locked("UPDATE_SCHEMA")


def test_expired_lock_is_reclaimed_without_release(db_url, clock):
    process_a = make_service(get_engine(db_url), clock)
    process_b = make_service(get_engine(db_url), clock)

    process_a.acquire("UPDATE_SCHEMA", LockOptions(timeout_seconds=30))
    clock.advance(29)
    with pytest.raises(LockUnavailable):
        process_b.acquire("UPDATE_SCHEMA")

    clock.advance(1)
    process_b.acquire("UPDATE_SCHEMA", LockOptions(timeout_seconds=30))
    assert process_b.store.get("UPDATE_SCHEMA").expires_at == clock() + timedelta(seconds=30)
    assert process_b.is_locked("UPDATE_SCHEMA")


def test_release_is_idempotent(engine, clock):
    service = make_service(engine, clock)
    service.acquire("scan")

    assert service.release("scan") is True
    assert service.release("scan") is False
    assert service.release("never-acquired") is False
    assert not service.is_locked("scan")


def test_retry_stops_after_max_attempts(engine, clock, sleep):
    holder = make_service(engine, clock)
    holder.acquire("UPDATE_SCHEMA", LockOptions(timeout_seconds=120))

    store = CountingLockStore(engine, clock=clock)
    contender = LockService(store, sleep=sleep)
    with pytest.raises(LockUnavailable) as excinfo:
        contender.acquire("UPDATE_SCHEMA", LockOptions(max_attempts=4, retry_delay_ms=250))

    assert excinfo.value.attempts == 4
    assert store.create_calls == 4
    # expired locks are swept before every attempt
    assert store.sweep_calls == 4
    # constant delay, no wait after the last attempt
    assert sleep.calls == [0.25, 0.25, 0.25]


def test_retry_succeeds_once_lock_is_released(engine, clock):
    holder = make_service(engine, clock)
    holder.acquire("UPDATE_SCHEMA")

    def release_during_wait(seconds):
        holder.release("UPDATE_SCHEMA")

    store = CountingLockStore(engine, clock=clock)
    contender = LockService(store, sleep=release_during_wait)
    contender.acquire("UPDATE_SCHEMA", LockOptions(max_attempts=3))

    assert store.create_calls == 2
    assert contender.is_locked("UPDATE_SCHEMA")


def test_single_attempt_does_not_sleep(engine, clock, sleep):
    make_service(engine, clock).acquire("scan")
    contender = make_service(engine, clock, sleep=sleep)

    with pytest.raises(LockUnavailable):
        contender.acquire("scan")
    assert sleep.calls == []


def test_store_errors_are_retried_then_chained(tmp_path, clock, sleep):
    engine = get_engine(f"sqlite:///{tmp_path / 'missing' / 'locks.db'}")
    service = make_service(engine, clock, sleep=sleep)

    with pytest.raises(LockUnavailable) as excinfo:
        service.acquire("scan", LockOptions(max_attempts=2, retry_delay_ms=10))

    assert isinstance(excinfo.value.__cause__, StoreUnavailable)
    assert sleep.calls == [0.01]


def test_with_lock_returns_action_result_and_releases(engine, clock):
    service = make_service(engine, clock)

    def action():
        assert service.is_locked("scan")
        return 42

    assert service.with_lock("scan", action) == 42
    assert service.store.get("scan") is None


def test_with_lock_releases_when_action_fails(engine, clock):
    service = make_service(engine, clock)
    error = ValueError("boom")

    def action():
        raise error

    with pytest.raises(ValueError) as excinfo:
        service.with_lock("scan", action)

    assert excinfo.value is error
    assert service.store.get("scan") is None


def test_with_lock_does_not_run_action_without_lock(engine, clock):
    holder = make_service(engine, clock)
    holder.acquire("scan")
    contender = make_service(engine, clock)
    calls = []

    with pytest.raises(LockUnavailable):
        contender.with_lock("scan", lambda: calls.append(1))

    assert calls == []
    # the holder's lock is untouched
    assert holder.is_locked("scan")


def test_locked_context_manager_releases(engine, clock):
    service = make_service(engine, clock)

    with pytest.raises(RuntimeError):
        with service.locked("scan"):
            assert service.is_locked("scan")
            raise RuntimeError("inside")

    assert not service.is_locked("scan")


def test_update_schema_scenario_contender_gives_up(db_url):
    process_a = LockService(LockStore(get_engine(db_url)))
    process_b = LockService(LockStore(get_engine(db_url)))

    process_a.acquire("UPDATE_SCHEMA", LockOptions(timeout_seconds=120))
    started = time.monotonic()
    with pytest.raises(LockUnavailable):
        process_b.acquire("UPDATE_SCHEMA", LockOptions(max_attempts=2, retry_delay_ms=10))

    assert time.monotonic() - started >= 0.01
    assert process_a.is_locked("UPDATE_SCHEMA")


def test_concurrent_acquirers_only_one_wins(db_url):
    init_db(get_engine(db_url))
    workers = 8
    barrier = threading.Barrier(workers)
    results = []
    results_lock = threading.Lock()

    def contend():
        service = LockService(LockStore(get_engine(db_url)))
        barrier.wait()
        try:
            service.acquire("UPDATE_SCHEMA", LockOptions(timeout_seconds=120))
            outcome = True
        except LockUnavailable:
            outcome = False
        with results_lock:
            results.append(outcome)

    threads = [threading.Thread(target=contend) for _ in range(workers)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert len(results) == workers
    assert results.count(True) == 1
