"""
Tests for ConnectionPool and DatabaseConnection.
"""
import threading
import time

import pytest

from banktx.core.db import ConnectionPool, PoolExhaustedError


@pytest.fixture
def pool(db):
    """Pool of the fixture database; schema already created."""
    return db.pool


def test_acquire_returns_autocommit_connection(pool):
    """Freshly acquired connections commit each statement on their own."""
    conn = pool.acquire()
    try:
        assert conn.auto_commit is True
        assert conn.in_transaction is False
        assert pool.in_use == 1
    finally:
        pool.release(conn)
    assert pool.in_use == 0


def test_released_connection_is_reused(pool):
    """A released connection is handed out again instead of opening a new one."""
    first = pool.acquire()
    pool.release(first)
    second = pool.acquire()
    try:
        assert second is first
    finally:
        pool.release(second)


def test_exhausted_pool_raises_after_timeout(temp_db_path):
    """acquire gives up with PoolExhaustedError once the timeout passes."""
    with ConnectionPool(temp_db_path, size=1, acquire_timeout=0.2) as pool:
        held = pool.acquire()
        started = time.monotonic()
        with pytest.raises(PoolExhaustedError) as excinfo:
            pool.acquire()
        assert time.monotonic() - started >= 0.2
        assert excinfo.value.size == 1
        pool.release(held)


def test_waiting_acquire_gets_released_connection(temp_db_path):
    """A blocked acquire proceeds as soon as another thread releases."""
    with ConnectionPool(temp_db_path, size=1, acquire_timeout=5.0) as pool:
        held = pool.acquire()
        acquired = []

        def worker():
            conn = pool.acquire()
            acquired.append(conn)
            pool.release(conn)

        thread = threading.Thread(target=worker)
        thread.start()
        time.sleep(0.1)
        assert acquired == []
        pool.release(held)
        thread.join(timeout=5)

        assert acquired == [held]


def test_release_resets_connection_left_in_transaction(pool):
    """Pending work is rolled back and autocommit restored on release."""
    conn = pool.acquire()
    conn.set_auto_commit(False)
    conn.execute("INSERT INTO accounts (account_id, balance) VALUES (?, ?)", ("leak", 1))
    assert conn.in_transaction
    pool.release(conn)

    conn = pool.acquire()
    try:
        assert conn.auto_commit is True
        row = conn.execute("SELECT COUNT(*) FROM accounts WHERE account_id = 'leak'").fetchone()
        assert row[0] == 0
    finally:
        pool.release(conn)


def test_release_discards_closed_connection(pool):
    """A closed connection is dropped and a new one opened next time."""
    conn = pool.acquire()
    conn.close()
    pool.release(conn)

    fresh = pool.acquire()
    try:
        assert fresh is not conn
        assert not fresh.closed
    finally:
        pool.release(fresh)


def test_release_of_foreign_connection_fails(pool, temp_db_path):
    """Connections not acquired from the pool are rejected."""
    with ConnectionPool(temp_db_path, size=1) as other:
        conn = other.acquire()
        with pytest.raises(ValueError):
            pool.release(conn)
        other.release(conn)


def test_closed_pool_refuses_acquire(temp_db_path):
    """acquire after close raises."""
    pool = ConnectionPool(temp_db_path, size=1)
    pool.close()
    with pytest.raises(RuntimeError):
        pool.acquire()


def test_enabling_autocommit_commits_pending_work(pool):
    """set_auto_commit(True) commits an open transaction."""
    conn = pool.acquire()
    try:
        conn.set_auto_commit(False)
        conn.execute("INSERT INTO accounts (account_id, balance) VALUES (?, ?)", ("kept", 5))
        conn.set_auto_commit(True)
        assert not conn.in_transaction
    finally:
        pool.release(conn)

    conn = pool.acquire()
    try:
        row = conn.execute("SELECT balance FROM accounts WHERE account_id = 'kept'").fetchone()
        assert row["balance"] == 5
    finally:
        pool.release(conn)


def test_invalid_pool_size():
    """A pool must hold at least one connection."""
    with pytest.raises(ValueError):
        ConnectionPool("unused.db", size=0)
