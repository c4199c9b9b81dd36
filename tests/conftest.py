"""
Shared fixtures: temporary SQLite databases.
"""
import os
import tempfile

import pytest

from banktx.core.config import Settings
from banktx.core.db import Database


@pytest.fixture
def temp_db_path():
    """Create a temporary database file path."""
    fd, path = tempfile.mkstemp(suffix='.db')
    os.close(fd)
    yield path
    # Clean up WAL files too
    for suffix in ['', '-wal', '-shm']:
        try:
            os.unlink(path + suffix)
        except FileNotFoundError:
            pass


@pytest.fixture
def db(temp_db_path):
    """Create a Database with a small pool over a temporary file."""
    database = Database(
        temp_db_path,
        settings=Settings(pool_size=4, acquire_timeout=2.0, busy_timeout=10.0),
    )
    yield database
    database.close()
