"""
Configuration for banktx.

Settings come from environment variables with sensible defaults; the
database file lives in an OS-specific data directory unless
BANKTX_DB_PATH points elsewhere.
"""

import os
import platform
from pathlib import Path
from typing import FrozenSet

from pydantic import BaseModel, ConfigDict, Field

DEFAULT_POOL_SIZE = 10
DEFAULT_ACQUIRE_TIMEOUT = 5.0
DEFAULT_BUSY_TIMEOUT = 30.0
DEFAULT_BLOCKED_ACCOUNTS = "ex"


def get_default_db_path() -> Path:
    """
    Get the default location of the accounts database.

    Returns
    -------
    Path
        ``$BANKTX_DB_PATH`` if set, otherwise ``accounts.db`` inside the
        platform's application data directory.
    """
    override = os.getenv("BANKTX_DB_PATH")
    if override:
        return Path(override)

    system = platform.system()
    if system == "Windows":
        base = Path(os.getenv("APPDATA", Path.home() / "AppData" / "Roaming"))
    elif system == "Darwin":
        base = Path.home() / "Library" / "Application Support"
    else:
        base = Path(os.getenv("XDG_DATA_HOME", Path.home() / ".local" / "share"))

    return base / "banktx" / "accounts.db"


class Settings(BaseModel):
    """Runtime settings for the connection pool and transfer rules."""

    model_config = ConfigDict(frozen=True)

    pool_size: int = Field(default=DEFAULT_POOL_SIZE, ge=1)
    acquire_timeout: float = Field(default=DEFAULT_ACQUIRE_TIMEOUT, ge=0)
    busy_timeout: float = Field(default=DEFAULT_BUSY_TIMEOUT, ge=0)
    blocked_accounts: FrozenSet[str] = frozenset({DEFAULT_BLOCKED_ACCOUNTS})


def _parse_blocked(raw: str) -> FrozenSet[str]:
    return frozenset(part.strip() for part in raw.split(",") if part.strip())


def load_settings() -> Settings:
    """Load settings from ``BANKTX_*`` environment variables."""
    return Settings(
        pool_size=int(os.getenv("BANKTX_POOL_SIZE", DEFAULT_POOL_SIZE)),
        acquire_timeout=float(os.getenv("BANKTX_ACQUIRE_TIMEOUT", DEFAULT_ACQUIRE_TIMEOUT)),
        busy_timeout=float(os.getenv("BANKTX_BUSY_TIMEOUT", DEFAULT_BUSY_TIMEOUT)),
        blocked_accounts=_parse_blocked(
            os.getenv("BANKTX_BLOCKED_ACCOUNTS", DEFAULT_BLOCKED_ACCOUNTS)
        ),
    )
