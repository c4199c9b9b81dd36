"""
Repository classes for database operations.

Each repository handles CRUD operations for a specific domain entity.
"""

from .base import BaseRepository
from .account import AccountRepository

__all__ = [
    "BaseRepository",
    "AccountRepository",
]
