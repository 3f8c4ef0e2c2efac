# drive_relay/storage/__init__.py

"""Connection handling for the SQLite and Redis store backends."""

from .sqlite_base import SQLiteDatabase, init_sqlite_db
from .redis_base import create_redis_client

__all__ = [
    "SQLiteDatabase",
    "init_sqlite_db",
    "create_redis_client",
]
