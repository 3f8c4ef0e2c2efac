# drive_relay/oauth/sqlite_credential_store.py
import sqlite3
import logging
from typing import Optional
from datetime import datetime, timezone

from .storage_interfaces import AbstractCredentialStore
from .models import Credential
from .codec import CredentialCodec
from ..errors import CredentialNotFoundError, StorageError
from ..storage.sqlite_base import SQLiteDatabase

logger = logging.getLogger(__name__)


class SQLiteCredentialStore(AbstractCredentialStore):
    """SQLite implementation for storing per-user Drive credentials."""

    def __init__(self, database: SQLiteDatabase, codec: CredentialCodec):
        self.database = database
        self.codec = codec

    async def initialize(self) -> None:
        """Ensure the connection and tables exist."""
        await self.database.get_connection()
        logger.info("SQLiteCredentialStore initialized (tables ensured by sqlite_base).")

    async def teardown(self) -> None:
        """Connection is owned by SQLiteDatabase, so nothing to release here."""
        logger.info("SQLiteCredentialStore teardown (connection managed by SQLiteDatabase).")

    async def _execute_query(self, query: str, params: tuple = ()) -> sqlite3.Cursor:
        """
        Execute a SQL query with transaction management.
        Commits on success, rolls back and raises StorageError on failure.
        """
        conn = await self.database.get_connection()
        cursor = conn.cursor()
        try:
            cursor.execute(query, params)
            conn.commit()
        except sqlite3.Error as e:
            logger.error(f"SQLite error executing credential query: {e}", exc_info=True)
            conn.rollback()
            raise StorageError(f"Credential store write failed: {e}") from e
        return cursor

    async def _fetchone(self, query: str, params: tuple = ()) -> Optional[sqlite3.Row]:
        conn = await self.database.get_connection()
        cursor = conn.cursor()
        try:
            cursor.execute(query, params)
            return cursor.fetchone()
        except sqlite3.Error as e:
            logger.error(f"SQLite error reading credential: {e}", exc_info=True)
            raise StorageError(f"Credential store read failed: {e}") from e

    async def get(self, user_id: str) -> Credential:
        row = await self._fetchone(
            "SELECT credential_data FROM user_credentials WHERE user_id = ?",
            (user_id,)
        )
        if not row:
            raise CredentialNotFoundError(user_id)
        return self.codec.decode(user_id, row["credential_data"])

    async def put(self, user_id: str, credential: Credential) -> None:
        """Save or replace the credential using an UPSERT."""
        query = '''
            INSERT INTO user_credentials (user_id, credential_data, updated_at)
            VALUES (?, ?, ?)
            ON CONFLICT(user_id) DO UPDATE SET
                credential_data=excluded.credential_data,
                updated_at=excluded.updated_at
        '''
        params = (user_id, self.codec.encode(credential), datetime.now(timezone.utc).isoformat())
        await self._execute_query(query, params)
        logger.info(f"Saved Drive credential for user {user_id}.")

    async def delete(self, user_id: str) -> None:
        cursor = await self._execute_query("DELETE FROM user_credentials WHERE user_id = ?", (user_id,))
        if cursor.rowcount == 0:
            raise CredentialNotFoundError(user_id)
        logger.info(f"Deleted Drive credential for user {user_id}.")
