# drive_relay/oauth/sqlite_state_store.py
import sqlite3
import logging
from datetime import datetime

from .storage_interfaces import AbstractCSRFStateStore
from .models import CSRFState
from ..errors import StateNotFoundError, StorageError
from ..storage.sqlite_base import SQLiteDatabase

logger = logging.getLogger(__name__)


class SQLiteCSRFStateStore(AbstractCSRFStateStore):
    """SQLite implementation of the OAuth handshake state store."""

    def __init__(self, database: SQLiteDatabase):
        self.database = database

    async def initialize(self) -> None:
        await self.database.get_connection()
        logger.info("SQLiteCSRFStateStore initialized.")

    async def teardown(self) -> None:
        logger.info("SQLiteCSRFStateStore teardown.")

    async def put(self, state: CSRFState) -> None:
        conn = await self.database.get_connection()
        try:
            conn.execute(
                "INSERT INTO oauth_states (nonce, user_id, created_at) VALUES (?, ?, ?)",
                (state.nonce, state.owner, state.created_at.isoformat())
            )
            conn.commit()
        except sqlite3.Error as e:
            logger.error(f"SQLite error saving OAuth state for user {state.owner}: {e}", exc_info=True)
            conn.rollback()
            raise StorageError(f"State store write failed: {e}") from e
        logger.info(f"Saved OAuth state for user {state.owner}.")

    async def consume(self, nonce: str) -> CSRFState:
        """
        Read and delete the state in one statement, so a nonce yields its
        owner at most once even when two callbacks race.
        """
        conn = await self.database.get_connection()
        try:
            row = conn.execute(
                "DELETE FROM oauth_states WHERE nonce = ? RETURNING nonce, user_id, created_at",
                (nonce,)
            ).fetchone()
            conn.commit()
        except sqlite3.Error as e:
            logger.error(f"SQLite error consuming OAuth state: {e}", exc_info=True)
            conn.rollback()
            raise StorageError(f"State store consume failed: {e}") from e
        if row is None:
            raise StateNotFoundError()
        return CSRFState(
            nonce=row["nonce"],
            owner=row["user_id"],
            created_at=datetime.fromisoformat(row["created_at"])
        )

    async def purge_stale(self, older_than: datetime) -> int:
        conn = await self.database.get_connection()
        try:
            cursor = conn.execute(
                "DELETE FROM oauth_states WHERE created_at < ?",
                (older_than.isoformat(),)
            )
            conn.commit()
        except sqlite3.Error as e:
            logger.error(f"SQLite error purging OAuth states: {e}", exc_info=True)
            conn.rollback()
            raise StorageError(f"State store purge failed: {e}") from e
        logger.info(f"Purged {cursor.rowcount} stale OAuth states created before {older_than.isoformat()}.")
        return cursor.rowcount
