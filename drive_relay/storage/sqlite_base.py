# drive_relay/storage/sqlite_base.py
import sqlite3
import logging
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)


class SQLiteDatabase:
    """
    Owns the single SQLite connection shared by the SQLite-backed stores.

    The connection is opened lazily on first use, and the schema is created
    at that point if it does not exist yet.
    """

    def __init__(self, db_path: str):
        self.db_path = db_path
        self._connection: Optional[sqlite3.Connection] = None

    async def get_connection(self) -> sqlite3.Connection:
        """
        Get or create the database connection.

        Raises:
            sqlite3.Error: If database connection fails
        """
        if self._connection is None:
            try:
                db_path = Path(self.db_path).resolve()
                db_path.parent.mkdir(parents=True, exist_ok=True)

                logger.info(f"Attempting to connect to SQLite DB at: {db_path}")

                # Enable thread-safe access for async/FastAPI compatibility
                connection = sqlite3.connect(str(db_path), check_same_thread=False)
                connection.row_factory = sqlite3.Row
                init_sqlite_db(connection)
                self._connection = connection

                logger.info(f"Successfully connected to SQLite DB: {db_path}")
            except sqlite3.Error as e:
                logger.error(f"Error connecting to SQLite database at {self.db_path}: {e}", exc_info=True)
                raise
        return self._connection

    async def close(self) -> None:
        """Close the connection. Safe to call more than once."""
        if self._connection is not None:
            logger.info("Closing SQLite DB connection.")
            self._connection.close()
            self._connection = None


def init_sqlite_db(conn: sqlite3.Connection) -> None:
    """
    Create the relay tables. Uses IF NOT EXISTS so repeated calls are harmless.
    """
    cursor = conn.cursor()

    # One Drive credential per chat user
    cursor.execute('''
    CREATE TABLE IF NOT EXISTS user_credentials (
        user_id TEXT PRIMARY KEY,
        credential_data TEXT NOT NULL,
        updated_at TEXT NOT NULL
    )
    ''')
    logger.debug("Ensured 'user_credentials' table exists.")

    # Single-use OAuth handshake nonces
    cursor.execute('''
    CREATE TABLE IF NOT EXISTS oauth_states (
        nonce TEXT PRIMARY KEY,
        user_id TEXT NOT NULL,
        created_at TEXT NOT NULL
    )
    ''')
    logger.debug("Ensured 'oauth_states' table exists.")

    conn.commit()
    logger.info("SQLite database schema initialized/verified.")
