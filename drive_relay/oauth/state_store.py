# drive_relay/oauth/state_store.py
import logging
from datetime import datetime
from typing import Optional

import redis.asyncio as aioredis
from redis.exceptions import RedisError

from ..settings import Settings
from ..errors import StateNotFoundError, StorageError
from ..storage.sqlite_base import SQLiteDatabase
from .storage_interfaces import AbstractCSRFStateStore
from .models import CSRFState
from .sqlite_state_store import SQLiteCSRFStateStore

logger = logging.getLogger(__name__)


class RedisCSRFStateStore(AbstractCSRFStateStore):
    """Redis implementation of the OAuth handshake state store. Redis TTL garbage-collects abandoned states."""

    def __init__(self, client: aioredis.Redis, ttl_seconds: int):
        self._redis_client = client
        self.ttl_seconds = ttl_seconds

    async def initialize(self) -> None:
        logger.info(f"RedisCSRFStateStore initialized. TTL: {self.ttl_seconds}s.")

    async def teardown(self) -> None:
        logger.info("RedisCSRFStateStore teardown (client managed by RelayContext).")

    def _get_key(self, nonce: str) -> str:
        return f"drive_relay:oauth_state:{nonce}"

    async def put(self, state: CSRFState) -> None:
        try:
            await self._redis_client.set(
                self._get_key(state.nonce),
                state.model_dump_json().encode("utf-8"),
                ex=self.ttl_seconds
            )
        except RedisError as e:
            logger.error(f"Redis error saving OAuth state for user {state.owner}: {e}")
            raise StorageError(f"State store write failed: {e}") from e
        logger.info(f"Saved Redis OAuth state for user {state.owner}.")

    async def consume(self, nonce: str) -> CSRFState:
        try:
            data_bytes = await self._redis_client.getdel(self._get_key(nonce))
        except RedisError as e:
            logger.error(f"Redis error consuming OAuth state: {e}")
            raise StorageError(f"State store consume failed: {e}") from e
        if not data_bytes:
            raise StateNotFoundError()
        return CSRFState.model_validate_json(data_bytes.decode("utf-8"))

    async def purge_stale(self, older_than: datetime) -> int:
        """Keys expire on their own; nothing to sweep."""
        logger.info("RedisCSRFStateStore: stale states expire via TTL, purge is a no-op.")
        return 0


async def build_state_store(
    settings: Settings,
    database: Optional[SQLiteDatabase] = None,
    redis_client: Optional[aioredis.Redis] = None,
) -> AbstractCSRFStateStore:
    """Return the state store implementation selected by `storage_backend`."""
    if settings.storage_backend == "sqlite":
        if database is None:
            raise ValueError("SQLite backend selected but no SQLiteDatabase was supplied.")
        logger.info("Using SQLiteCSRFStateStore for OAuth states.")
        store: AbstractCSRFStateStore = SQLiteCSRFStateStore(database)
    elif settings.storage_backend == "redis":
        if redis_client is None:
            raise ValueError("Redis backend selected but no Redis client was supplied.")
        logger.info("Using RedisCSRFStateStore for OAuth states.")
        store = RedisCSRFStateStore(redis_client, settings.oauth_state_ttl_seconds)
    else:
        raise ValueError(f"Unsupported storage_backend for OAuth states: {settings.storage_backend}")
    await store.initialize()
    return store
