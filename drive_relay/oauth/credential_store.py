# drive_relay/oauth/credential_store.py
import logging
from typing import Optional

import redis.asyncio as aioredis
from redis.exceptions import RedisError

from ..settings import Settings
from ..errors import CredentialNotFoundError, StorageError
from ..storage.sqlite_base import SQLiteDatabase
from .storage_interfaces import AbstractCredentialStore
from .models import Credential
from .codec import CredentialCodec
from .sqlite_credential_store import SQLiteCredentialStore

logger = logging.getLogger(__name__)


class RedisCredentialStore(AbstractCredentialStore):
    """Redis implementation for storing per-user Drive credentials. Credentials never expire here."""

    def __init__(self, client: aioredis.Redis, codec: CredentialCodec):
        self._redis_client = client
        self.codec = codec

    async def initialize(self) -> None:
        logger.info("RedisCredentialStore initialized.")

    async def teardown(self) -> None:
        """The client is shared with the state store and closed by the context."""
        logger.info("RedisCredentialStore teardown (client managed by RelayContext).")

    def _get_key(self, user_id: str) -> str:
        return f"drive_relay:credential:{user_id}"

    async def get(self, user_id: str) -> Credential:
        try:
            data_bytes = await self._redis_client.get(self._get_key(user_id))
        except RedisError as e:
            logger.error(f"Redis error reading credential for user {user_id}: {e}")
            raise StorageError(f"Credential store read failed: {e}") from e
        if not data_bytes:
            raise CredentialNotFoundError(user_id)
        return self.codec.decode(user_id, data_bytes.decode("utf-8"))

    async def put(self, user_id: str, credential: Credential) -> None:
        try:
            await self._redis_client.set(self._get_key(user_id), self.codec.encode(credential).encode("utf-8"))
        except RedisError as e:
            logger.error(f"Redis error saving credential for user {user_id}: {e}")
            raise StorageError(f"Credential store write failed: {e}") from e
        logger.info(f"Saved Redis Drive credential for user {user_id}.")

    async def delete(self, user_id: str) -> None:
        try:
            removed = await self._redis_client.delete(self._get_key(user_id))
        except RedisError as e:
            logger.error(f"Redis error deleting credential for user {user_id}: {e}")
            raise StorageError(f"Credential store delete failed: {e}") from e
        if not removed:
            raise CredentialNotFoundError(user_id)
        logger.info(f"Deleted Redis Drive credential for user {user_id}.")


async def build_credential_store(
    settings: Settings,
    codec: CredentialCodec,
    database: Optional[SQLiteDatabase] = None,
    redis_client: Optional[aioredis.Redis] = None,
) -> AbstractCredentialStore:
    """Return the credential store implementation selected by `storage_backend`."""
    if settings.storage_backend == "sqlite":
        if database is None:
            raise ValueError("SQLite backend selected but no SQLiteDatabase was supplied.")
        logger.info("Using SQLiteCredentialStore for Drive credentials.")
        store: AbstractCredentialStore = SQLiteCredentialStore(database, codec)
    elif settings.storage_backend == "redis":
        if redis_client is None:
            raise ValueError("Redis backend selected but no Redis client was supplied.")
        logger.info("Using RedisCredentialStore for Drive credentials.")
        store = RedisCredentialStore(redis_client, codec)
    else:
        raise ValueError(f"Unsupported storage_backend for credentials: {settings.storage_backend}")
    await store.initialize()
    return store
