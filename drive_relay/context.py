# drive_relay/context.py
import logging
from typing import Optional

import httpx
import redis.asyncio as aioredis

from .settings import Settings
from .hooks import RichMenuSync, TransitionHooks
from .storage.sqlite_base import SQLiteDatabase
from .storage.redis_base import create_redis_client
from .utils.security import FernetEncryptor
from .oauth.codec import CredentialCodec
from .oauth.credential_store import build_credential_store
from .oauth.state_store import build_state_store
from .oauth.storage_interfaces import AbstractCredentialStore, AbstractCSRFStateStore
from .oauth.google_client import GoogleOAuthClient
from .oauth.flow import AuthorizationFlow
from .drive.session import DriveSessionFactory
from .drive.provisioner import FolderProvisioner
from .drive.uploader import UploadOrchestrator
from .line.messaging import LineMessagingClient
from .bot.router import EventRouter

logger = logging.getLogger(__name__)


class RelayContext:
    """
    Every long-lived component of the relay, built once at startup and
    passed to whatever needs it.
    """

    def __init__(
        self,
        settings: Settings,
        http_client: httpx.AsyncClient,
        credential_store: AbstractCredentialStore,
        state_store: AbstractCSRFStateStore,
        database: Optional[SQLiteDatabase] = None,
        redis_client: Optional[aioredis.Redis] = None,
        owns_http_client: bool = True,
    ):
        self.settings = settings
        self.http_client = http_client
        self.credential_store = credential_store
        self.state_store = state_store
        self.database = database
        self.redis_client = redis_client
        self._owns_http_client = owns_http_client

        self.oauth_client = GoogleOAuthClient(
            http_client,
            client_id=settings.google_client_id,
            client_secret=settings.google_client_secret,
            redirect_url=settings.google_redirect_url,
            scopes=settings.google_scopes,
        )
        self.line_client = LineMessagingClient(http_client, settings.line_channel_access_token)
        self.rich_menu_sync = RichMenuSync(
            self.line_client,
            connected_menu_id=settings.line_rich_menu_connected_id,
            disconnected_menu_id=settings.line_rich_menu_disconnected_id,
        )
        self.hooks = TransitionHooks([self.rich_menu_sync])
        self.authorization_flow = AuthorizationFlow(
            self.oauth_client, state_store, credential_store, self.hooks
        )
        self.session_factory = DriveSessionFactory(http_client, credential_store, self.oauth_client)
        self.uploader = UploadOrchestrator(
            FolderProvisioner(),
            root_folder_name=settings.drive_root_folder_name,
            folder_timezone=settings.folder_timezone,
        )
        self.event_router = EventRouter(
            line_client=self.line_client,
            authorization_flow=self.authorization_flow,
            session_factory=self.session_factory,
            uploader=self.uploader,
            rich_menu_sync=self.rich_menu_sync,
            recent_files_limit=settings.recent_files_limit,
        )

    async def close(self) -> None:
        """Release stores, connections and the HTTP client. Errors are logged so every resource gets a chance to close."""
        for store in (self.credential_store, self.state_store):
            try:
                await store.teardown()
            except Exception as e:
                logger.error(f"Error during teardown of store {type(store).__name__}: {e}", exc_info=True)

        if self.database is not None:
            await self.database.close()
        if self.redis_client is not None:
            try:
                await self.redis_client.aclose()
                logger.info("Redis client closed.")
            except Exception as e:
                logger.error(f"Error closing Redis client: {e}", exc_info=True)
        if self._owns_http_client:
            await self.http_client.aclose()
        logger.info("RelayContext closed.")


async def build_context(
    settings: Settings,
    http_client: Optional[httpx.AsyncClient] = None,
) -> RelayContext:
    """
    Connect the configured storage backend and assemble a RelayContext.

    A caller-supplied `http_client` is used as is and left open on close.

    Raises:
        ValueError: For an unsupported `storage_backend`
        sqlite3.Error / redis.RedisError: If the backend cannot be reached
    """
    database: Optional[SQLiteDatabase] = None
    redis_client: Optional[aioredis.Redis] = None

    if settings.storage_backend == "sqlite":
        database = SQLiteDatabase(settings.sqlite_db_path)
        await database.get_connection()
        logger.info("SQLite backend selected and connection initialized.")
    elif settings.storage_backend == "redis":
        redis_client = await create_redis_client(settings)
        logger.info("Redis backend selected and client connected.")
    else:
        raise ValueError(f"Unsupported storage_backend: {settings.storage_backend}")

    codec = CredentialCodec(FernetEncryptor(settings.encryption_key))
    credential_store = await build_credential_store(settings, codec, database=database, redis_client=redis_client)
    state_store = await build_state_store(settings, database=database, redis_client=redis_client)

    owns_http_client = http_client is None
    if http_client is None:
        http_client = httpx.AsyncClient(timeout=settings.http_timeout_seconds)

    context = RelayContext(
        settings,
        http_client,
        credential_store,
        state_store,
        database=database,
        redis_client=redis_client,
        owns_http_client=owns_http_client,
    )
    logger.info("RelayContext initialized.")
    return context
