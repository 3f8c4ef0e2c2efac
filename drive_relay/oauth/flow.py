# drive_relay/oauth/flow.py
import logging

from .google_client import GoogleOAuthClient
from .models import CSRFState, generate_state_nonce
from .storage_interfaces import AbstractCredentialStore, AbstractCSRFStateStore
from ..errors import CredentialNotFoundError, CriticalInconsistencyError, StateNotFoundError
from ..hooks import ConnectionState, TransitionHooks

logger = logging.getLogger(__name__)


class AuthorizationFlow:
    """
    Drives the Google OAuth handshake and the credential lifecycle for chat users.

    A handshake starts with `begin_authorization`, which binds a fresh nonce
    to the user, and ends with `complete_authorization` on the callback,
    which consumes that nonce exactly once. `revoke` and `reconnect` undo a
    connection. Rich menu updates and other side effects run through
    `TransitionHooks` after the state change is committed.
    """

    def __init__(
        self,
        oauth_client: GoogleOAuthClient,
        state_store: AbstractCSRFStateStore,
        credential_store: AbstractCredentialStore,
        hooks: TransitionHooks,
    ):
        self.oauth_client = oauth_client
        self.state_store = state_store
        self.credential_store = credential_store
        self.hooks = hooks

    async def begin_authorization(self, user_id: str) -> str:
        """
        Issue a consent URL for `user_id`.

        Raises:
            StorageError: If the state could not be saved. Not retried.
        """
        state = CSRFState(nonce=generate_state_nonce(), owner=user_id)
        await self.state_store.put(state)
        logger.info(f"Started Drive authorization for user {user_id}.")
        return self.oauth_client.authorization_url(state.nonce)

    async def complete_authorization(self, nonce: str, code: str) -> str:
        """
        Finish a handshake and return the user it belonged to.

        Raises:
            StateNotFoundError: Unknown, expired or already used nonce
            ExchangeFailedError: Google rejected the code
            StorageError: The credential could not be saved
        """
        if not nonce:
            raise StateNotFoundError()
        state = await self.state_store.consume(nonce)
        user_id = state.owner

        credential = await self.oauth_client.exchange_code(code)
        await self.credential_store.put(user_id, credential)
        logger.info(f"Successfully saved Drive credential for user {user_id}.")

        await self.hooks.fire(user_id, ConnectionState.CONNECTED)
        return user_id

    async def abandon_authorization(self, nonce: str) -> str:
        """
        Consume a nonce whose handshake the user declined, so it cannot be reused.

        Raises:
            StateNotFoundError: Unknown, expired or already used nonce
        """
        if not nonce:
            raise StateNotFoundError()
        state = await self.state_store.consume(nonce)
        logger.info(f"User {state.owner} declined Drive authorization.")
        return state.owner

    async def revoke(self, user_id: str) -> None:
        """
        Disconnect a user's Drive.

        The remote revoke is best effort; the local credential is deleted
        whatever Google answers.

        Raises:
            CredentialNotFoundError: Nothing to revoke
            CriticalInconsistencyError: The local credential could not be deleted
        """
        credential = await self.credential_store.get(user_id)

        if not await self.oauth_client.revoke(credential.revocation_token()):
            logger.warning(f"Google revocation failed for user {user_id}; deleting local credential anyway.")

        try:
            await self.credential_store.delete(user_id)
        except CredentialNotFoundError:
            logger.info(f"Credential for user {user_id} was already gone at delete time.")
        except Exception as e:
            logger.critical(
                f"CRITICAL: Failed to delete credential for user {user_id} after revocation attempt: {e}",
                exc_info=True
            )
            raise CriticalInconsistencyError(
                f"Credential for user '{user_id}' could not be deleted after revocation."
            ) from e

        logger.info(f"Successfully revoked and/or deleted credential for user {user_id}.")
        await self.hooks.fire(user_id, ConnectionState.DISCONNECTED)

    async def reconnect(self, user_id: str) -> str:
        """
        Drop any existing connection and start a new handshake.

        Revocation problems are logged and do not stop the new handshake.

        Raises:
            StorageError: If the new state could not be saved
        """
        try:
            await self.revoke(user_id)
        except CredentialNotFoundError:
            pass
        except Exception as e:
            logger.error(f"Error during credential revocation in reconnect for user {user_id}: {e}")
        return await self.begin_authorization(user_id)

    async def connection_state(self, user_id: str) -> ConnectionState:
        if await self.credential_store.exists(user_id):
            return ConnectionState.CONNECTED
        return ConnectionState.DISCONNECTED
