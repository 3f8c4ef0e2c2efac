# drive_relay/hooks.py
import enum
import logging
from typing import Awaitable, Callable, List, Optional

from .line.messaging import LineMessagingClient

logger = logging.getLogger(__name__)


class ConnectionState(str, enum.Enum):
    """Derived from the credential store on demand, never cached."""
    CONNECTED = "connected"
    DISCONNECTED = "disconnected"


PostTransitionHook = Callable[[str, ConnectionState], Awaitable[None]]


class TransitionHooks:
    """
    Side effects run after a connect or disconnect has been committed.

    Each hook runs independently; a failing hook is logged and never undoes
    or aborts the transition that triggered it.
    """

    def __init__(self, hooks: Optional[List[PostTransitionHook]] = None):
        self._hooks: List[PostTransitionHook] = list(hooks or [])

    def register(self, hook: PostTransitionHook) -> None:
        self._hooks.append(hook)

    async def fire(self, user_id: str, state: ConnectionState) -> None:
        for hook in self._hooks:
            name = getattr(hook, "__name__", type(hook).__name__)
            try:
                await hook(user_id, state)
            except Exception as e:
                logger.warning(f"Post-transition hook '{name}' failed for user {user_id} ({state.value}): {e}")


class RichMenuSync:
    """Links the rich menu matching a user's connection state."""

    def __init__(
        self,
        line_client: LineMessagingClient,
        connected_menu_id: Optional[str],
        disconnected_menu_id: Optional[str],
    ):
        self.line_client = line_client
        self.menu_ids = {
            ConnectionState.CONNECTED: connected_menu_id,
            ConnectionState.DISCONNECTED: disconnected_menu_id,
        }

    async def __call__(self, user_id: str, state: ConnectionState) -> None:
        menu_id = self.menu_ids.get(state)
        if not menu_id:
            logger.debug(f"No rich menu configured for state '{state.value}', skipping link for user {user_id}.")
            return
        await self.line_client.link_rich_menu(user_id, menu_id)
