# drive_relay/oauth/endpoints.py
import logging
from typing import Annotated, Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import HTMLResponse

from ..context import RelayContext
from ..dependencies import get_relay_context
from ..errors import ExchangeFailedError, StateNotFoundError

logger = logging.getLogger(__name__)
oauth_router = APIRouter()

_STATE_INVALID_HTML = (
    "<h1>Error</h1><p>This authorization link is invalid or has expired. "
    "Please send /connect_drive to the bot again.</p>"
)


@oauth_router.get("/oauth/callback", name="oauth_callback", response_class=HTMLResponse)
async def oauth_callback(
    context: Annotated[RelayContext, Depends(get_relay_context)],
    state: Annotated[Optional[str], Query()] = None,
    code: Annotated[Optional[str], Query()] = None,
    error: Annotated[Optional[str], Query()] = None,
):
    """
    Google redirects here after the consent screen.

    Unknown, expired and replayed states all get the same answer so the
    caller cannot tell them apart.
    """
    logger.info(
        f"OAuth callback received. Code: {'SET' if code else 'NOT_SET'}, "
        f"State: {'SET' if state else 'NOT_SET'}, Error: {error}"
    )
    flow = context.authorization_flow

    if error:
        try:
            await flow.abandon_authorization(state or "")
        except StateNotFoundError:
            logger.info("OAuth error callback carried an unknown or already used state.")
        except Exception as e:
            logger.error(f"Failed to discard OAuth state after provider error: {e}", exc_info=True)
        return HTMLResponse(
            "<h1>Authorization Cancelled</h1><p>Google Drive was not connected. "
            "You can close this window and try again from the chat.</p>",
            status_code=400
        )

    if not code:
        logger.warning("OAuth callback is missing the authorization code.")
        return HTMLResponse("<h1>Error</h1><p>Missing authorization code.</p>", status_code=400)

    try:
        user_id = await flow.complete_authorization(state or "", code)
    except StateNotFoundError:
        logger.info("OAuth callback rejected: state not found.")
        return HTMLResponse(_STATE_INVALID_HTML, status_code=400)
    except ExchangeFailedError as e:
        logger.error(f"Token exchange failed during OAuth callback: {e}")
        return HTMLResponse(
            "<h1>Error</h1><p>Google did not accept the authorization. Please try again.</p>",
            status_code=502
        )
    except Exception as e:
        logger.error(f"Failed to complete Drive authorization: {e}", exc_info=True)
        return HTMLResponse(
            "<h1>Error</h1><p>Your Google Drive connection could not be saved. Please try again later.</p>",
            status_code=500
        )

    logger.info(f"Drive authorization completed for user {user_id}.")
    return HTMLResponse(
        "<h1>Authentication Successful!</h1><p>Your Google Drive is now connected. "
        "You can close this window and return to LINE.</p>"
    )
