# drive_relay/dependencies.py
import logging
from fastapi import HTTPException, Request, status

from .context import RelayContext

logger = logging.getLogger(__name__)


async def get_relay_context(request: Request) -> RelayContext:
    """
    The RelayContext built by the application lifespan.

    Raises HTTPException 503 if requests arrive before startup finished.
    """
    context = getattr(request.app.state, "relay_context", None)
    if context is None:
        logger.critical("RelayContext is not initialized on app.state. Was the lifespan run?")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Service is starting up or misconfigured.",
        )
    return context
