# drive_relay/main.py
from fastapi import FastAPI, Depends, Header, HTTPException, Request, status
from contextlib import asynccontextmanager
from typing import Annotated, Optional
import logging

from .settings import Settings, log_settings_summary
from .context import RelayContext, build_context
from .dependencies import get_relay_context
from .oauth.endpoints import oauth_router
from .line.webhook import InvalidWebhookBodyError, parse_webhook_body
from .utils.security import verify_line_signature

logger = logging.getLogger(__name__)


def create_app(settings: Optional[Settings] = None, context: Optional[RelayContext] = None) -> FastAPI:
    """
    Build the ASGI application.

    When `context` is supplied it is used as is and not closed on shutdown;
    otherwise one is built from `settings` during startup.
    """
    settings = settings or (context.settings if context else Settings())

    if not logging.getLogger().hasHandlers():
        logging.basicConfig(
            level=settings.effective_log_level,
            format='%(asctime)s - %(name)s [%(levelname)s] - %(message)s'
        )

    @asynccontextmanager
    async def relay_lifespan(app_instance: FastAPI):
        logger.info("Application startup initiated.")
        log_settings_summary(settings)
        if context is not None:
            yield
            return

        try:
            relay_context = await build_context(settings)
        except Exception as e:
            logger.error(f"Error during storage backend initialization: {e}", exc_info=True)
            raise
        app_instance.state.relay_context = relay_context
        logger.info("Application startup complete.")
        try:
            yield
        finally:
            logger.info("Application shutdown initiated.")
            await relay_context.close()
            logger.info("Application shutdown complete.")

    app = FastAPI(title=settings.app_name, lifespan=relay_lifespan)
    if context is not None:
        app.state.relay_context = context
    app.include_router(oauth_router)

    @app.post("/", name="line_webhook")
    async def line_webhook(
        request: Request,
        relay_context: Annotated[RelayContext, Depends(get_relay_context)],
        x_line_signature: Annotated[Optional[str], Header()] = None,
    ):
        """Receive a LINE webhook delivery and handle its events in order."""
        body = await request.body()
        channel_secret = relay_context.settings.line_channel_secret
        if channel_secret:
            if not verify_line_signature(channel_secret, body, x_line_signature):
                logger.warning("Rejected webhook delivery with an invalid X-Line-Signature.")
                raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid signature.")
        else:
            logger.warning("LINE_CHANNEL_SECRET is not set; accepting webhook without signature verification.")

        try:
            events = parse_webhook_body(body)
        except InvalidWebhookBodyError as e:
            logger.warning(f"Rejected malformed webhook delivery: {e}")
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Malformed webhook body.")

        logger.debug(f"Webhook delivery with {len(events)} event(s).")
        await relay_context.event_router.dispatch(events)
        return {"status": "ok"}

    @app.get("/healthz", name="healthz")
    async def healthz():
        return {"status": "ok"}

    return app


app = create_app()
