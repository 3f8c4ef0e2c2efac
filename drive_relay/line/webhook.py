# drive_relay/line/webhook.py
import json
import logging
from typing import List

from pydantic import ValidationError

from .events import WebhookEvent, parse_event

logger = logging.getLogger(__name__)


class InvalidWebhookBodyError(ValueError):
    """The delivery body is not a LINE webhook payload."""


def parse_webhook_body(body: bytes) -> List[WebhookEvent]:
    """
    Parse a verified webhook delivery into typed events.

    Malformed individual events are logged and dropped so the rest of the
    batch is still handled.

    Raises:
        InvalidWebhookBodyError: If the body is not JSON with an `events` list
    """
    try:
        payload = json.loads(body)
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise InvalidWebhookBodyError(f"Webhook body is not valid JSON: {e}") from e
    if not isinstance(payload, dict) or not isinstance(payload.get("events"), list):
        raise InvalidWebhookBodyError("Webhook body has no 'events' list.")

    events: List[WebhookEvent] = []
    for raw_event in payload["events"]:
        if not isinstance(raw_event, dict):
            logger.warning(f"Skipping non-object webhook event: {raw_event!r}")
            continue
        try:
            events.append(parse_event(raw_event))
        except ValidationError as e:
            logger.warning(f"Skipping malformed '{raw_event.get('type')}' event: {e.errors()}")
    return events
