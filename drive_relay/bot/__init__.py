# drive_relay/bot/__init__.py

"""Webhook event dispatch and chat commands."""

from .router import EventRouter, upload_filename

__all__ = ["EventRouter", "upload_filename"]
