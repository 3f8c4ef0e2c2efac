# drive_relay/__init__.py

"""LINE bot that relays chat media into the sender's Google Drive."""

__version__ = "0.1.0"
