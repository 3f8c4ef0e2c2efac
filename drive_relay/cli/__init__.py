# drive_relay/cli/__init__.py
