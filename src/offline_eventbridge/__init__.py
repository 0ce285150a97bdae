"""
Local emulation of Amazon EventBridge for serverless services.

Entries submitted through a PutEvents-compatible endpoint are broadcast to every
emulator process and delivered to the handlers whose event patterns match;
``schedule`` triggers fire on cron.
"""

from offline_eventbridge.plugin import OfflineEventBridge

__version__ = "1.0.0"

__all__ = [
    "OfflineEventBridge",
    "__version__",
]
