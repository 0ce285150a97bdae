"""
Data models for the offline EventBridge emulator.
"""

from offline_eventbridge.models.config import PluginConfig
from offline_eventbridge.models.entry import Event, EventEntry
from offline_eventbridge.models.output import ErrorOutput, PutEventsResponse
from offline_eventbridge.models.service_definition import FunctionDefinition, ServiceDefinition
from offline_eventbridge.models.subscription import ScheduledEvent, Subscriber, SubscriptionRegistry

__all__ = [
    "PluginConfig",
    "Event",
    "EventEntry",
    "ErrorOutput",
    "PutEventsResponse",
    "FunctionDefinition",
    "ServiceDefinition",
    "ScheduledEvent",
    "Subscriber",
    "SubscriptionRegistry",
]
