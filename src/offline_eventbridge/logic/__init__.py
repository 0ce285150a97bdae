"""
Routing and delivery logic.

- pattern_matcher: content-based filtering
- bus_registry: bus reference resolution
- schedule_translator: rate/cron expressions to crontab triggers
- dispatcher: fan-out with fixed-delay retries
- scheduler: cron runtime for scheduled functions
"""

from offline_eventbridge.logic.bus_registry import BusRegistry
from offline_eventbridge.logic.dispatcher import Dispatcher, InvocationResult, PendingInvocation
from offline_eventbridge.logic.event_converter import EventConverter
from offline_eventbridge.logic.pattern_matcher import UnsupportedFilterOperatorError, flatten_object, matches
from offline_eventbridge.logic.retry_policy import RetryPolicy
from offline_eventbridge.logic.schedule_translator import RecurringTrigger, translate
from offline_eventbridge.logic.scheduler import ScheduleRunner
from offline_eventbridge.logic.subscriptions import build_subscription_registry

__all__ = [
    "BusRegistry",
    "Dispatcher",
    "InvocationResult",
    "PendingInvocation",
    "EventConverter",
    "UnsupportedFilterOperatorError",
    "flatten_object",
    "matches",
    "RetryPolicy",
    "RecurringTrigger",
    "translate",
    "ScheduleRunner",
    "build_subscription_registry",
]
