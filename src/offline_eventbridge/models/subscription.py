"""
Subscription models: handler bindings derived once from the function registry.
"""

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Mapping, Optional, Tuple

from offline_eventbridge.models.pattern import FilterPattern


@dataclass(frozen=True)
class CompiledEventPattern:
    """
    Parsed form of an ``eventBridge.pattern`` block.

    ``detail`` holds the flattened detail pattern as ``(dot.path, pattern)``
    pairs; ``None`` means the dimension is not constrained.
    """

    source: Optional[FilterPattern] = None
    detail_type: Optional[FilterPattern] = None
    detail: Optional[Tuple[Tuple[str, FilterPattern], ...]] = None


@dataclass(frozen=True)
class Subscriber:
    """A (handler, filter) binding."""

    function_key: str
    event: Mapping[str, Any] = field(default_factory=lambda: MappingProxyType({}))
    pattern: Optional[CompiledEventPattern] = None

    @property
    def event_bus(self) -> Any:
        return self.event.get('eventBus')


@dataclass(frozen=True)
class ScheduledEvent:
    """A time-triggered binding; independent of entry matching."""

    # RecurringTrigger from logic.schedule_translator
    schedule: Any
    event: Mapping[str, Any]
    function_key: str


@dataclass(frozen=True)
class SubscriptionRegistry:
    """Immutable set of subscribers and scheduled events built at startup."""

    subscribers: Tuple[Subscriber, ...] = ()
    scheduled_events: Tuple[ScheduledEvent, ...] = ()
