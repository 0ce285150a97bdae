"""
Subscription registry construction from the declared functions.

Each ``eventBridge`` trigger becomes either a Subscriber (pattern and/or bus
constraint) or a ScheduledEvent (``schedule`` expression). The registry is
built once and never mutated.
"""

from types import MappingProxyType
from typing import List

from offline_eventbridge.handlers.utils.observability import logger
from offline_eventbridge.logic.pattern_matcher import InvalidEventPatternError, compile_event_pattern
from offline_eventbridge.logic.schedule_translator import translate
from offline_eventbridge.models.service_definition import ServiceDefinition
from offline_eventbridge.models.subscription import ScheduledEvent, Subscriber, SubscriptionRegistry

SUBSYSTEM = 'subscriptions'


def build_subscription_registry(service: ServiceDefinition) -> SubscriptionRegistry:
    """
    Enumerate every declared function and collect its EventBridge triggers.

    Schedules that cannot be translated and malformed patterns are dropped
    with a warning.
    """
    subscribers: List[Subscriber] = []
    scheduled_events: List[ScheduledEvent] = []

    for function_key in service.get_all_functions():
        definition = service.get_function(function_key)

        for trigger in definition.event_bridge_triggers():
            event = MappingProxyType(dict(trigger))

            if not trigger.get('schedule'):
                try:
                    pattern = compile_event_pattern(trigger.get('pattern'))
                except InvalidEventPatternError as exc:
                    logger.warning(
                        f"Invalid event pattern for '{function_key}', will not subscribe",
                        extra={'subsystem': SUBSYSTEM, 'function_key': function_key, 'error': str(exc)}
                    )
                    continue
                subscribers.append(Subscriber(function_key=function_key, event=event, pattern=pattern))
                continue

            schedule = translate(trigger['schedule'])
            if schedule is None:
                logger.warning(
                    f"Invalid schedule syntax '{trigger['schedule']}', will not schedule",
                    extra={'subsystem': SUBSYSTEM, 'function_key': function_key}
                )
                continue

            scheduled_events.append(ScheduledEvent(schedule=schedule, event=event, function_key=function_key))
            logger.info(
                f"Scheduled '{function_key}' with syntax {schedule.expression}",
                extra={'subsystem': SUBSYSTEM, 'function_key': function_key}
            )

    logger.debug(
        'Subscription registry built',
        extra={
            'subsystem': SUBSYSTEM,
            'subscribers': len(subscribers),
            'scheduled_events': len(scheduled_events),
        }
    )
    return SubscriptionRegistry(subscribers=tuple(subscribers), scheduled_events=tuple(scheduled_events))
