"""
Runtime for scheduled (time-triggered) functions.

Each accepted ScheduledEvent becomes an APScheduler cron job. On every firing a
synthetic entry is built and handed straight to the dispatcher's invocation
path; schedules are unconditional, so no pattern evaluation takes place.
"""

import json
from typing import Optional, Sequence

from apscheduler.schedulers.asyncio import AsyncIOScheduler

from offline_eventbridge.handlers.utils.observability import logger
from offline_eventbridge.logic.dispatcher import Dispatcher
from offline_eventbridge.models.entry import EventEntry
from offline_eventbridge.models.subscription import ScheduledEvent

SUBSYSTEM = 'scheduler'

# runs of one job may overlap while earlier firings are still retrying
MAX_OVERLAPPING_RUNS = 64


def scheduled_entry(function_key: str) -> EventEntry:
    """Synthetic entry delivered to a scheduled function."""
    name = f'Scheduled function {function_key}'
    return EventEntry(source=name, resources=[], detail=json.dumps({'name': name}))


class ScheduleRunner:
    """Owns the cron jobs of all scheduled events."""

    def __init__(
        self,
        scheduled_events: Sequence[ScheduledEvent],
        dispatcher: Dispatcher,
        timezone: str = 'UTC',
    ) -> None:
        self._scheduled_events = tuple(scheduled_events)
        self._dispatcher = dispatcher
        self._timezone = timezone
        self._scheduler: Optional[AsyncIOScheduler] = None

    @property
    def running(self) -> bool:
        return self._scheduler is not None and self._scheduler.running

    def start(self) -> None:
        """Register one job per scheduled event and start the scheduler."""
        if self._scheduler is not None or not self._scheduled_events:
            return

        self._scheduler = AsyncIOScheduler(timezone=self._timezone)
        for index, scheduled_event in enumerate(self._scheduled_events):
            self._scheduler.add_job(
                self.trigger,
                scheduled_event.schedule.to_trigger(self._timezone),
                args=[scheduled_event],
                id=f'{scheduled_event.function_key}-{index}',
                replace_existing=True,
                max_instances=MAX_OVERLAPPING_RUNS,
            )
        self._scheduler.start()
        logger.info(
            f'Schedule runner started with {len(self._scheduled_events)} job(s)',
            extra={'subsystem': SUBSYSTEM}
        )

    def stop(self) -> None:
        if self._scheduler is None:
            return
        if self._scheduler.running:
            self._scheduler.shutdown(wait=False)
        self._scheduler = None

    async def trigger(self, scheduled_event: ScheduledEvent) -> None:
        """Fire one scheduled event; a terminal failure is logged, not raised."""
        function_key = scheduled_event.function_key
        logger.debug(
            f'run scheduled function {function_key}',
            extra={'subsystem': SUBSYSTEM, 'function_key': function_key}
        )
        try:
            await self._dispatcher.invoke(function_key, scheduled_entry(function_key))
        except Exception as exc:
            logger.error(
                f'Scheduled function {function_key} failed after retries',
                extra={'subsystem': SUBSYSTEM, 'function_key': function_key, 'error': str(exc)}
            )
