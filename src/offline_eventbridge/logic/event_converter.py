"""
Conversion of PutEvents entries into delivered EventBridge events.
"""

import json
from typing import Any, Dict

from offline_eventbridge.handlers.utils.observability import logger
from offline_eventbridge.models.entry import Event, EventEntry, new_event_id

SUBSYSTEM = 'event-converter'


class EventConverter:
    """Builds handler payloads stamped with the configured account and region."""

    def __init__(self, account: str = '', region: str = 'us-east-1') -> None:
        self.account = account
        self.region = region

    def convert(self, entry: EventEntry) -> Dict[str, Any]:
        """
        Convert ``entry`` into an event payload.

        If the detail cannot be parsed the raw entry is delivered instead,
        annotated with a synthetic ``id``; this method never raises.
        """
        try:
            detail = entry.detail if isinstance(entry.detail, dict) else json.loads(entry.detail)
            event = Event(
                id=new_event_id(),
                source=entry.source,
                account=self.account,
                region=self.region,
                resources=entry.resources or [],
                detail=detail,
                detail_type=entry.detail_type,
            )
            return event.to_payload()
        except (TypeError, ValueError) as exc:
            logger.warning(
                f'error converting entry to event: {exc}. returning entry instead',
                extra={'subsystem': SUBSYSTEM, 'error': str(exc)}
            )
            return {**entry.as_container(), 'id': new_event_id()}
