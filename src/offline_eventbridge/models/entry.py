"""
Entry and event models for the routing engine.

An ``EventEntry`` is what a client submits through PutEvents; an ``Event`` is
the enriched, delivery-ready document a handler receives.
"""

from datetime import datetime, timezone
from typing import Annotated, Any, Dict, List, Optional
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field


def new_event_id() -> str:
    """Generate a synthetic event id."""
    return str(uuid4())


def utc_timestamp() -> str:
    """Current time in the format EventBridge uses for ``time``."""
    return datetime.now(timezone.utc).strftime('%Y-%m-%dT%H:%M:%SZ')


class EventEntry(BaseModel):
    """One PutEvents request entry."""

    model_config = ConfigDict(populate_by_name=True, extra='allow')

    source: Annotated[Optional[str], Field(
        default=None,
        alias='Source',
        description='Event source, e.g. svc.orders'
    )] = None

    detail_type: Annotated[Optional[str], Field(
        default=None,
        alias='DetailType',
        description='Free-form event type'
    )] = None

    # JSON-encoded on the wire; a mapping is tolerated for local callers
    detail: Annotated[Optional[Any], Field(
        default=None,
        alias='Detail',
        description='JSON-encoded event body'
    )] = None

    resources: Annotated[Optional[List[str]], Field(
        default=None,
        alias='Resources',
        description='ARNs of resources the event concerns'
    )] = None

    event_bus_name: Annotated[Optional[str], Field(
        default=None,
        alias='EventBusName',
        description='Name or ARN of the target bus'
    )] = None

    def as_container(self) -> Dict[str, Any]:
        """Wire-shaped mapping holding only the fields the entry carries."""
        return self.model_dump(by_alias=True, exclude_none=True)


class Event(BaseModel):
    """Event document delivered to a subscribed handler."""

    model_config = ConfigDict(populate_by_name=True)

    version: str = '0'
    id: Annotated[str, Field(default_factory=new_event_id)]
    detail_type: Annotated[Optional[str], Field(default=None, alias='detail-type')] = None
    source: Optional[str] = None
    account: str = ''
    time: Annotated[str, Field(default_factory=utc_timestamp)]
    region: str = 'us-east-1'
    resources: List[str] = Field(default_factory=list)
    detail: Any = None

    def to_payload(self) -> Dict[str, Any]:
        """Serialize to the handler payload, omitting an absent detail-type."""
        payload = self.model_dump(by_alias=True)
        if payload.get('detail-type') is None:
            payload.pop('detail-type', None)
        return payload
