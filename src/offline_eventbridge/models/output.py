"""
Output models for ingestion responses using Pydantic.

The shapes follow the PutEvents API reference:
https://docs.aws.amazon.com/eventbridge/latest/APIReference/API_PutEvents.html
"""

from typing import Annotated, Any, Dict, List, Sequence

from pydantic import BaseModel, ConfigDict, Field

from offline_eventbridge.models.entry import new_event_id


class PutEventsResultEntry(BaseModel):
    """Per-entry result of a PutEvents call."""

    model_config = ConfigDict(populate_by_name=True)

    event_id: Annotated[str, Field(
        alias='EventId',
        description='Synthetic id assigned to the accepted entry'
    )]


class PutEventsResponse(BaseModel):
    """Response body of a PutEvents call."""

    model_config = ConfigDict(populate_by_name=True)

    entries: Annotated[List[PutEventsResultEntry], Field(
        alias='Entries',
        description='One result per submitted entry, in submission order'
    )]

    failed_entry_count: Annotated[int, Field(
        default=0,
        alias='FailedEntryCount',
        description='Always zero; the emulator accepts every entry'
    )] = 0

    @classmethod
    def for_entries(cls, entries: Sequence[Any]) -> 'PutEventsResponse':
        return cls(entries=[PutEventsResultEntry(event_id=new_event_id()) for _ in entries])

    def to_body(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True)


class ErrorOutput(BaseModel):
    """Error body returned for rejected ingestion requests."""

    model_config = ConfigDict(populate_by_name=True)

    error_type: Annotated[str, Field(
        alias='__type',
        description='AWS error code',
        examples=['ValidationException']
    )]

    message: Annotated[str, Field(
        description='Human readable error message'
    )]

    def to_body(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True)
