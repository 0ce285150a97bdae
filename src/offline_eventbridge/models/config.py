"""
Plugin configuration model.

Options come from ``custom.serverless-offline-aws-eventbridge`` in the service
definition; retry options may also be declared on the provider or in the
``serverless-offline`` section.
"""

import re
from typing import Annotated, Any, Dict, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from offline_eventbridge.models.service_definition import ServiceDefinition

_SIZE_PATTERN = re.compile(r'^\s*(\d+)\s*(b|kb|mb|gb)?\s*$', re.IGNORECASE)
_SIZE_UNITS = {'b': 1, 'kb': 1024, 'mb': 1024 ** 2, 'gb': 1024 ** 3}
_RETRY_OPTIONS = ('maximumRetryAttempts', 'retryDelayMs')


def parse_size(value: Union[int, str]) -> int:
    """Convert ``10mb`` style sizes to a byte count."""
    if isinstance(value, int):
        return value
    match = _SIZE_PATTERN.match(value)
    if not match:
        raise ValueError(f'Invalid size: {value!r}')
    amount, unit = match.groups()
    return int(amount) * _SIZE_UNITS[(unit or 'b').lower()]


class PluginConfig(BaseModel):
    """Validated emulator options."""

    model_config = ConfigDict(populate_by_name=True, extra='ignore', frozen=True)

    port: Annotated[int, Field(
        default=5010,
        description='Ingestion (PutEvents) listen port',
        ge=1,
        le=65535
    )] = 5010

    hostname: Annotated[str, Field(
        default='127.0.0.1',
        description='Broker host'
    )] = '127.0.0.1'

    pub_sub_port: Annotated[int, Field(
        default=5011,
        alias='pubSubPort',
        description='Broker port',
        ge=1,
        le=65535
    )] = 5011

    account: Annotated[str, Field(
        default='',
        description='Account id stamped on delivered events'
    )] = ''

    region: Annotated[str, Field(
        default='us-east-1',
        description='Region stamped on delivered events'
    )] = 'us-east-1'

    debug: Annotated[bool, Field(
        default=False,
        description='Verbose logging'
    )] = False

    imported_event_buses: Annotated[Dict[str, str], Field(
        default_factory=dict,
        alias='imported-event-buses',
        description='Cross-stack import name -> bus name'
    )]

    payload_size_limit: Annotated[Union[int, str], Field(
        default='10mb',
        alias='payloadSizeLimit',
        description='Maximum ingestion body size'
    )] = '10mb'

    maximum_retry_attempts: Annotated[int, Field(
        default=10,
        alias='maximumRetryAttempts',
        description='Retries after the first failed invocation',
        ge=0
    )] = 10

    retry_delay_ms: Annotated[int, Field(
        default=500,
        alias='retryDelayMs',
        description='Fixed delay between attempts in milliseconds',
        ge=0
    )] = 500

    mock_event_bridge_server: Annotated[bool, Field(
        default=True,
        alias='mockEventBridgeServer',
        description='Start the local broker and ingestion server'
    )] = True

    lambda_endpoint: Annotated[Optional[str], Field(
        default=None,
        alias='lambdaEndpoint',
        description='Lambda Invoke API endpoint; handlers run in-process when unset'
    )] = None

    @field_validator('payload_size_limit')
    @classmethod
    def validate_payload_size_limit(cls, v: Union[int, str]) -> Union[int, str]:
        parse_size(v)
        return v

    @field_validator('imported_event_buses', mode='before')
    @classmethod
    def default_imported_event_buses(cls, v: Any) -> Any:
        return v or {}

    @property
    def payload_size_limit_bytes(self) -> int:
        return parse_size(self.payload_size_limit)

    @classmethod
    def from_service(cls, service: ServiceDefinition) -> 'PluginConfig':
        """
        Build the configuration from a service definition.

        Retry options are merged from the provider block, then the
        ``serverless-offline`` section, then the plugin section.
        """
        options: Dict[str, Any] = {}
        provider = service.provider.model_dump()
        for source in (provider, service.offline_options()):
            options.update({key: source[key] for key in _RETRY_OPTIONS if key in source})
        options.update(service.plugin_options())
        options['region'] = service.provider.region or 'us-east-1'
        return cls.model_validate(options)
