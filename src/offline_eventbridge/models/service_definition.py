"""
Service definition models for the declared functions and infrastructure.

This module mirrors the parts of a serverless.yml the emulator consumes: the
function registry (handlers and their ``eventBridge`` triggers), the provider
block and the CloudFormation ``resources`` section.
"""

from typing import Annotated, Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

EVENT_BUS_RESOURCE_TYPE = 'AWS::Events::EventBus'
PLUGIN_SECTION = 'serverless-offline-aws-eventbridge'
OFFLINE_SECTION = 'serverless-offline'


class FunctionDefinition(BaseModel):
    """One entry of the ``functions`` block."""

    model_config = ConfigDict(extra='allow')

    handler: Annotated[Optional[str], Field(
        default=None,
        description='Handler path, e.g. src/orders/lambda_function.lambda_handler'
    )] = None

    name: Annotated[Optional[str], Field(
        default=None,
        description='Deployed function name override'
    )] = None

    events: Annotated[List[Dict[str, Any]], Field(
        default_factory=list,
        description='Declared event triggers'
    )]

    @field_validator('events', mode='before')
    @classmethod
    def default_events(cls, v: Any) -> Any:
        # "events:" with no items parses as None
        return v or []

    def event_bridge_triggers(self) -> List[Dict[str, Any]]:
        """The ``eventBridge`` trigger bodies, in declaration order."""
        return [
            event['eventBridge']
            for event in self.events
            if isinstance(event, dict) and isinstance(event.get('eventBridge'), dict)
        ]


class ProviderDefinition(BaseModel):
    """The ``provider`` block."""

    model_config = ConfigDict(extra='allow')

    name: str = 'aws'
    region: str = 'us-east-1'
    stage: str = 'dev'


class ServiceDefinition(BaseModel):
    """Declared service: functions, provider, resources and custom options."""

    model_config = ConfigDict(extra='allow')

    service: Annotated[Union[str, Dict[str, Any]], Field(
        default='service',
        description='Service name, or a mapping with a "name" key'
    )] = 'service'

    provider: Annotated[ProviderDefinition, Field(default_factory=ProviderDefinition)]

    functions: Annotated[Dict[str, FunctionDefinition], Field(default_factory=dict)]

    resources: Annotated[Dict[str, Any], Field(default_factory=dict)]

    custom: Annotated[Dict[str, Any], Field(default_factory=dict)]

    @field_validator('provider', 'resources', 'custom', 'functions', mode='before')
    @classmethod
    def default_sections(cls, v: Any) -> Any:
        return {} if v is None else v

    @property
    def service_name(self) -> str:
        if isinstance(self.service, dict):
            return str(self.service.get('name', 'service'))
        return self.service

    def get_all_functions(self) -> List[str]:
        return list(self.functions)

    def get_function(self, function_key: str) -> FunctionDefinition:
        return self.functions[function_key]

    def function_name(self, function_key: str, stage: Optional[str] = None) -> str:
        """Deployed name of a function: its ``name`` or ``<service>-<stage>-<key>``."""
        definition = self.functions.get(function_key)
        if definition is not None and definition.name:
            return definition.name
        return f'{self.service_name}-{stage or self.provider.stage}-{function_key}'

    def event_bus_resources(self) -> Dict[str, str]:
        """Logical id -> bus name for every declared ``AWS::Events::EventBus``."""
        declared = self.resources.get('Resources') or {}
        buses: Dict[str, str] = {}
        for logical_id, resource in declared.items():
            if not isinstance(resource, dict) or resource.get('Type') != EVENT_BUS_RESOURCE_TYPE:
                continue
            name = (resource.get('Properties') or {}).get('Name')
            if isinstance(name, str):
                buses[logical_id] = name
        return buses

    def plugin_options(self) -> Dict[str, Any]:
        return dict(self.custom.get(PLUGIN_SECTION) or {})

    def offline_options(self) -> Dict[str, Any]:
        return dict(self.custom.get(OFFLINE_SECTION) or {})
