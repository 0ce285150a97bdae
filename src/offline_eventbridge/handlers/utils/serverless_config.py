"""
serverless.yml loading with CloudFormation intrinsic function tags.

Short-form tags such as ``!Ref MyBus`` or ``!GetAtt MyBus.Arn`` are expanded
into their long form (``{"Ref": "MyBus"}``, ``{"Fn::GetAtt": ["MyBus", "Arn"]}``)
so that bus references can be resolved by the bus registry.
"""

from pathlib import Path
from typing import Any, Union

import yaml
from pydantic import ValidationError

from offline_eventbridge.handlers.utils.observability import logger
from offline_eventbridge.models.service_definition import ServiceDefinition


class ServiceDefinitionError(ValueError):
    """Raised when a service definition cannot be loaded."""
    pass


class CloudFormationLoader(yaml.SafeLoader):
    """SafeLoader that understands CloudFormation short-form tags."""
    pass


def _construct_node(loader: yaml.SafeLoader, node: yaml.Node) -> Any:
    if isinstance(node, yaml.ScalarNode):
        return loader.construct_scalar(node)
    if isinstance(node, yaml.SequenceNode):
        return loader.construct_sequence(node, deep=True)
    return loader.construct_mapping(node, deep=True)


def _construct_intrinsic(loader: yaml.SafeLoader, tag_suffix: str, node: yaml.Node) -> Any:
    value = _construct_node(loader, node)

    if tag_suffix == 'Ref':
        return {'Ref': value}

    if tag_suffix == 'GetAtt' and isinstance(value, str):
        return {'Fn::GetAtt': value.split('.', 1)}

    return {f'Fn::{tag_suffix}': value}


CloudFormationLoader.add_multi_constructor('!', _construct_intrinsic)


def load_yaml(text: str) -> Any:
    return yaml.load(text, Loader=CloudFormationLoader)


def load_service_definition(path: Union[str, Path]) -> ServiceDefinition:
    """
    Load and validate a serverless.yml file.

    Raises:
        ServiceDefinitionError: If the file is missing, unparsable or invalid
    """
    path = Path(path)
    try:
        document = load_yaml(path.read_text(encoding='utf-8'))
    except OSError as exc:
        raise ServiceDefinitionError(f'Cannot read service definition {path}: {exc}') from exc
    except yaml.YAMLError as exc:
        raise ServiceDefinitionError(f'Cannot parse service definition {path}: {exc}') from exc

    if not isinstance(document, dict):
        raise ServiceDefinitionError(f'Service definition {path} must be a mapping')

    try:
        service = ServiceDefinition.model_validate(document)
    except ValidationError as exc:
        raise ServiceDefinitionError(f'Invalid service definition {path}: {exc}') from exc

    logger.debug(
        f'Loaded service definition {path}',
        extra={'service': service.service_name, 'functions': service.get_all_functions()}
    )
    return service
