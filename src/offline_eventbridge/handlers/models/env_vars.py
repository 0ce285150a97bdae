"""
Environment variable models for type-safe configuration.

This module defines the Pydantic model for the environment variables read by the
emulator process, validated through aws-lambda-env-modeler.
"""

from typing import Annotated

from aws_lambda_env_modeler import BaseModel, get_environment_variables
from pydantic import Field


class OfflineEventBridgeEnvVars(BaseModel):
    """Environment variables for the emulator process."""

    # Service name for observability
    POWERTOOLS_SERVICE_NAME: Annotated[str, Field(
        default='offline-eventbridge',
        description='Service name for AWS Powertools'
    )] = 'offline-eventbridge'

    # Log level for AWS Powertools Logger
    LOG_LEVEL: Annotated[str, Field(
        default='INFO',
        description='Log level for application logging',
        pattern=r'^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$'
    )] = 'INFO'

    # Location of the service definition
    SERVERLESS_CONFIG: Annotated[str, Field(
        default='serverless.yml',
        description='Path to the serverless.yml service definition',
        min_length=1
    )] = 'serverless.yml'

    # Stage used to derive deployed function names
    SERVERLESS_STAGE: Annotated[str, Field(
        default='dev',
        description='Deployment stage name',
        min_length=1
    )] = 'dev'


def get_env_vars() -> OfflineEventBridgeEnvVars:
    """
    Get typed environment variables for the emulator.

    Returns:
        Validated environment variables model instance
    """
    return get_environment_variables(model=OfflineEventBridgeEnvVars)
