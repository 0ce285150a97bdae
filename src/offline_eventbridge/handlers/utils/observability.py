"""
Centralized observability utilities for the offline EventBridge emulator.

This module provides the configured AWS Lambda Powertools logger shared by every
subsystem, so that log records from the matcher, dispatcher, broker and
ingestion endpoint all land in one structured JSON stream.
"""

import os

from aws_lambda_powertools.logging import Logger

DEFAULT_SERVICE_NAME = 'offline-eventbridge'

# JSON output format, service name can be set by environment variable "POWERTOOLS_SERVICE_NAME"
# Level can be set by environment variable "LOG_LEVEL"
logger: Logger = Logger(service=os.environ.get('POWERTOOLS_SERVICE_NAME', DEFAULT_SERVICE_NAME))


def set_debug(enabled: bool, default_level: str = 'INFO') -> None:
    """Switch the shared logger between verbose and default output."""
    logger.setLevel('DEBUG' if enabled else default_level)
