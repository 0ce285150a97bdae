"""
Entry points of the emulator process.

- ingestion_handler: the PutEvents HTTP endpoint
- utils.observability: the shared structured logger
- utils.serverless_config: serverless.yml loading
- models.env_vars: environment configuration
"""

from offline_eventbridge.handlers.utils.observability import logger

__all__ = [
    "logger",
]
