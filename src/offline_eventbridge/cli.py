"""
Command line entry point: ``offline-eventbridge``.
"""

import argparse
import asyncio
import sys
from pathlib import Path
from typing import Optional, Sequence

from offline_eventbridge.handlers.models.env_vars import get_env_vars
from offline_eventbridge.handlers.utils.observability import logger, set_debug
from offline_eventbridge.handlers.utils.serverless_config import ServiceDefinitionError, load_service_definition
from offline_eventbridge.logic.pattern_matcher import UnsupportedFilterOperatorError
from offline_eventbridge.plugin import OfflineEventBridge


def build_parser(default_config: str = 'serverless.yml', default_stage: str = 'dev') -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Run a local EventBridge emulator for a serverless service"
    )
    parser.add_argument(
        "--config",
        default=default_config,
        help=f"Path to the service definition (default: {default_config})"
    )
    parser.add_argument(
        "--stage",
        default=default_stage,
        help=f"Stage used for function names (default: {default_stage})"
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging"
    )
    return parser


def main(argv: Optional[Sequence[str]] = None) -> None:
    """Main function for the emulator command."""
    env_vars = get_env_vars()
    args = build_parser(env_vars.SERVERLESS_CONFIG, env_vars.SERVERLESS_STAGE).parse_args(argv)

    if args.debug:
        set_debug(True)

    config_path = Path(args.config)
    try:
        service = load_service_definition(config_path)
    except ServiceDefinitionError as exc:
        logger.error(str(exc))
        sys.exit(1)

    emulator = OfflineEventBridge(service, service_dir=config_path.resolve().parent, stage=args.stage)

    try:
        asyncio.run(emulator.run_forever())
    except KeyboardInterrupt:
        logger.info('Interrupted, shutting down')
    except UnsupportedFilterOperatorError as exc:
        logger.error(str(exc), extra={'operator': exc.operator})
        sys.exit(1)


if __name__ == "__main__":
    main()
