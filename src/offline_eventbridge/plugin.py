"""
Emulator lifecycle.

``OfflineEventBridge`` wires the service definition to the routing engine and
owns every long-lived resource: the broker (or only a client when another
process already serves it), the schedule runner and the ingestion server.
"""

import asyncio
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from aiohttp import web
from pydantic import ValidationError

from offline_eventbridge.events import EVENT_BRIDGE_TOPIC, BrokerClient, BrokerServer, is_port_in_use
from offline_eventbridge.handlers.ingestion_handler import create_ingestion_app
from offline_eventbridge.handlers.utils.observability import logger, set_debug
from offline_eventbridge.invokers import BaseInvoker
from offline_eventbridge.invokers.lambda_endpoint_invoker import LambdaEndpointInvoker
from offline_eventbridge.invokers.python_invoker import PythonHandlerInvoker
from offline_eventbridge.logic.bus_registry import BusRegistry
from offline_eventbridge.logic.dispatcher import Dispatcher, InvocationResult
from offline_eventbridge.logic.event_converter import EventConverter
from offline_eventbridge.logic.retry_policy import RetryPolicy
from offline_eventbridge.logic.scheduler import ScheduleRunner
from offline_eventbridge.logic.subscriptions import build_subscription_registry
from offline_eventbridge.models.config import PluginConfig
from offline_eventbridge.models.entry import EventEntry
from offline_eventbridge.models.service_definition import ServiceDefinition

SUBSYSTEM = 'plugin'

SUBSCRIBE_TIMEOUT_SECONDS = 5.0


class OfflineEventBridge:
    """Local EventBridge emulator for one service definition."""

    def __init__(
        self,
        service: ServiceDefinition,
        service_dir: Union[str, Path] = '.',
        stage: Optional[str] = None,
        invoker: Optional[BaseInvoker] = None,
        config: Optional[PluginConfig] = None,
    ) -> None:
        self.service = service
        self.stage = stage or service.provider.stage
        self.config = config or PluginConfig.from_service(service)
        if self.config.debug:
            set_debug(True)

        # start() may turn this off when another process owns the broker
        self.mock_event_bridge_server = self.config.mock_event_bridge_server

        function_names = {
            function_key: service.function_name(function_key, self.stage)
            for function_key in service.get_all_functions()
        }
        self.invoker = invoker or self._create_invoker(service, Path(service_dir), function_names)

        self.bus_registry = BusRegistry(service.event_bus_resources(), self.config.imported_event_buses)
        self.registry = build_subscription_registry(service)
        self.dispatcher = Dispatcher(
            self.registry.subscribers,
            self.bus_registry,
            self.invoker,
            converter=EventConverter(account=self.config.account, region=self.config.region),
            retry_policy=RetryPolicy(
                max_retry_attempts=self.config.maximum_retry_attempts,
                retry_delay_ms=self.config.retry_delay_ms,
            ),
        )
        self.schedule_runner = ScheduleRunner(self.registry.scheduled_events, self.dispatcher)

        self.broker_server: Optional[BrokerServer] = None
        self.broker_client: Optional[BrokerClient] = None
        self._ingestion_runner: Optional[web.AppRunner] = None
        self._started = False

    def _create_invoker(self, service: ServiceDefinition, service_dir: Path, function_names: Dict[str, str]) -> BaseInvoker:
        if self.config.lambda_endpoint:
            return LambdaEndpointInvoker(
                self.config.lambda_endpoint,
                function_names=function_names,
                region=self.config.region,
            )
        return PythonHandlerInvoker(
            service.functions,
            service_dir=service_dir,
            function_names=function_names,
            region=self.config.region,
            account=self.config.account,
        )

    async def start(self) -> None:
        if self._started:
            return
        self._started = True
        config = self.config

        if self.mock_event_bridge_server:
            if await is_port_in_use(config.pub_sub_port, host=config.hostname):
                logger.info(
                    f'Broker already running on port {config.pub_sub_port}, connecting as client',
                    extra={'subsystem': SUBSYSTEM}
                )
                self.mock_event_bridge_server = False
            else:
                self.broker_server = BrokerServer(config.hostname, config.pub_sub_port)
                await self.broker_server.start()

        self.broker_client = BrokerClient(config.hostname, config.pub_sub_port)
        self.broker_client.subscribe(EVENT_BRIDGE_TOPIC, self._on_entries)
        await self.broker_client.start()
        try:
            await self.broker_client.wait_until_subscribed(EVENT_BRIDGE_TOPIC, timeout=SUBSCRIBE_TIMEOUT_SECONDS)
        except asyncio.TimeoutError:
            logger.warning(
                f'Broker not reachable on {self.broker_client.url} yet, will keep retrying',
                extra={'subsystem': SUBSYSTEM}
            )

        self.schedule_runner.start()

        if self.mock_event_bridge_server:
            app = create_ingestion_app(self.publish, payload_size_limit=config.payload_size_limit_bytes)
            self._ingestion_runner = web.AppRunner(app)
            await self._ingestion_runner.setup()
            await web.TCPSite(self._ingestion_runner, config.hostname, config.port).start()
            logger.info(
                f'Mock server running at port: {config.port}',
                extra={'subsystem': SUBSYSTEM}
            )

    def publish(self, entries: List[Any]) -> None:
        """Broadcast raw PutEvents entries to every subscribed dispatcher."""
        if self.broker_client is None:
            raise RuntimeError('OfflineEventBridge is not started')
        self.broker_client.publish(EVENT_BRIDGE_TOPIC, entries)

    async def _on_entries(self, payload: Any) -> List[InvocationResult]:
        if not isinstance(payload, list):
            logger.warning(
                'Ignoring broadcast message that is not a list of entries',
                extra={'subsystem': SUBSYSTEM}
            )
            return []

        entries: List[EventEntry] = []
        for item in payload:
            try:
                entries.append(EventEntry.model_validate(item))
            except ValidationError as exc:
                logger.warning(
                    f'Skipping invalid entry: {exc}',
                    extra={'subsystem': SUBSYSTEM, 'error': str(exc)}
                )

        logger.debug(f'Received {len(entries)} entries', extra={'subsystem': SUBSYSTEM})
        return await self.dispatcher.dispatch(entries)

    async def stop(self) -> None:
        if not self._started:
            return
        self._started = False

        if self._ingestion_runner is not None:
            await self._ingestion_runner.cleanup()
            self._ingestion_runner = None

        self.schedule_runner.stop()

        if self.broker_client is not None:
            await self.broker_client.stop()

        if self.broker_server is not None:
            await self.broker_server.stop()
            self.broker_server = None

        await self.invoker.cleanup()
        logger.info('Offline EventBridge stopped', extra={'subsystem': SUBSYSTEM})

    async def run_forever(self) -> None:
        """
        Serve until cancelled.

        Raises:
            UnsupportedFilterOperatorError: If an entry was routed against a
                pattern with an unsupported operator.
        """
        await self.start()
        try:
            await self.broker_client.join()
        finally:
            await self.stop()
