"""
Broker client with reconnection and fire-and-forget publishing.

Publishing only enqueues the message; a background sender drains the queue
whenever a connection is up. Topic consumers are registered once and survive
reconnects, so a re-subscription never causes duplicate delivery.
"""

import asyncio
import json
from typing import Any, Awaitable, Callable, Dict, Optional, Set

import aiohttp

from offline_eventbridge.events.broker_server import BROKER_PATH
from offline_eventbridge.handlers.utils.observability import logger

SUBSYSTEM = 'broker'

MessageCallback = Callable[[Any], Awaitable[None]]


class BrokerClient:
    """
    Connection to a BrokerServer.

    Exceptions escaping a topic consumer are treated as fatal: they are logged
    and re-raised by ``join``.
    """

    def __init__(self, hostname: str = '127.0.0.1', port: int = 5011, reconnect_delay: float = 1.0) -> None:
        self.hostname = hostname
        self.port = port
        self.reconnect_delay = reconnect_delay

        self._callbacks: Dict[str, MessageCallback] = {}
        self._subscribed: Dict[str, asyncio.Event] = {}
        self._outbox: 'asyncio.Queue[Dict[str, Any]]' = asyncio.Queue()
        self._consumer_tasks: Set[asyncio.Task] = set()

        self._session: Optional[aiohttp.ClientSession] = None
        self._ws: Optional[aiohttp.ClientWebSocketResponse] = None
        self._connection_task: Optional[asyncio.Task] = None
        self._failure: Optional[asyncio.Future] = None
        self._running = False

    @property
    def url(self) -> str:
        return f'ws://{self.hostname}:{self.port}{BROKER_PATH}'

    @property
    def connected(self) -> bool:
        return self._ws is not None and not self._ws.closed

    def subscribe(self, topic: str, callback: MessageCallback) -> None:
        """Register the consumer of ``topic``; it is subscribed on every (re)connect."""
        self._callbacks[topic] = callback
        self._subscribed.setdefault(topic, asyncio.Event())
        if self.connected:
            self._outbox.put_nowait({'action': 'subscribe', 'topic': topic})

    def publish(self, topic: str, payload: Any) -> None:
        """Queue ``payload`` for ``topic``; never blocks on delivery."""
        self._outbox.put_nowait({'action': 'publish', 'topic': topic, 'payload': payload})

    async def wait_until_subscribed(self, topic: str, timeout: Optional[float] = None) -> None:
        event = self._subscribed.setdefault(topic, asyncio.Event())
        await asyncio.wait_for(event.wait(), timeout=timeout)

    async def start(self) -> None:
        if self._running:
            return
        self._running = True
        self._failure = asyncio.get_running_loop().create_future()
        self._session = aiohttp.ClientSession()
        self._connection_task = asyncio.create_task(self._connection_loop(), name='broker-client')

    async def stop(self) -> None:
        self._running = False

        if self._connection_task is not None:
            self._connection_task.cancel()
            try:
                await self._connection_task
            except asyncio.CancelledError:
                logger.debug('Broker connection task cancelled', extra={'subsystem': SUBSYSTEM})
            self._connection_task = None

        for task in list(self._consumer_tasks):
            task.cancel()
        if self._consumer_tasks:
            await asyncio.gather(*self._consumer_tasks, return_exceptions=True)

        if self._session is not None:
            await self._session.close()
            self._session = None

        if self._failure is not None and not self._failure.done():
            self._failure.set_result(None)

    async def join(self) -> None:
        """Wait until the client is stopped; re-raise a fatal consumer error."""
        if self._failure is None:
            return
        await asyncio.shield(self._failure)

    async def _connection_loop(self) -> None:
        while self._running:
            try:
                async with self._session.ws_connect(self.url, heartbeat=30) as ws:
                    self._ws = ws
                    for topic in list(self._callbacks):
                        await ws.send_json({'action': 'subscribe', 'topic': topic})

                    sender = asyncio.create_task(self._drain_outbox(ws))
                    try:
                        async for msg in ws:
                            if msg.type == aiohttp.WSMsgType.TEXT:
                                try:
                                    frame = json.loads(msg.data)
                                except ValueError as exc:
                                    logger.warning(
                                        f'Ignoring malformed broker frame: {exc}',
                                        extra={'subsystem': SUBSYSTEM}
                                    )
                                    continue
                                self._handle_frame(frame)
                            elif msg.type == aiohttp.WSMsgType.ERROR:
                                logger.error(
                                    f'Broker connection error: {ws.exception()}',
                                    extra={'subsystem': SUBSYSTEM}
                                )
                                break
                    finally:
                        sender.cancel()
                        await asyncio.gather(sender, return_exceptions=True)
                        self._ws = None

            except (aiohttp.ClientError, OSError) as exc:
                logger.warning(
                    f'Broker connection to {self.url} failed: {exc}',
                    extra={'subsystem': SUBSYSTEM, 'error': str(exc)}
                )

            if self._running:
                await asyncio.sleep(self.reconnect_delay)

    async def _drain_outbox(self, ws: aiohttp.ClientWebSocketResponse) -> None:
        while True:
            frame = await self._outbox.get()
            try:
                await ws.send_json(frame)
            except ConnectionResetError:
                # resend after reconnect
                self._outbox.put_nowait(frame)
                return

    def _handle_frame(self, frame: Dict[str, Any]) -> None:
        action = frame.get('action')
        topic = frame.get('topic')

        if action == 'suback':
            # an empty grant means this connection already holds the subscription
            if not frame.get('granted'):
                return
            event = self._subscribed.setdefault(topic, asyncio.Event())
            if not event.is_set():
                logger.info(
                    f'Broker connected and listening on {self.url}',
                    extra={'subsystem': SUBSYSTEM, 'topic': topic}
                )
                event.set()
            return

        if action == 'message':
            callback = self._callbacks.get(topic)
            if callback is None:
                return
            task = asyncio.create_task(callback(frame.get('payload')))
            self._consumer_tasks.add(task)
            task.add_done_callback(self._on_consumer_done)

    def _on_consumer_done(self, task: asyncio.Task) -> None:
        self._consumer_tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is None:
            return
        logger.error(
            f'Fatal error while consuming broker message: {exc}',
            extra={'subsystem': SUBSYSTEM, 'error': str(exc)}
        )
        if self._failure is not None and not self._failure.done():
            self._failure.set_exception(exc)
