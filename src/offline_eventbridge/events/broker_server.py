"""
Local publish/subscribe broker over websockets.

Several emulator processes can share one logical bus: the first process to
bind the broker port serves it, the others only connect as clients.

Frames are JSON objects:

- ``{"action": "subscribe", "topic": T}`` answered with
  ``{"action": "suback", "topic": T, "granted": [T]}``, or ``"granted": []``
  when the connection is already subscribed to ``T``
- ``{"action": "publish", "topic": T, "payload": P}`` forwarded to every
  subscribed connection as ``{"action": "message", "topic": T, "payload": P}``
"""

import asyncio
import json
from typing import Dict, Optional, Set

from aiohttp import WSMsgType, web

from offline_eventbridge.handlers.utils.observability import logger

SUBSYSTEM = 'broker'
BROKER_PATH = '/broker'


async def is_port_in_use(port: int, host: str = '127.0.0.1', timeout: float = 1.0) -> bool:
    """Check whether something already accepts TCP connections on ``host:port``."""
    try:
        _, writer = await asyncio.wait_for(asyncio.open_connection(host, port), timeout=timeout)
    except (OSError, asyncio.TimeoutError):
        return False
    writer.close()
    try:
        await writer.wait_closed()
    except OSError:
        pass
    return True


class BrokerServer:
    """Topic fan-out between websocket connections."""

    def __init__(self, hostname: str = '127.0.0.1', port: int = 5011) -> None:
        self.hostname = hostname
        self.port = port
        self._subscriptions: Dict[str, Set[web.WebSocketResponse]] = {}
        self._connections: Set[web.WebSocketResponse] = set()
        self._runner: Optional[web.AppRunner] = None

        self.app = web.Application()
        self.app.router.add_get(BROKER_PATH, self._handle_connection)

    @property
    def url(self) -> str:
        return f'ws://{self.hostname}:{self.port}{BROKER_PATH}'

    def subscriber_count(self, topic: str) -> int:
        return len(self._subscriptions.get(topic, ()))

    async def start(self) -> None:
        self._runner = web.AppRunner(self.app)
        await self._runner.setup()
        site = web.TCPSite(self._runner, self.hostname, self.port)
        await site.start()
        logger.info(
            f'Broker started and listening on port {self.port}',
            extra={'subsystem': SUBSYSTEM}
        )

    async def stop(self) -> None:
        for ws in list(self._connections):
            await ws.close()
        if self._runner is not None:
            await self._runner.cleanup()
            self._runner = None

    async def _handle_connection(self, request: web.Request) -> web.WebSocketResponse:
        ws = web.WebSocketResponse(heartbeat=30)
        await ws.prepare(request)
        self._connections.add(ws)

        try:
            async for msg in ws:
                if msg.type == WSMsgType.TEXT:
                    await self._handle_frame(ws, msg.data)
                elif msg.type == WSMsgType.ERROR:
                    logger.error(
                        f'Broker connection error: {ws.exception()}',
                        extra={'subsystem': SUBSYSTEM}
                    )
        finally:
            self._connections.discard(ws)
            for subscribers in self._subscriptions.values():
                subscribers.discard(ws)

        return ws

    async def _handle_frame(self, ws: web.WebSocketResponse, data: str) -> None:
        try:
            frame = json.loads(data)
            action = frame['action']
            topic = frame['topic']
        except (ValueError, KeyError, TypeError) as exc:
            logger.warning(f'Ignoring malformed broker frame: {exc}', extra={'subsystem': SUBSYSTEM})
            return

        if action == 'subscribe':
            subscribers = self._subscriptions.setdefault(topic, set())
            granted = [] if ws in subscribers else [topic]
            subscribers.add(ws)
            await ws.send_json({'action': 'suback', 'topic': topic, 'granted': granted})

        elif action == 'publish':
            await self._fan_out(topic, frame.get('payload'))

        else:
            logger.warning(f'Ignoring unknown broker action {action!r}', extra={'subsystem': SUBSYSTEM})

    async def _fan_out(self, topic: str, payload) -> None:
        message = json.dumps({'action': 'message', 'topic': topic, 'payload': payload})
        for subscriber in list(self._subscriptions.get(topic, ())):
            try:
                await subscriber.send_str(message)
            except ConnectionResetError:
                self._subscriptions[topic].discard(subscriber)
