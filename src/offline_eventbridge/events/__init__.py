"""
Broadcast channel between the ingestion endpoint and dispatchers.

Entries accepted by PutEvents are published to the ``eventBridge`` topic of a
local websocket broker; every emulator process subscribed to the topic routes
them to its own handlers.
"""

from .broker_client import BrokerClient
from .broker_server import BROKER_PATH, BrokerServer, is_port_in_use

EVENT_BRIDGE_TOPIC = 'eventBridge'

__all__ = [
    'BrokerClient',
    'BrokerServer',
    'BROKER_PATH',
    'EVENT_BRIDGE_TOPIC',
    'is_port_in_use',
]
