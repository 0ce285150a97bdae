"""
Pytest configuration and shared fixtures for the offline EventBridge emulator.

This module provides common test fixtures and configuration used across
unit, integration, and end-to-end tests.
"""

import asyncio
import json
import os
import socket
import pytest
from typing import Any, Callable, Dict, List, Optional, Tuple

from offline_eventbridge.invokers import BaseInvoker, HandlerInvocationError
from offline_eventbridge.logic.pattern_matcher import compile_event_pattern
from offline_eventbridge.models.entry import EventEntry
from offline_eventbridge.models.subscription import Subscriber


# Test environment configuration
@pytest.fixture(scope="session", autouse=True)
def test_environment():
    """Set up test environment variables."""
    os.environ.update({
        "AWS_DEFAULT_REGION": "us-east-1",
        "AWS_ACCESS_KEY_ID": "test",
        "AWS_SECRET_ACCESS_KEY": "test",
        "POWERTOOLS_SERVICE_NAME": "test-offline-eventbridge",
        "LOG_LEVEL": "DEBUG",
    })


class RecordingInvoker(BaseInvoker):
    """
    Invoker double that records every attempt.

    ``failures`` maps a function key to the number of attempts that fail before
    one succeeds; ``always_fail`` keys never succeed.
    """

    def __init__(self, failures: Optional[Dict[str, int]] = None, always_fail: Tuple[str, ...] = ()):
        self.failures = dict(failures or {})
        self.always_fail = set(always_fail)
        self.calls: List[Tuple[str, Dict[str, Any]]] = []
        self.cleaned_up = False

    def calls_for(self, function_key: str) -> List[Dict[str, Any]]:
        return [event for key, event in self.calls if key == function_key]

    async def invoke(self, function_key: str, event: Dict[str, Any]) -> Any:
        self.calls.append((function_key, event))
        attempt = len(self.calls_for(function_key))

        if function_key in self.always_fail:
            raise HandlerInvocationError(f'{function_key} failed on attempt {attempt}', function_key)
        if attempt <= self.failures.get(function_key, 0):
            raise HandlerInvocationError(f'{function_key} failed on attempt {attempt}', function_key)
        return {'handled': function_key, 'attempt': attempt}

    async def cleanup(self) -> None:
        self.cleaned_up = True


@pytest.fixture
def recording_invoker() -> RecordingInvoker:
    """Invoker that always succeeds and records its calls."""
    return RecordingInvoker()


@pytest.fixture
def invoker_factory() -> Callable[..., RecordingInvoker]:
    """Build RecordingInvoker instances with scripted failures."""
    return RecordingInvoker


@pytest.fixture
def make_entry() -> Callable[..., EventEntry]:
    """Build an EventEntry; a dict detail is JSON-encoded as on the wire."""
    def _make_entry(source: str = 'svc.orders', detail_type: Optional[str] = 'OrderPlaced',
                    detail: Any = None, **kwargs) -> EventEntry:
        if isinstance(detail, dict):
            detail = json.dumps(detail)
        return EventEntry(source=source, detail_type=detail_type, detail=detail, **kwargs)

    return _make_entry


@pytest.fixture
def make_subscriber() -> Callable[..., Subscriber]:
    """Build a Subscriber from a raw ``eventBridge`` trigger body."""
    def _make_subscriber(function_key: str = 'consumer', pattern: Optional[Dict[str, Any]] = None,
                         event_bus: Any = None) -> Subscriber:
        event: Dict[str, Any] = {}
        if event_bus is not None:
            event['eventBus'] = event_bus
        if pattern is not None:
            event['pattern'] = pattern
        return Subscriber(function_key=function_key, event=event, pattern=compile_event_pattern(pattern))

    return _make_subscriber


SERVERLESS_YML = """
service: orders

provider:
  name: aws
  region: eu-west-1
  stage: dev
  maximumRetryAttempts: 4

custom:
  serverless-offline:
    retryDelayMs: 250
  serverless-offline-aws-eventbridge:
    port: {port}
    pubSubPort: {pub_sub_port}
    account: '123456789012'
    retryDelayMs: 0
    imported-event-buses:
      shared-bus-export: shared-bus

functions:
  orderPlaced:
    handler: handlers/orders.handle_order
    events:
      - eventBridge:
          eventBus: !Ref OrdersBus
          pattern:
            source:
              - svc.orders
            detail:
              amount:
                - exists: true
  audit:
    handler: handlers/orders.audit
    events:
      - eventBridge:
          eventBus: !ImportValue shared-bus-export
  nightly:
    handler: handlers/orders.nightly
    name: orders-nightly-job
    events:
      - eventBridge:
          schedule: cron(0 5 * * ? *)
      - eventBridge:
          schedule: rate(3 fortnights)

resources:
  Resources:
    OrdersBus:
      Type: AWS::Events::EventBus
      Properties:
        Name: orders-bus
"""

HANDLER_MODULE = """
import asyncio

received = []


def handle_order(event, context):
    received.append(event)
    return {'function_name': context.function_name, 'source': event.get('source')}


async def audit(event, context):
    await asyncio.sleep(0)
    return {'remaining': context.get_remaining_time_in_millis() > 0}


def nightly(event, context):
    return event['source']
"""


@pytest.fixture
def eventually() -> Callable[..., Any]:
    """Poll a condition until it holds; fail the test after ``timeout`` seconds."""
    async def _eventually(condition: Callable[[], bool], timeout: float = 5.0, interval: float = 0.02) -> None:
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        while not condition():
            if loop.time() > deadline:
                pytest.fail(f'Condition not met within {timeout}s')
            await asyncio.sleep(interval)

    return _eventually


@pytest.fixture
def free_port_factory() -> Callable[[], int]:
    """Return a callable producing distinct TCP ports that are free on localhost."""
    used = set()

    def _free_port() -> int:
        while True:
            with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
                sock.bind(('127.0.0.1', 0))
                port = sock.getsockname()[1]
            if port not in used:
                used.add(port)
                return port

    return _free_port


@pytest.fixture
def service_dir(tmp_path, free_port_factory):
    """A service directory with a serverless.yml and a Python handler module."""
    (tmp_path / 'handlers').mkdir()
    (tmp_path / 'handlers' / 'orders.py').write_text(HANDLER_MODULE, encoding='utf-8')
    (tmp_path / 'serverless.yml').write_text(
        SERVERLESS_YML.format(port=free_port_factory(), pub_sub_port=free_port_factory()),
        encoding='utf-8',
    )
    return tmp_path


# Pytest configuration
def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "integration: Integration tests")
    config.addinivalue_line("markers", "e2e: End-to-end tests")


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their location."""
    for item in items:
        # Add markers based on test location
        if "unit" in str(item.fspath):
            item.add_marker(pytest.mark.unit)
        elif "integration" in str(item.fspath):
            item.add_marker(pytest.mark.integration)
        elif "e2e" in str(item.fspath):
            item.add_marker(pytest.mark.e2e)
