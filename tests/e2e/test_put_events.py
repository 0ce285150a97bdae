"""
End-to-end tests for the offline EventBridge emulator.

This module starts a complete emulator (broker, ingestion server, schedule
runner) on free localhost ports and submits PutEvents requests over HTTP, the
way an application under local test would.
"""

import asyncio
import json

import boto3
import httpx
import pytest

from offline_eventbridge.handlers.utils.serverless_config import load_service_definition
from offline_eventbridge.plugin import OfflineEventBridge

PUT_EVENTS_HEADERS = {
    'Content-Type': 'application/x-amz-json-1.1',
    'X-Amz-Target': 'AWSEvents.PutEvents',
}


async def start_emulator(service_dir, invoker) -> OfflineEventBridge:
    emulator = OfflineEventBridge(load_service_definition(service_dir / 'serverless.yml'), service_dir, invoker=invoker)
    await emulator.start()
    return emulator


@pytest.mark.e2e
class TestPutEventsAPI:
    """End-to-end tests for the PutEvents endpoint."""

    @pytest.mark.asyncio
    async def test_matching_entry_is_delivered_once(self, service_dir, recording_invoker, eventually):
        """Test that a matching entry results in exactly one invocation with the converted event."""
        emulator = await start_emulator(service_dir, recording_invoker)
        body = {'Entries': [{'Source': 'svc.orders', 'DetailType': 'OrderPlaced', 'Detail': '{"amount":42}'}]}

        try:
            async with httpx.AsyncClient(base_url=f'http://127.0.0.1:{emulator.config.port}', timeout=10.0) as client:
                response = await client.post('/', content=json.dumps(body), headers=PUT_EVENTS_HEADERS)

            assert response.status_code == 200
            result = response.json()
            assert result['FailedEntryCount'] == 0
            assert len(result['Entries']) == 1

            await eventually(lambda: len(recording_invoker.calls_for('orderPlaced')) >= 1)
            await asyncio.sleep(0.2)

            assert len(recording_invoker.calls_for('orderPlaced')) == 1
            event = recording_invoker.calls_for('orderPlaced')[0]
            assert event['source'] == 'svc.orders'
            assert event['detail-type'] == 'OrderPlaced'
            assert event['detail'] == {'amount': 42}
            assert event['account'] == '123456789012'
            assert event['region'] == 'eu-west-1'
        finally:
            await emulator.stop()

    @pytest.mark.asyncio
    async def test_non_matching_entry_is_not_delivered(self, service_dir, recording_invoker):
        emulator = await start_emulator(service_dir, recording_invoker)
        body = {'Entries': [
            {'Source': 'svc.billing', 'DetailType': 'Invoiced', 'Detail': '{"amount": 1}'},
            {'Source': 'svc.orders', 'DetailType': 'OrderPlaced', 'Detail': '{"total": 1}'},
        ]}

        try:
            async with httpx.AsyncClient(base_url=f'http://127.0.0.1:{emulator.config.port}', timeout=10.0) as client:
                response = await client.post('/', content=json.dumps(body), headers=PUT_EVENTS_HEADERS)

            assert response.status_code == 200
            assert len(response.json()['Entries']) == 2

            await asyncio.sleep(0.3)
            assert recording_invoker.calls_for('orderPlaced') == []
        finally:
            await emulator.stop()

    @pytest.mark.asyncio
    async def test_validation_error(self, service_dir, recording_invoker):
        emulator = await start_emulator(service_dir, recording_invoker)

        try:
            async with httpx.AsyncClient(base_url=f'http://127.0.0.1:{emulator.config.port}', timeout=10.0) as client:
                response = await client.post('/', content='{"Entries": 1}', headers=PUT_EVENTS_HEADERS)

            assert response.status_code == 400
            assert response.json()['__type'] == 'ValidationException'
        finally:
            await emulator.stop()

    @pytest.mark.asyncio
    async def test_boto3_put_events(self, service_dir, recording_invoker, eventually):
        """Test that the AWS SDK can publish to the emulator unchanged."""
        emulator = await start_emulator(service_dir, recording_invoker)
        events = boto3.client(
            'events',
            endpoint_url=f'http://127.0.0.1:{emulator.config.port}',
            region_name='eu-west-1',
            aws_access_key_id='test',
            aws_secret_access_key='test',
        )

        try:
            response = await asyncio.to_thread(
                events.put_events,
                Entries=[{
                    'Source': 'svc.orders',
                    'DetailType': 'OrderPlaced',
                    'Detail': json.dumps({'amount': 7}),
                    'EventBusName': 'orders-bus',
                }],
            )

            assert response['FailedEntryCount'] == 0
            assert len(response['Entries']) == 1

            await eventually(lambda: len(recording_invoker.calls_for('orderPlaced')) == 1)
            assert recording_invoker.calls_for('orderPlaced')[0]['detail'] == {'amount': 7}
        finally:
            await emulator.stop()
