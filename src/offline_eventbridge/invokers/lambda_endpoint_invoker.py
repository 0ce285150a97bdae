"""
Handler execution through a local Lambda Invoke API.

Used when handlers are served by another local emulator (for example the
serverless-offline Lambda port). boto3 is blocking, so calls run in a worker
thread.
"""

import asyncio
import json
import os
from typing import Any, Dict, Mapping, Optional

import boto3
from botocore.config import Config

from offline_eventbridge.handlers.utils.observability import logger
from offline_eventbridge.invokers import BaseInvoker, HandlerInvocationError

SUBSYSTEM = 'invoker'


class LambdaEndpointInvoker(BaseInvoker):
    """Invokes functions with ``lambda.invoke`` (RequestResponse)."""

    def __init__(
        self,
        endpoint_url: str,
        function_names: Optional[Mapping[str, str]] = None,
        region: str = 'us-east-1',
        client: Optional[Any] = None,
    ) -> None:
        self.endpoint_url = endpoint_url
        self._function_names = dict(function_names or {})
        # retries are owned by the dispatcher
        self._client = client or boto3.client(
            'lambda',
            endpoint_url=endpoint_url,
            region_name=region,
            aws_access_key_id=os.environ.get('AWS_ACCESS_KEY_ID', 'offline'),
            aws_secret_access_key=os.environ.get('AWS_SECRET_ACCESS_KEY', 'offline'),
            config=Config(retries={'max_attempts': 0}),
        )
        logger.debug(
            'Lambda endpoint invoker initialized',
            extra={'subsystem': SUBSYSTEM, 'endpoint_url': endpoint_url}
        )

    def function_name(self, function_key: str) -> str:
        return self._function_names.get(function_key, function_key)

    async def invoke(self, function_key: str, event: Dict[str, Any]) -> Any:
        return await asyncio.to_thread(self._invoke_sync, function_key, event)

    def _invoke_sync(self, function_key: str, event: Dict[str, Any]) -> Any:
        response = self._client.invoke(
            FunctionName=self.function_name(function_key),
            InvocationType='RequestResponse',
            Payload=json.dumps(event).encode('utf-8'),
        )

        raw = response['Payload'].read() if 'Payload' in response else b''
        try:
            payload = json.loads(raw) if raw else None
        except ValueError:
            payload = raw.decode('utf-8', errors='replace')

        if response.get('FunctionError'):
            raise HandlerInvocationError(
                f'{function_key} returned {response["FunctionError"]}: {payload}',
                function_key,
                payload,
            )
        return payload
