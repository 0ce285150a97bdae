"""
PutEvents ingestion endpoint.

Accepts any method on any path (AWS SDKs POST to ``/`` with an
``X-Amz-Target`` header), publishes the submitted entries to the broadcast
channel and answers with a PutEvents response. Delivery happens asynchronously
on the consumer side; the response never waits for handlers.
"""

import json
from typing import Any, Callable, List

from aiohttp import web

from offline_eventbridge.handlers.utils.observability import logger
from offline_eventbridge.models.output import ErrorOutput, PutEventsResponse

SUBSYSTEM = 'ingestion'

CORS_HEADERS = {
    'Access-Control-Allow-Origin': '*',
    'Access-Control-Allow-Headers': (
        'Origin, X-Requested-With, Content-Type, Accept, Authorization, Content-Length, '
        'ETag, X-CSRF-Token, Content-Disposition'
    ),
    'Access-Control-Allow-Methods': 'PUT, POST, GET, DELETE, HEAD, OPTIONS',
}

PublishEntries = Callable[[List[Any]], None]


@web.middleware
async def cors_middleware(request: web.Request, handler) -> web.StreamResponse:
    try:
        response = await handler(request)
    except web.HTTPException as exc:
        exc.headers.update(CORS_HEADERS)
        raise
    response.headers.update(CORS_HEADERS)
    return response


def _validation_error(message: str) -> web.Response:
    logger.warning(message, extra={'subsystem': SUBSYSTEM})
    body = ErrorOutput(error_type='ValidationException', message=message).to_body()
    return web.json_response(body, status=400, content_type='application/x-amz-json-1.1')


def create_ingestion_app(publish: PublishEntries, payload_size_limit: int = 10 * 1024 * 1024) -> web.Application:
    """
    Build the ingestion application.

    Args:
        publish: Called with the list of raw entries of each accepted request
        payload_size_limit: Maximum request body size in bytes

    Returns:
        Configured aiohttp application
    """

    async def put_events(request: web.Request) -> web.Response:
        if request.method == 'OPTIONS':
            return web.Response(status=200)

        raw = await request.read()
        try:
            body = json.loads(raw or b'{}')
        except ValueError as exc:
            return _validation_error(f'Request body is not valid JSON: {exc}')

        entries = body.get('Entries') if isinstance(body, dict) else None
        if not isinstance(entries, list):
            return _validation_error('Entries must be a list')

        publish(entries)
        logger.debug(
            f'Accepted {len(entries)} entries',
            extra={'subsystem': SUBSYSTEM, 'entries': len(entries)}
        )

        return web.json_response(
            PutEventsResponse.for_entries(entries).to_body(),
            content_type='application/x-amz-json-1.1',
        )

    app = web.Application(client_max_size=payload_size_limit, middlewares=[cors_middleware])
    app.router.add_route('*', '/{tail:.*}', put_events)
    return app
