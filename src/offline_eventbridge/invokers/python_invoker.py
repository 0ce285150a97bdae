"""
In-process execution of Python Lambda handlers.

The ``handler`` of a function definition (``src/orders/lambda_function.lambda_handler``)
is resolved relative to the service directory, its module is imported from the
file and the function is called with the event and a local Lambda context.
"""

import asyncio
import importlib.util
import inspect
import time
from pathlib import Path
from types import ModuleType
from typing import Any, Callable, Dict, Mapping, Optional, Union
from uuid import uuid4

from aws_lambda_powertools.utilities.typing import LambdaContext

from offline_eventbridge.handlers.utils.observability import logger
from offline_eventbridge.invokers import BaseInvoker, HandlerNotFoundError
from offline_eventbridge.models.service_definition import FunctionDefinition

SUBSYSTEM = 'invoker'

DEFAULT_TIMEOUT_SECONDS = 6
DEFAULT_MEMORY_MB = 1024


class LocalLambdaContext(LambdaContext):
    """Lambda context for a locally executed handler."""

    def __init__(
        self,
        function_name: str,
        region: str = 'us-east-1',
        account: str = '',
        timeout_seconds: int = DEFAULT_TIMEOUT_SECONDS,
        memory_limit_in_mb: int = DEFAULT_MEMORY_MB,
    ) -> None:
        self._function_name = function_name
        self._function_version = '$LATEST'
        self._invoked_function_arn = f'arn:aws:lambda:{region}:{account or "000000000000"}:function:{function_name}'
        self._memory_limit_in_mb = memory_limit_in_mb
        self._aws_request_id = str(uuid4())
        self._log_group_name = f'/aws/lambda/{function_name}'
        self._log_stream_name = f'offline/[$LATEST]{uuid4().hex}'
        self._identity = None
        self._client_context = None
        self._deadline = time.monotonic() + timeout_seconds

    def get_remaining_time_in_millis(self) -> int:
        return max(0, int((self._deadline - time.monotonic()) * 1000))


class PythonHandlerInvoker(BaseInvoker):
    """Runs handlers in the current process; sync handlers run in a worker thread."""

    def __init__(
        self,
        functions: Mapping[str, FunctionDefinition],
        service_dir: Union[str, Path] = '.',
        function_names: Optional[Mapping[str, str]] = None,
        region: str = 'us-east-1',
        account: str = '',
    ) -> None:
        self._functions = dict(functions)
        self._service_dir = Path(service_dir)
        self._function_names = dict(function_names or {})
        self._region = region
        self._account = account
        self._handlers: Dict[str, Callable[..., Any]] = {}

    def resolve_handler(self, function_key: str) -> Callable[..., Any]:
        """
        Import and cache the handler of ``function_key``.

        Raises:
            HandlerNotFoundError: If the function or its handler cannot be found
        """
        if function_key in self._handlers:
            return self._handlers[function_key]

        definition = self._functions.get(function_key)
        if definition is None or not definition.handler:
            raise HandlerNotFoundError(f'No handler declared for function {function_key}', function_key)

        module_path, _, attribute = definition.handler.rpartition('.')
        if not module_path or not attribute:
            raise HandlerNotFoundError(f'Invalid handler path {definition.handler!r}', function_key)

        module = self._load_module(function_key, self._service_dir / f'{module_path}.py')
        handler = getattr(module, attribute, None)
        if not callable(handler):
            raise HandlerNotFoundError(
                f'Handler {attribute!r} not found in {module_path}.py', function_key
            )

        self._handlers[function_key] = handler
        logger.debug(
            f'Loaded handler {definition.handler}',
            extra={'subsystem': SUBSYSTEM, 'function_key': function_key}
        )
        return handler

    async def invoke(self, function_key: str, event: Dict[str, Any]) -> Any:
        handler = self.resolve_handler(function_key)
        context = LocalLambdaContext(
            function_name=self._function_names.get(function_key, function_key),
            region=self._region,
            account=self._account,
        )

        if inspect.iscoroutinefunction(handler):
            return await handler(event, context)
        return await asyncio.to_thread(handler, event, context)

    async def cleanup(self) -> None:
        self._handlers.clear()

    @staticmethod
    def _load_module(function_key: str, file_path: Path) -> ModuleType:
        if not file_path.is_file():
            raise HandlerNotFoundError(f'Handler module {file_path} does not exist', function_key)

        spec = importlib.util.spec_from_file_location(f'offline_handler_{function_key}', file_path)
        if spec is None or spec.loader is None:
            raise HandlerNotFoundError(f'Cannot import handler module {file_path}', function_key)

        module = importlib.util.module_from_spec(spec)
        spec.loader.exec_module(module)
        return module
