"""
Handler execution collaborators.

The routing engine only decides whether and with what payload a handler runs;
an invoker performs the call. Two implementations are provided:

- PythonHandlerInvoker: imports the handler module and runs it in-process
- LambdaEndpointInvoker: calls the Lambda Invoke API of a local endpoint
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, Optional


class HandlerInvocationError(Exception):
    """Raised when a handler reports a failure."""

    def __init__(self, message: str, function_key: str, payload: Optional[Any] = None):
        super().__init__(message)
        self.function_key = function_key
        self.payload = payload


class HandlerNotFoundError(HandlerInvocationError):
    """Raised when a function key or handler path cannot be resolved."""
    pass


class BaseInvoker(ABC):
    """Opaque async call into an externally managed handler."""

    @abstractmethod
    async def invoke(self, function_key: str, event: Dict[str, Any]) -> Any:
        """Run the handler bound to ``function_key`` with ``event``; raise on failure."""
        pass

    async def cleanup(self) -> None:
        """Release resources held by the invoker."""
        return None


__all__ = [
    "BaseInvoker",
    "HandlerInvocationError",
    "HandlerNotFoundError",
]
