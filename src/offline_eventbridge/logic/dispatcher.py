"""
Fan-out dispatcher with bounded, fixed-delay retries.

For every entry and every subscriber whose pattern matches, an invocation task
is started. Tasks of one batch run concurrently and independently; within one
task, attempts are sequential with a fixed delay between them.
"""

import asyncio
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Iterable, List, Optional, Sequence, Tuple

from offline_eventbridge.handlers.utils.observability import logger
from offline_eventbridge.invokers import BaseInvoker
from offline_eventbridge.logic.bus_registry import BusRegistry
from offline_eventbridge.logic.event_converter import EventConverter
from offline_eventbridge.logic.pattern_matcher import matches
from offline_eventbridge.logic.retry_policy import RetryPolicy
from offline_eventbridge.models.entry import EventEntry
from offline_eventbridge.models.subscription import Subscriber

SUBSYSTEM = 'dispatcher'


@dataclass
class PendingInvocation:
    """An invocation task started by ``Dispatcher.route``."""

    function_key: str
    entry: EventEntry
    task: 'asyncio.Task[Any]'


@dataclass
class InvocationResult:
    """Settled outcome of one (function, entry) invocation."""

    function_key: str
    success: bool
    result: Any = None
    error: Optional[BaseException] = None


class Dispatcher:
    """Routes entries to matching subscribers and invokes their handlers."""

    def __init__(
        self,
        subscribers: Sequence[Subscriber],
        bus_registry: BusRegistry,
        invoker: BaseInvoker,
        converter: Optional[EventConverter] = None,
        retry_policy: Optional[RetryPolicy] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self._subscribers = tuple(subscribers)
        self._bus_registry = bus_registry
        self._invoker = invoker
        self._converter = converter or EventConverter()
        self._retry_policy = retry_policy or RetryPolicy()
        self._sleep = sleep

    @property
    def subscribers(self) -> Sequence[Subscriber]:
        return self._subscribers

    @property
    def retry_policy(self) -> RetryPolicy:
        return self._retry_policy

    def matching_subscribers(self, entry: EventEntry) -> List[Subscriber]:
        """
        Subscribers that should receive ``entry``.

        Raises:
            UnsupportedFilterOperatorError: If a pattern uses an unsupported operator.
        """
        return [
            subscriber for subscriber in self._subscribers
            if matches(entry, subscriber, self._bus_registry)
        ]

    def route(self, entries: Optional[Iterable[EventEntry]]) -> List[PendingInvocation]:
        """
        Start one invocation task per matching (entry, subscriber) pair.

        The whole batch is matched before any task starts, so an unsupported
        operator in a later entry leaves no invocation running.
        Must be called from a running event loop.

        Raises:
            UnsupportedFilterOperatorError: If a pattern uses an unsupported operator.
        """
        if not entries:
            return []

        matched: List[Tuple[Subscriber, EventEntry]] = [
            (subscriber, entry)
            for entry in entries
            for subscriber in self.matching_subscribers(entry)
        ]

        pending: List[PendingInvocation] = []
        for subscriber, entry in matched:
            task = asyncio.create_task(
                self.invoke(subscriber.function_key, entry),
                name=f'invoke:{subscriber.function_key}',
            )
            pending.append(PendingInvocation(subscriber.function_key, entry, task))
        return pending

    async def dispatch(self, entries: Optional[Iterable[EventEntry]]) -> List[InvocationResult]:
        """
        Route ``entries`` and wait until every invocation has settled.

        A terminal failure of one invocation is reported in its result and
        does not affect the others.
        """
        pending = self.route(entries)
        if not pending:
            return []

        outcomes = await asyncio.gather(*(item.task for item in pending), return_exceptions=True)

        results: List[InvocationResult] = []
        for item, outcome in zip(pending, outcomes):
            if isinstance(outcome, BaseException):
                results.append(InvocationResult(item.function_key, success=False, error=outcome))
            else:
                results.append(InvocationResult(item.function_key, success=True, result=outcome))
        return results

    async def invoke(self, function_key: str, entry: EventEntry) -> Any:
        """
        Invoke one handler, retrying failures with a fixed delay.

        The entry is converted once; every attempt receives the same event.

        Raises:
            Exception: The error of the final attempt once retries are exhausted.
        """
        event = self._converter.convert(entry)
        policy = self._retry_policy
        attempt = 0

        while True:
            try:
                result = await self._invoker.invoke(function_key, event)
            except Exception as exc:
                if not policy.should_retry(attempt):
                    logger.error(
                        f'error: {exc} occurred in {function_key} on attempt {attempt}, max attempts reached',
                        extra={
                            'subsystem': SUBSYSTEM,
                            'function_key': function_key,
                            'attempt': attempt,
                            'max_attempts': policy.max_retry_attempts,
                            'event_id': event.get('id'),
                            'error': str(exc),
                        }
                    )
                    raise

                logger.warning(
                    f'error: {exc} occurred in {function_key} on {attempt}/{policy.max_retry_attempts}, will retry',
                    extra={
                        'subsystem': SUBSYSTEM,
                        'function_key': function_key,
                        'attempt': attempt,
                        'max_attempts': policy.max_retry_attempts,
                        'error': str(exc),
                    }
                )
                await self._sleep(policy.delay_seconds)
                attempt += 1
                continue

            logger.debug(
                f'{function_key} successfully processed event with id {event.get("id")}',
                extra={
                    'subsystem': SUBSYSTEM,
                    'function_key': function_key,
                    'attempt': attempt,
                    'event_id': event.get('id'),
                }
            )
            return result
