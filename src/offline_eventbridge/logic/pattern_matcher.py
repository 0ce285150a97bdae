"""
Content-based filtering for EventBridge event patterns.

Implements the subset of the EventBridge pattern language the emulator
supports: literal values, arrays of alternatives, ``exists``, ``anything-but``
and ``prefix``. Any other operator raises ``UnsupportedFilterOperatorError``.
https://docs.aws.amazon.com/eventbridge/latest/userguide/eb-event-patterns-content-based-filtering.html
"""

import json
from typing import Any, Dict, List, Mapping, Optional

from offline_eventbridge.handlers.utils.observability import logger
from offline_eventbridge.logic.bus_registry import BusRegistry
from offline_eventbridge.models.entry import EventEntry
from offline_eventbridge.models.pattern import (
    AnyOfPattern,
    AnythingButPattern,
    ExistsPattern,
    FilterPattern,
    PrefixPattern,
    ScalarPattern,
    UnsupportedPattern,
    parse_pattern,
)
from offline_eventbridge.models.subscription import CompiledEventPattern, Subscriber

SUBSYSTEM = 'pattern-matcher'


class UnsupportedFilterOperatorError(ValueError):
    """Raised when a pattern uses an operator the emulator does not implement."""

    def __init__(self, operator: str):
        super().__init__(
            f'The {operator} eventBridge filter is not supported in offline-eventbridge yet. '
            f'Please consider submitting a PR to support it.'
        )
        self.operator = operator


class InvalidEventPatternError(ValueError):
    """Raised when an ``eventBridge.pattern`` block does not have the shape of an event pattern."""


def flatten_object(obj: Mapping[str, Any], prefix: str = '') -> Dict[str, Any]:
    """
    Flatten nested mappings into dot-path keys.

    Only mappings are recursed into; arrays, dates and scalars are leaves.
    ``{"a": {"b": 1, "c": {"d": 2}}}`` becomes ``{"a.b": 1, "a.c.d": 2}``.
    """
    flattened: Dict[str, Any] = {}
    for key, value in obj.items():
        path = f'{prefix}.{key}' if prefix else str(key)
        if isinstance(value, Mapping):
            flattened.update(flatten_object(value, path))
        else:
            flattened[path] = value
    return flattened


def compile_event_pattern(raw: Optional[Mapping[str, Any]]) -> Optional[CompiledEventPattern]:
    """
    Parse an ``eventBridge.pattern`` block once, at startup.

    Raises:
        InvalidEventPatternError: If the pattern or its ``detail`` is not a mapping.
    """
    if not raw:
        return None
    if not isinstance(raw, Mapping):
        raise InvalidEventPatternError(f'event pattern must be a mapping, got {type(raw).__name__}')

    detail = None
    if raw.get('detail'):
        if not isinstance(raw['detail'], Mapping):
            raise InvalidEventPatternError(
                f'event pattern detail must be a mapping, got {type(raw["detail"]).__name__}'
            )
        detail = tuple(
            (path, parse_pattern(value))
            for path, value in flatten_object(raw['detail']).items()
        )

    return CompiledEventPattern(
        source=parse_pattern(raw['source']) if raw.get('source') else None,
        detail_type=parse_pattern(raw['detail-type']) if raw.get('detail-type') else None,
        detail=detail,
    )


def _is_present(container: Mapping[str, Any], field: str) -> bool:
    # null is treated as absent by "exists"
    return field in container and container[field] is not None


def _strict_equals(left: Any, right: Any) -> bool:
    if isinstance(left, bool) or isinstance(right, bool):
        return isinstance(left, bool) and isinstance(right, bool) and left is right
    return left == right


def evaluate(pattern: FilterPattern, container: Optional[Mapping[str, Any]], field: str) -> bool:
    """Evaluate one pattern variant against ``container[field]``."""
    if container is None:
        return False

    if isinstance(pattern, AnyOfPattern):
        return any(evaluate(alternative, container, field) for alternative in pattern.alternatives)

    if isinstance(pattern, ScalarPattern):
        if field not in container:
            return False
        content = container[field]
        if isinstance(content, list):
            return any(_strict_equals(item, pattern.value) for item in content)
        return _strict_equals(content, pattern.value)

    if isinstance(pattern, ExistsPattern):
        return _is_present(container, field) == pattern.present

    if isinstance(pattern, AnythingButPattern):
        return not evaluate(pattern.inner, container, field)

    if isinstance(pattern, PrefixPattern):
        content = container.get(field)
        return (
            isinstance(content, str)
            and isinstance(pattern.prefix, str)
            and content.startswith(pattern.prefix)
        )

    if isinstance(pattern, UnsupportedPattern):
        raise UnsupportedFilterOperatorError(pattern.operator)

    raise TypeError(f'Unknown pattern variant: {pattern!r}')


def match_one(container: Optional[Mapping[str, Any]], field: str, pattern: Any) -> bool:
    """Evaluate a raw pattern leaf; a list is an OR over its elements."""
    return evaluate(parse_pattern(pattern), container, field)


def _parse_detail(entry: EventEntry) -> Optional[Mapping[str, Any]]:
    detail = entry.detail
    if isinstance(detail, Mapping):
        return detail
    try:
        parsed = json.loads(detail)
    except (TypeError, ValueError) as exc:
        logger.warning(
            'Entry detail is not valid JSON, detail filter will not match',
            extra={'subsystem': SUBSYSTEM, 'error': str(exc)}
        )
        return None
    return parsed if isinstance(parsed, Mapping) else {}


def matches(entry: EventEntry, subscriber: Subscriber, bus_registry: BusRegistry) -> bool:
    """
    Decide whether ``subscriber`` should receive ``entry``.

    Every constrained dimension (bus, source, detail-type, detail) must pass; a
    subscriber without constraints receives everything.

    Raises:
        UnsupportedFilterOperatorError: If the subscriber's pattern uses an
            operator the emulator does not implement.
    """
    checks: List[bool] = []

    if subscriber.event_bus and entry.event_bus_name:
        checks.append(bus_registry.resolve_bus_match(subscriber.event_bus, entry.event_bus_name))

    pattern = subscriber.pattern
    if pattern is not None:
        container = entry.as_container()

        if pattern.source is not None:
            checks.append(evaluate(pattern.source, container, 'Source'))

        if pattern.detail_type is not None and entry.detail_type:
            checks.append(evaluate(pattern.detail_type, container, 'DetailType'))

        if pattern.detail is not None and entry.detail:
            detail = _parse_detail(entry)
            if detail is None:
                checks.append(False)
            else:
                flattened = flatten_object(detail)
                for path, leaf in pattern.detail:
                    checks.append(evaluate(leaf, flattened, path))

    return all(checks)
