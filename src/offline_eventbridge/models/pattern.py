"""
Filter pattern variants for content-based filtering.

A raw EventBridge pattern leaf is parsed once into one of a closed set of
variants; the matcher evaluates variants structurally instead of probing raw
JSON types on every match.
https://docs.aws.amazon.com/eventbridge/latest/userguide/eb-event-patterns-content-based-filtering.html
"""

from dataclasses import dataclass
from typing import Any, Mapping, Optional, Tuple, Union

EXISTS = 'exists'
ANYTHING_BUT = 'anything-but'
PREFIX = 'prefix'


@dataclass(frozen=True)
class ScalarPattern:
    """Literal value; equality, or membership when the field holds an array."""

    value: Any


@dataclass(frozen=True)
class ExistsPattern:
    """``{"exists": bool}`` - presence or absence of the field."""

    present: bool


@dataclass(frozen=True)
class AnythingButPattern:
    """``{"anything-but": p}`` - negation of ``p``."""

    inner: 'FilterPattern'


@dataclass(frozen=True)
class PrefixPattern:
    """``{"prefix": s}`` - string field starting with ``s``."""

    prefix: str


@dataclass(frozen=True)
class AnyOfPattern:
    """Array of alternatives; matches when any alternative matches."""

    alternatives: Tuple['FilterPattern', ...]


@dataclass(frozen=True)
class UnsupportedPattern:
    """Operator the emulator does not implement (numeric, cidr, ...)."""

    operator: str
    raw: Any = None


FilterPattern = Union[
    ScalarPattern,
    ExistsPattern,
    AnythingButPattern,
    PrefixPattern,
    AnyOfPattern,
    UnsupportedPattern,
]


def parse_pattern(raw: Any) -> FilterPattern:
    """
    Parse a raw pattern leaf into its variant.

    Unknown operators are kept as ``UnsupportedPattern`` so the failure surfaces
    when the pattern is evaluated.
    """
    if isinstance(raw, (list, tuple)):
        return AnyOfPattern(tuple(parse_pattern(item) for item in raw))

    if not isinstance(raw, Mapping):
        return ScalarPattern(raw)

    if EXISTS in raw:
        return ExistsPattern(bool(raw[EXISTS]))

    if ANYTHING_BUT in raw:
        return AnythingButPattern(parse_pattern(raw[ANYTHING_BUT]))

    if PREFIX in raw:
        return PrefixPattern(raw[PREFIX])

    operator: Optional[str] = next(iter(raw), None)
    return UnsupportedPattern(operator=str(operator), raw=dict(raw))
