"""
Unit tests for content-based filtering.

This module tests flattening, single-leaf evaluation of every supported
operator and the full ``matches`` decision across bus, source, detail-type and
detail dimensions.
"""

import datetime

import pytest

from offline_eventbridge.logic.bus_registry import BusRegistry
from offline_eventbridge.logic.pattern_matcher import (
    InvalidEventPatternError,
    UnsupportedFilterOperatorError,
    compile_event_pattern,
    flatten_object,
    match_one,
    matches,
)
from offline_eventbridge.models.pattern import (
    AnyOfPattern,
    AnythingButPattern,
    ExistsPattern,
    PrefixPattern,
    ScalarPattern,
    UnsupportedPattern,
    parse_pattern,
)


@pytest.fixture
def bus_registry() -> BusRegistry:
    return BusRegistry({'MyBus': 'my-bus-name'}, {'shared-bus-export': 'shared-bus'})


class TestFlattenObject:
    """Test cases for dot-path flattening."""

    def test_nested_objects(self):
        """Test that nested mappings become dot-path keys."""
        assert flatten_object({'a': {'b': 1, 'c': {'d': 2}}}) == {'a.b': 1, 'a.c.d': 2}

    def test_arrays_are_leaves(self):
        """Test that arrays are not recursed into."""
        flattened = flatten_object({'a': [{'b': 1}], 'c': {'d': [1, 2]}})

        assert flattened == {'a': [{'b': 1}], 'c.d': [1, 2]}

    def test_dates_are_leaves(self):
        """Test that date-like values are kept as they are."""
        moment = datetime.datetime(2024, 1, 1, 12, 0)

        assert flatten_object({'meta': {'at': moment}}) == {'meta.at': moment}

    def test_empty_object(self):
        assert flatten_object({}) == {}


class TestParsePattern:
    """Test cases for parsing raw pattern leaves into variants."""

    def test_scalar(self):
        assert parse_pattern('svc.orders') == ScalarPattern('svc.orders')

    def test_array_of_alternatives(self):
        pattern = parse_pattern(['a', {'prefix': 'b'}])

        assert pattern == AnyOfPattern((ScalarPattern('a'), PrefixPattern('b')))

    def test_operators(self):
        assert parse_pattern({'exists': False}) == ExistsPattern(False)
        assert parse_pattern({'anything-but': 'x'}) == AnythingButPattern(ScalarPattern('x'))

    def test_unknown_operator_is_kept(self):
        pattern = parse_pattern({'numeric': ['>', 0]})

        assert isinstance(pattern, UnsupportedPattern)
        assert pattern.operator == 'numeric'


class TestMatchOne:
    """Test cases for single-leaf evaluation."""

    def test_scalar_equality(self):
        assert match_one({'status': 'placed'}, 'status', 'placed') is True
        assert match_one({'status': 'placed'}, 'status', 'shipped') is False

    def test_scalar_requires_field(self):
        assert match_one({}, 'status', 'placed') is False

    def test_scalar_array_membership(self):
        """Test that a scalar matches when the field is an array containing it."""
        assert match_one({'tags': ['a', 'b']}, 'tags', 'b') is True
        assert match_one({'tags': ['a', 'b']}, 'tags', 'c') is False

    def test_booleans_do_not_equal_numbers(self):
        assert match_one({'flag': 1}, 'flag', True) is False
        assert match_one({'flag': True}, 'flag', True) is True

    def test_array_pattern_is_or(self):
        assert match_one({'status': 'shipped'}, 'status', ['placed', 'shipped']) is True
        assert match_one({'status': 'lost'}, 'status', ['placed', 'shipped']) is False

    def test_exists(self):
        assert match_one({'a': 0}, 'a', {'exists': True}) is True
        assert match_one({}, 'a', {'exists': True}) is False
        assert match_one({}, 'a', {'exists': False}) is True
        assert match_one({'a': 'x'}, 'a', {'exists': False}) is False

    def test_null_counts_as_absent_for_exists(self):
        """Test that an explicit null fails exists:true and passes exists:false."""
        assert match_one({'a': None}, 'a', {'exists': True}) is False
        assert match_one({'a': None}, 'a', {'exists': False}) is True

    def test_null_scalar_matches_explicit_null(self):
        assert match_one({'a': None}, 'a', [None]) is True
        assert match_one({}, 'a', [None]) is False

    @pytest.mark.parametrize('container', [{'f': 'abc'}, {'f': 'xyz'}, {'f': 3}, {}])
    @pytest.mark.parametrize('inner', ['abc', {'prefix': 'ab'}, {'exists': True}, ['xyz', 'abc']])
    def test_anything_but_negates_inner(self, container, inner):
        """Test that anything-but is the negation of its operand, including absent fields."""
        assert match_one(container, 'f', {'anything-but': inner}) is not match_one(container, 'f', inner)

    def test_prefix(self):
        assert match_one({'f': 'abc'}, 'f', {'prefix': 'ab'}) is True
        assert match_one({'f': 'xab'}, 'f', {'prefix': 'ab'}) is False

    @pytest.mark.parametrize('container', [{}, {'f': 12}, {'f': ['ab']}, {'f': None}])
    def test_prefix_requires_string_field(self, container):
        assert match_one(container, 'f', {'prefix': 'ab'}) is False

    def test_unsupported_operator_raises(self):
        with pytest.raises(UnsupportedFilterOperatorError) as exc_info:
            match_one({'amount': 5}, 'amount', [{'numeric': ['>', 0]}])

        assert exc_info.value.operator == 'numeric'
        assert 'numeric' in str(exc_info.value)

    def test_missing_container(self):
        assert match_one(None, 'f', {'exists': False}) is False


class TestMatches:
    """Test cases for the full subscriber decision."""

    def test_unconstrained_subscriber_matches_everything(self, make_entry, make_subscriber, bus_registry):
        subscriber = make_subscriber()

        assert matches(make_entry(), subscriber, bus_registry) is True
        assert matches(make_entry(source='anything', detail='not json'), subscriber, bus_registry) is True

    def test_source_filter(self, make_entry, make_subscriber, bus_registry):
        subscriber = make_subscriber(pattern={'source': ['svc.orders']})

        assert matches(make_entry(source='svc.orders'), subscriber, bus_registry) is True
        assert matches(make_entry(source='svc.billing'), subscriber, bus_registry) is False

    def test_source_filter_with_missing_source(self, make_entry, make_subscriber, bus_registry):
        subscriber = make_subscriber(pattern={'source': ['svc.orders']})

        assert matches(make_entry(source=None), subscriber, bus_registry) is False

    def test_source_prefix(self, make_entry, make_subscriber, bus_registry):
        subscriber = make_subscriber(pattern={'source': [{'prefix': 'svc.'}]})

        assert matches(make_entry(source='svc.orders'), subscriber, bus_registry) is True
        assert matches(make_entry(source='app.orders'), subscriber, bus_registry) is False

    def test_detail_type_filter(self, make_entry, make_subscriber, bus_registry):
        subscriber = make_subscriber(pattern={'detail-type': ['OrderPlaced']})

        assert matches(make_entry(detail_type='OrderPlaced'), subscriber, bus_registry) is True
        assert matches(make_entry(detail_type='OrderShipped'), subscriber, bus_registry) is False

    def test_detail_type_filter_skipped_without_detail_type(self, make_entry, make_subscriber, bus_registry):
        subscriber = make_subscriber(pattern={'detail-type': ['OrderPlaced']})

        assert matches(make_entry(detail_type=None), subscriber, bus_registry) is True

    def test_detail_filter(self, make_entry, make_subscriber, bus_registry):
        subscriber = make_subscriber(pattern={'detail': {'order': {'status': ['placed']}, 'amount': [{'exists': True}]}})

        assert matches(make_entry(detail={'order': {'status': 'placed'}, 'amount': 42}), subscriber, bus_registry) is True
        assert matches(make_entry(detail={'order': {'status': 'shipped'}, 'amount': 42}), subscriber, bus_registry) is False
        assert matches(make_entry(detail={'order': {'status': 'placed'}}), subscriber, bus_registry) is False

    def test_detail_filter_absent_key_with_exists_false(self, make_entry, make_subscriber, bus_registry):
        subscriber = make_subscriber(pattern={'detail': {'cancelled': [{'exists': False}]}})

        assert matches(make_entry(detail={'amount': 1}), subscriber, bus_registry) is True
        assert matches(make_entry(detail={'cancelled': True}), subscriber, bus_registry) is False

    def test_detail_filter_skipped_without_detail(self, make_entry, make_subscriber, bus_registry):
        subscriber = make_subscriber(pattern={'detail': {'amount': [{'exists': True}]}})

        assert matches(make_entry(detail=None), subscriber, bus_registry) is True

    def test_detail_filter_fails_on_invalid_json(self, make_entry, make_subscriber, bus_registry):
        subscriber = make_subscriber(pattern={'detail': {'amount': [{'exists': False}]}})

        assert matches(make_entry(detail='{not json'), subscriber, bus_registry) is False

    def test_detail_mapping_is_used_as_is(self, make_subscriber, bus_registry):
        from offline_eventbridge.models.entry import EventEntry

        subscriber = make_subscriber(pattern={'detail': {'amount': [42]}})
        entry = EventEntry(Source='svc.orders', Detail={'amount': 42})

        assert matches(entry, subscriber, bus_registry) is True

    def test_all_dimensions_must_pass(self, make_entry, make_subscriber, bus_registry):
        subscriber = make_subscriber(
            pattern={'source': ['svc.orders'], 'detail-type': ['OrderPlaced'], 'detail': {'amount': [42]}},
            event_bus={'Ref': 'MyBus'},
        )
        entry = make_entry(detail={'amount': 42}, event_bus_name='my-bus-name')

        assert matches(entry, subscriber, bus_registry) is True
        assert matches(make_entry(detail={'amount': 41}, event_bus_name='my-bus-name'), subscriber, bus_registry) is False
        assert matches(make_entry(detail={'amount': 42}, event_bus_name='other'), subscriber, bus_registry) is False

    def test_bus_constraint(self, make_entry, make_subscriber, bus_registry):
        subscriber = make_subscriber(event_bus={'Ref': 'MyBus'})

        assert matches(make_entry(event_bus_name='my-bus-name-dev'), subscriber, bus_registry) is True
        assert matches(make_entry(event_bus_name='other'), subscriber, bus_registry) is False

    def test_bus_constraint_skipped_without_bus_name(self, make_entry, make_subscriber, bus_registry):
        subscriber = make_subscriber(event_bus={'Ref': 'MyBus'})

        assert matches(make_entry(), subscriber, bus_registry) is True

    def test_unsupported_operator_propagates(self, make_entry, make_subscriber, bus_registry):
        subscriber = make_subscriber(pattern={'detail': {'amount': [{'numeric': ['>', 10]}]}})

        with pytest.raises(UnsupportedFilterOperatorError):
            matches(make_entry(detail={'amount': 42}), subscriber, bus_registry)


class TestCompileEventPattern:
    """Test cases for pattern compilation."""

    def test_empty_pattern(self):
        assert compile_event_pattern(None) is None
        assert compile_event_pattern({}) is None

    def test_detail_is_flattened(self):
        compiled = compile_event_pattern({'detail': {'order': {'status': ['placed']}}})

        assert compiled.source is None
        assert compiled.detail == (('order.status', AnyOfPattern((ScalarPattern('placed'),))),)

    @pytest.mark.parametrize('raw', [
        {'detail': ['amount']},
        {'detail': 'amount'},
        ['svc.orders'],
    ])
    def test_malformed_pattern_rejected(self, raw):
        with pytest.raises(InvalidEventPatternError):
            compile_event_pattern(raw)
