"""
Unit tests for serverless.yml loading.
"""

import pytest

from offline_eventbridge.handlers.utils.serverless_config import (
    ServiceDefinitionError,
    load_service_definition,
    load_yaml,
)


class TestLoadYaml:
    """Test cases for CloudFormation short-form tags."""

    def test_ref(self):
        assert load_yaml('bus: !Ref OrdersBus') == {'bus': {'Ref': 'OrdersBus'}}

    def test_get_att_scalar(self):
        assert load_yaml('bus: !GetAtt OrdersBus.Arn') == {'bus': {'Fn::GetAtt': ['OrdersBus', 'Arn']}}

    def test_get_att_sequence(self):
        assert load_yaml('bus: !GetAtt [OrdersBus, Arn]') == {'bus': {'Fn::GetAtt': ['OrdersBus', 'Arn']}}

    def test_import_value(self):
        assert load_yaml('bus: !ImportValue shared-bus') == {'bus': {'Fn::ImportValue': 'shared-bus'}}

    def test_other_tags(self):
        document = load_yaml('name: !Sub "${AWS::StackName}-bus"\nlist: !Join ["-", [a, b]]')

        assert document == {
            'name': {'Fn::Sub': '${AWS::StackName}-bus'},
            'list': {'Fn::Join': ['-', ['a', 'b']]},
        }

    def test_plain_yaml(self):
        assert load_yaml('a:\n  b: [1, 2]') == {'a': {'b': [1, 2]}}


class TestLoadServiceDefinition:
    """Test cases for loading a service definition file."""

    def test_load(self, service_dir):
        service = load_service_definition(service_dir / 'serverless.yml')

        assert service.service_name == 'orders'
        assert service.get_all_functions() == ['orderPlaced', 'audit', 'nightly']
        assert service.event_bus_resources() == {'OrdersBus': 'orders-bus'}
        trigger = service.get_function('orderPlaced').event_bridge_triggers()[0]
        assert trigger['eventBus'] == {'Ref': 'OrdersBus'}

    def test_missing_file(self, tmp_path):
        with pytest.raises(ServiceDefinitionError, match='Cannot read'):
            load_service_definition(tmp_path / 'missing.yml')

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / 'serverless.yml'
        path.write_text('service: [unclosed', encoding='utf-8')

        with pytest.raises(ServiceDefinitionError, match='Cannot parse'):
            load_service_definition(path)

    def test_not_a_mapping(self, tmp_path):
        path = tmp_path / 'serverless.yml'
        path.write_text('- just\n- a list\n', encoding='utf-8')

        with pytest.raises(ServiceDefinitionError, match='must be a mapping'):
            load_service_definition(path)

    def test_invalid_definition(self, tmp_path):
        path = tmp_path / 'serverless.yml'
        path.write_text('service: orders\nfunctions:\n  a:\n    events: 5\n', encoding='utf-8')

        with pytest.raises(ServiceDefinitionError, match='Invalid service definition'):
            load_service_definition(path)
