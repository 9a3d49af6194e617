#!/usr/bin/env python3
"""
Tests for Web3 Function user args encoding
"""

import pytest
from eth_abi import decode

from keeper_scripts.errors import ConfigError
from keeper_scripts.user_args import encode_user_args, load_user_arg_types


class TestLoadUserArgTypes:
    """Test class for load_user_arg_types"""

    def test_declaration_order_kept(self, settings, write_schema):
        """Test user args come back in the order the schema declares them"""
        write_schema('xchain-oracle-ticker', {'maxDelta': 'string', 'gasLimit': 'string', 'enabled': 'boolean'})

        types = load_user_arg_types(settings.web3_functions_path, 'xchain-oracle-ticker')

        assert list(types.items()) == [('maxDelta', 'string'), ('gasLimit', 'string'), ('enabled', 'boolean')]

    def test_missing_schema(self, settings):
        """Test a missing schema.json is a config error"""
        with pytest.raises(ConfigError, match="No schema.json for kill-switch"):
            load_user_arg_types(settings.web3_functions_path, 'kill-switch')

    def test_schema_without_user_args(self, settings, write_schema):
        """Test a schema declaring no user args gives none"""
        write_schema('kill-switch', None)
        assert load_user_arg_types(settings.web3_functions_path, 'kill-switch') == {}

    def test_invalid_user_args(self, settings, write_schema):
        """Test userArgs must be an object"""
        write_schema('kill-switch', ['maxDelta'])
        with pytest.raises(ConfigError, match="no valid userArgs"):
            load_user_arg_types(settings.web3_functions_path, 'kill-switch')


class TestEncodeUserArgs:
    """Test class for encode_user_args"""

    def test_encoded_in_schema_order(self):
        """Test values are ABI-encoded with the mapped types in schema order"""
        types = {'gasLimit': 'string', 'sendSlackMessages': 'boolean', 'chains': 'number[]'}
        args = {'chains': [10, 8453], 'sendSlackMessages': False, 'gasLimit': '800000'}

        encoded = encode_user_args(types, args)

        assert decode(['string', 'bool', 'int256[]'], encoded) == ('800000', False, (10, 8453))

    def test_key_order_irrelevant(self):
        """Test the config's key order does not change the encoding"""
        types = {'maxDelta': 'string', 'gasLimit': 'string'}
        first = encode_user_args(types, {'maxDelta': '604800', 'gasLimit': '800000'})
        second = encode_user_args(types, {'gasLimit': '800000', 'maxDelta': '604800'})
        assert first == second

    def test_no_user_args(self):
        """Test a function without user args encodes to empty bytes"""
        assert encode_user_args({}, {}) == b''

    def test_missing_arg(self):
        """Test every declared arg must be present"""
        with pytest.raises(ConfigError, match="User arg gasLimit is missing"):
            encode_user_args({'gasLimit': 'string'}, {})

    def test_undeclared_arg(self):
        """Test args the schema does not declare are rejected"""
        with pytest.raises(ConfigError, match="extra"):
            encode_user_args({}, {'extra': '1'})

    @pytest.mark.parametrize('schema_type, value', [
        ('string', 800000),
        ('boolean', 'true'),
        ('number', True),
        ('number', 1.5),
        ('string[]', 'a'),
        ('number[]', ['1']),
    ])
    def test_wrong_value_type(self, schema_type, value):
        """Test values must match their declared schema type"""
        with pytest.raises(ConfigError):
            encode_user_args({'arg': schema_type}, {'arg': value})

    def test_unsupported_type(self):
        """Test schema types without an ABI mapping are rejected"""
        with pytest.raises(ConfigError, match="object is not supported"):
            encode_user_args({'arg': 'object'}, {'arg': {}})
