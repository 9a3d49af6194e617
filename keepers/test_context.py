#!/usr/bin/env python3
"""
Tests for the keeper runtime types
"""

import pytest

from keeper_scripts import triggers
from keeper_scripts.errors import AbiLookupError
from keeper_scripts.settings import DEFAULT_ABIS_PATH
from keepers.context import ABIS_PATH, CallData, Web3FunctionResult, load_abi


class TestLoadAbi:
    """Test class for load_abi"""

    def test_same_abis_as_deployment_scripts(self):
        """Test keepers read the ABI directory the deployment scripts use"""
        assert str(ABIS_PATH.resolve()) == DEFAULT_ABIS_PATH
        assert load_abi('Forwarder') == triggers.load_abi(DEFAULT_ABIS_PATH, 'Forwarder')

    def test_unknown_abi(self):
        """Test a missing ABI raises AbiLookupError"""
        with pytest.raises(AbiLookupError):
            load_abi('DoesNotExist')


class TestWeb3FunctionResult:
    """Test class for Web3FunctionResult"""

    def test_execute(self):
        """Test executable results keep their calls in order"""
        calls = [CallData(to='0x' + '0a' * 20, data='0x01'), CallData(to='0x' + '0b' * 20, data='0x02')]
        result = Web3FunctionResult.execute(calls)
        assert result.can_exec is True
        assert [call['data'] for call in result.to_dict()['callData']] == ['0x01', '0x02']
