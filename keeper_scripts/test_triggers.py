#!/usr/bin/env python3
"""
Tests for trigger translation
"""

import json

import pytest
from web3 import Web3

from keeper_scripts.configs import BlockTrigger, CronTrigger, EventTopic, EventTrigger, TimeTrigger
from keeper_scripts.errors import AbiLookupError, ConfigError, UnsupportedTriggerError
from keeper_scripts.settings import DEFAULT_ABIS_PATH
from keeper_scripts.triggers import TriggerType, create_trigger_config, event_topic, load_abi

AGGREGATOR = Web3.to_checksum_address('0x' + 'ab' * 20)
ANSWER_UPDATED_TOPIC = Web3.to_hex(Web3.keccak(text='AnswerUpdated(int256,uint256,uint256)'))


class TestCreateTriggerConfig:
    """Test class for create_trigger_config"""

    def test_block(self):
        """Test block triggers become a bare BLOCK config"""
        config = create_trigger_config(BlockTrigger(), DEFAULT_ABIS_PATH)
        assert config.type == TriggerType.BLOCK
        assert config.interval is None and config.cron is None and config.filter is None

    def test_cron(self):
        """Test cron expressions pass through"""
        config = create_trigger_config(CronTrigger(cron='0 * * * *'), DEFAULT_ABIS_PATH)
        assert config.type == TriggerType.CRON
        assert config.cron == '0 * * * *'

    def test_time(self):
        """Test time triggers keep their interval"""
        config = create_trigger_config(TimeTrigger(interval=3600000), DEFAULT_ABIS_PATH)
        assert config.type == TriggerType.TIME
        assert config.interval == 3600000

    def test_event_topic_matches_signature_hash(self):
        """Test event topics are the keccak of the event signature"""
        trigger = EventTrigger(
            address=AGGREGATOR,
            topics=[EventTopic('OracleAggregator', 'AnswerUpdated')],
            block_confirmations=0,
        )
        config = create_trigger_config(trigger, DEFAULT_ABIS_PATH)

        assert config.type == TriggerType.EVENT
        assert config.filter == {'address': AGGREGATOR, 'topics': [[ANSWER_UPDATED_TOPIC]]}
        assert config.block_confirmations == 0

    def test_event_topics_grouped_in_one_or_filter(self):
        """Test several topics share one OR group"""
        trigger = EventTrigger(
            address=AGGREGATOR,
            topics=[EventTopic('OracleAggregator', 'AnswerUpdated'), EventTopic('OracleAggregator', 'NewRound')],
            block_confirmations=3,
        )
        config = create_trigger_config(trigger, DEFAULT_ABIS_PATH)

        new_round = Web3.to_hex(Web3.keccak(text='NewRound(uint256,address,uint256)'))
        assert config.filter['topics'] == [[ANSWER_UPDATED_TOPIC, new_round]]
        assert config.block_confirmations == 3

    def test_missing_abi_file(self, tmp_path):
        """Test a missing ABI file raises AbiLookupError"""
        trigger = EventTrigger(address=AGGREGATOR, topics=[EventTopic('Missing', 'AnswerUpdated')])
        with pytest.raises(AbiLookupError, match="ABI Missing not found"):
            create_trigger_config(trigger, tmp_path)

    def test_missing_event(self):
        """Test an event absent from the ABI raises AbiLookupError"""
        trigger = EventTrigger(address=AGGREGATOR, topics=[EventTopic('OracleAggregator', 'Transfer')])
        with pytest.raises(AbiLookupError, match="Event Transfer not found"):
            create_trigger_config(trigger, DEFAULT_ABIS_PATH)

    def test_unknown_trigger(self):
        """Test unknown trigger objects are rejected"""
        with pytest.raises(UnsupportedTriggerError):
            create_trigger_config(object(), DEFAULT_ABIS_PATH)


class TestAbiLookup:
    """Test class for ABI loading and topic resolution"""

    def test_abi_lookup_error_is_config_and_lookup_error(self):
        """Test AbiLookupError is both a ConfigError and a LookupError"""
        assert issubclass(AbiLookupError, ConfigError)
        assert issubclass(AbiLookupError, LookupError)

    def test_load_build_artifact(self, tmp_path):
        """Test build artifacts are read through their abi key"""
        abi = load_abi(DEFAULT_ABIS_PATH, 'OracleAggregator')
        (tmp_path / 'Artifact.json').write_text(json.dumps({'contractName': 'Aggregator', 'abi': abi}))
        assert load_abi(tmp_path, 'Artifact') == abi

    def test_anonymous_event_topic(self):
        """Test anonymous events still resolve to their signature hash"""
        abi = load_abi(DEFAULT_ABIS_PATH, 'DSNote')
        expected = Web3.to_hex(Web3.keccak(text='LogNote(bytes4,address,bytes32,bytes32,bytes)'))
        assert event_topic(abi, 'LogNote') == expected

    def test_functions_are_not_events(self):
        """Test function entries are never taken for events"""
        with pytest.raises(AbiLookupError):
            event_topic(load_abi(DEFAULT_ABIS_PATH, 'Pot'), 'dsr')
