"""
Trigger translation

Turns the trigger of a deployment config into the payload the Gelato trigger
module expects. Event topics are resolved from ABI files stored by name.
"""

import json
from dataclasses import dataclass
from enum import IntEnum
from pathlib import Path
from typing import Any, Dict, List, Optional

from eth_utils import event_abi_to_log_topic
from web3 import Web3

from .configs import BlockTrigger, CronTrigger, EventTrigger, TimeTrigger, Trigger
from .errors import AbiLookupError, UnsupportedTriggerError


class TriggerType(IntEnum):
    TIME = 0
    CRON = 1
    EVENT = 2
    BLOCK = 3


@dataclass
class TriggerConfig:
    type: TriggerType
    cron: Optional[str] = None
    interval: Optional[int] = None
    filter: Optional[Dict[str, Any]] = None
    block_confirmations: Optional[int] = None


def load_abi(abis_path, abi_name: str) -> List[Dict[str, Any]]:
    """Loads an ABI by name, either a bare ABI list or a build artifact."""
    abi_path = Path(abis_path) / f"{abi_name}.json"
    try:
        with open(abi_path, 'r') as f:
            data = json.load(f)
    except FileNotFoundError as e:
        raise AbiLookupError(f"ABI {abi_name} not found at {abi_path}") from e
    except ValueError as e:
        raise AbiLookupError(f"ABI {abi_name} at {abi_path} is not valid JSON: {e}") from e

    if isinstance(data, dict):
        if 'abi' not in data:
            raise AbiLookupError(f"No abi in {abi_path}")
        return data['abi']
    return data


def event_topic(abi: List[Dict[str, Any]], event_name: str) -> str:
    for entry in abi:
        if entry.get('type') == 'event' and entry.get('name') == event_name:
            return Web3.to_hex(event_abi_to_log_topic(entry))
    raise AbiLookupError(f"Event {event_name} not found in ABI")


def create_trigger_config(trigger: Trigger, abis_path) -> TriggerConfig:
    if isinstance(trigger, BlockTrigger):
        return TriggerConfig(type=TriggerType.BLOCK)

    if isinstance(trigger, CronTrigger):
        return TriggerConfig(type=TriggerType.CRON, cron=trigger.cron)

    if isinstance(trigger, TimeTrigger):
        return TriggerConfig(type=TriggerType.TIME, interval=int(trigger.interval))

    if isinstance(trigger, EventTrigger):
        topics = [event_topic(load_abi(abis_path, t.abi_name), t.event_name) for t in trigger.topics]
        return TriggerConfig(
            type=TriggerType.EVENT,
            filter={
                'address': trigger.address,
                # One inner list: the topics are OR-ed in the first position
                'topics': [topics],
            },
            block_confirmations=int(trigger.block_confirmations),
        )

    raise UnsupportedTriggerError(f"Unknown trigger {trigger!r}")
