"""
Keeper runtime types

A keeper is a function taking a Web3FunctionContext and returning a
Web3FunctionResult, mirroring what the Gelato Web3 Functions runtime hands a
function at trigger time.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from web3 import Web3

from keeper_scripts import triggers

ABIS_PATH = Path(__file__).parent / 'abis'


def load_abi(name: str) -> List[Dict[str, Any]]:
    """Loads one of the ABIs shipped with the keepers."""
    return triggers.load_abi(ABIS_PATH, name)


def http_provider(rpc_url: str) -> Web3:
    return Web3(Web3.HTTPProvider(rpc_url))


@dataclass
class Web3FunctionContext:
    provider: Web3
    user_args: Dict[str, Any] = field(default_factory=dict)
    secrets: Dict[str, str] = field(default_factory=dict)
    provider_factory: Callable[[str], Web3] = http_provider

    def provider_for(self, rpc_url: str) -> Web3:
        """Provider for another network, e.g. the destination of a cross-chain message."""
        return self.provider_factory(rpc_url)


@dataclass(frozen=True)
class CallData:
    to: str
    data: str


@dataclass
class Web3FunctionResult:
    can_exec: bool
    message: Optional[str] = None
    call_data: List[CallData] = field(default_factory=list)

    @classmethod
    def no_action(cls, message: str) -> 'Web3FunctionResult':
        return cls(can_exec=False, message=message)

    @classmethod
    def execute(cls, calls: List[CallData]) -> 'Web3FunctionResult':
        return cls(can_exec=True, call_data=list(calls))

    def to_dict(self) -> Dict[str, Any]:
        if not self.can_exec:
            return {'canExec': False, 'message': self.message}
        return {
            'canExec': True,
            'callData': [{'to': call.to, 'data': call.data} for call in self.call_data],
        }
