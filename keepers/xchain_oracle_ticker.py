"""
XChain Oracle Ticker

Keeps the cross-chain DSR oracles fresh. Each forwarder on mainnet remembers the
Pot data it last sent to its destination chain; when that data differs from the
current DSR, or is older than `maxDelta` seconds, a `refresh` call is proposed
for the forwarder.

User args:
    maxDelta: Maximum age of forwarded Pot data, in seconds
    gasLimit: Gas limit of the message on the destination chain
    sendSlackMessages: Notify Slack when refreshes are proposed
    optimismStyleForwarders: {domain: forwarder address}
    arbitrumStyleForwarders: {domain: {"address": forwarder address, "rpcUrl": destination RPC}}

The schema has no object type, so the forwarder maps are declared as `string`
args holding JSON.

Secrets:
    SLACK_WEBHOOK_URL
"""

import json
import logging
from typing import Any, Dict, List, NamedTuple, Optional, Sequence, Tuple

from eth_abi import decode
from web3 import Web3

from .context import CallData, Web3FunctionContext, Web3FunctionResult, load_abi
from .notifications import send_message_to_slack

logger = logging.getLogger(__name__)

POT_ADDRESS = '0x197E90f9FAD81970bA7976f33CbD77088E5D7cf7'
MULTICALL_ADDRESS = '0xeefBa1e63905eF1D7ACbA5a8513c70307C1cE441'

OPTIMISM_STYLE = 'optimism'
ARBITRUM_STYLE = 'arbitrum'

POT_DATA_TYPE = '(uint96,uint120,uint40)'

# Offline encoder, never sends requests
_codec = Web3()
forwarder_interface = _codec.eth.contract(abi=load_abi('Forwarder'))
arbitrum_forwarder_interface = _codec.eth.contract(abi=load_abi('ForwarderArbitrum'))


class Forwarder(NamedTuple):
    domain: str
    address: str
    style: str
    rpc_url: Optional[str] = None


class PotData(NamedTuple):
    dsr: int
    chi: int
    rho: int


def _json_arg(user_args: Dict[str, Any], name: str) -> Dict[str, Any]:
    value = user_args.get(name) or {}
    if isinstance(value, str):
        return json.loads(value)
    return value


def parse_forwarders(user_args: Dict[str, Any]) -> List[Forwarder]:
    """Forwarders from the user args. Arbitrum-style forwarders without an RPC URL are unsupported."""
    forwarders = []
    for domain, address in _json_arg(user_args, 'optimismStyleForwarders').items():
        forwarders.append(Forwarder(domain, Web3.to_checksum_address(address), OPTIMISM_STYLE))

    for domain, entry in _json_arg(user_args, 'arbitrumStyleForwarders').items():
        if not entry.get('rpcUrl'):
            logger.warning(f"No RPC URL for {domain}, skipping")
            continue
        forwarders.append(Forwarder(domain, Web3.to_checksum_address(entry['address']), ARBITRUM_STYLE, entry['rpcUrl']))
    return forwarders


def read_last_seen_pot_data(provider: Web3, addresses: Sequence[str]) -> List[PotData]:
    """Last forwarded Pot data of every forwarder, read in a single multicall."""
    if not addresses:
        return []

    multicall = provider.eth.contract(address=MULTICALL_ADDRESS, abi=load_abi('Multicall'))
    calls = [(address, forwarder_interface.encode_abi('getLastSeenPotData')) for address in addresses]
    _, return_data = multicall.functions.aggregate(calls).call()
    return [PotData(*decode([POT_DATA_TYPE], data)[0]) for data in return_data]


def is_stale(pot_data: PotData, current_dsr: int, latest_timestamp: int, max_delta: int) -> bool:
    return pot_data.dsr != current_dsr or latest_timestamp > pot_data.rho + max_delta


def with_margin(gas_price: int) -> int:
    return gas_price * 120 // 100


def build_refresh_call(context: Web3FunctionContext, forwarder: Forwarder, gas_limit: int) -> CallData:
    if forwarder.style == OPTIMISM_STYLE:
        data = forwarder_interface.encode_abi('refresh', args=[gas_limit])
    else:
        destination = context.provider_for(forwarder.rpc_url)
        base_fee = with_margin(context.provider.eth.gas_price)
        max_fee_per_gas = with_margin(destination.eth.gas_price)
        data = arbitrum_forwarder_interface.encode_abi('refresh', args=[gas_limit, max_fee_per_gas, base_fee])
    return CallData(to=forwarder.address, data=data)


def generate_slack_message(domains: Sequence[str]) -> str:
    message_bits = ''.join(f"\n - {domain}" for domain in domains)
    return f"```🦾🔮 DSR Oracle Keeper 🦾🔮\nFeed refresh to be sent to:{message_bits}```"


def find_stale_forwarders(context: Web3FunctionContext) -> List[Tuple[Forwarder, PotData]]:
    provider = context.provider
    max_delta = int(context.user_args['maxDelta'])

    pot = provider.eth.contract(address=POT_ADDRESS, abi=load_abi('Pot'))
    current_dsr = pot.functions.dsr().call()
    latest_timestamp = provider.eth.get_block('latest')['timestamp']

    forwarders = parse_forwarders(context.user_args)
    last_seen = read_last_seen_pot_data(provider, [f.address for f in forwarders])

    return [
        (forwarder, pot_data)
        for forwarder, pot_data in zip(forwarders, last_seen)
        if is_stale(pot_data, current_dsr, latest_timestamp, max_delta)
    ]


def on_run(context: Web3FunctionContext) -> Web3FunctionResult:
    gas_limit = int(context.user_args['gasLimit'])
    send_slack_messages = bool(context.user_args.get('sendSlackMessages', False))

    stale = find_stale_forwarders(context)
    if not stale:
        return Web3FunctionResult.no_action('Pot data refresh not needed')

    calls = [build_refresh_call(context, forwarder, gas_limit) for forwarder, _ in stale]

    if send_slack_messages:
        domains = [forwarder.domain for forwarder, _ in stale]
        send_message_to_slack(context.secrets.get('SLACK_WEBHOOK_URL'), generate_slack_message(domains))

    return Web3FunctionResult.execute(calls)
