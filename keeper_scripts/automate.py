"""
Gelato Automate client

Covers the parts of the Gelato automation platform the deployment scripts use:
listing the deployer's active tasks, creating Web3 Function batch-exec tasks,
cancelling tasks and storing task secrets. Task creation and cancellation are
on-chain transactions against the Automate contract; task names and secrets
live in Gelato's API.

Gelato's API authenticates requests with a Sign-In with Ethereum (EIP-4361)
message. The fields of that message are taken from the vendor SDK and kept in
the `SIWE_*` constants below; if Gelato changes them, only those constants move.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import IntEnum
from secrets import token_hex
from typing import Dict, List, Mapping, Optional

import requests
from eth_abi import encode
from eth_account import Account
from eth_account.messages import encode_defunct
from hexbytes import HexBytes
from web3 import Web3
from web3.middleware import ExtraDataToPOAMiddleware

from .errors import SettingsError, TransactionFailedError
from .settings import DEFAULT_ABIS_PATH
from .triggers import TriggerConfig, TriggerType, load_abi

logger = logging.getLogger(__name__)

# Same address on every chain the scripts deploy to
AUTOMATE_ADDRESS = '0x2A6C106ae13B558BB9E2Ec64Bd2f1f7BEFF3A5E0'
OPS_PROXY_FACTORY_ADDRESS = '0x44bde1bccdD06119262f1fE441FBe7341EaaC185'
ZERO_ADDRESS = '0x0000000000000000000000000000000000000000'
BATCH_EXECUTE_CALL_SELECTOR = bytes(Web3.keccak(text='batchExecuteCall(address[],bytes[],uint256[])')[:4])

TX_TIMEOUT = 300
API_TIMEOUT = 30

SIWE_DOMAIN = 'app.gelato.network'
SIWE_URI = 'http://app.gelato.network/'
SIWE_STATEMENT = 'Sign this message to manage your Gelato tasks and secrets'
SIWE_VALIDITY = timedelta(minutes=10)


class Module(IntEnum):
    RESOLVER = 0
    DEPRECATED_TIME = 1
    PROXY = 2
    SINGLE_EXEC = 3
    WEB3_FUNCTION = 4
    TRIGGER = 5


@dataclass(frozen=True)
class ActiveTask:
    task_id: str
    name: str


@dataclass(frozen=True)
class TaskTransaction:
    task_id: str
    tx_hash: str


def connect(rpc_url: str, poa: bool = False) -> Web3:
    """Open an HTTP provider, with the POA extra-data middleware where needed."""
    w3 = Web3(Web3.HTTPProvider(rpc_url))
    if poa:
        w3.middleware_onion.inject(ExtraDataToPOAMiddleware, layer=0)
    if not w3.is_connected():
        raise SettingsError(f"Could not connect to RPC URL: {rpc_url}")
    logger.info(f"Connected to blockchain at {rpc_url}")
    return w3


def _iso_timestamp(moment: datetime) -> str:
    return moment.astimezone(timezone.utc).isoformat(timespec='milliseconds').replace('+00:00', 'Z')


def siwe_message(address: str, chain_id: int, issued_at: Optional[datetime] = None, nonce: Optional[str] = None) -> str:
    """EIP-4361 message text for the given deployer address and chain."""
    issued_at = issued_at or datetime.now(timezone.utc)
    nonce = nonce or token_hex(8)
    return (
        f"{SIWE_DOMAIN} wants you to sign in with your Ethereum account:\n"
        f"{address}\n"
        f"\n"
        f"{SIWE_STATEMENT}\n"
        f"\n"
        f"URI: {SIWE_URI}\n"
        f"Version: 1\n"
        f"Chain ID: {chain_id}\n"
        f"Nonce: {nonce}\n"
        f"Issued At: {_iso_timestamp(issued_at)}\n"
        f"Expiration Time: {_iso_timestamp(issued_at + SIWE_VALIDITY)}"
    )


def sign_api_request(account, chain_id: int) -> Dict[str, str]:
    """Signed SIWE message authenticating the deployer against Gelato's API."""
    message = siwe_message(account.address, chain_id)
    signed = account.sign_message(encode_defunct(text=message))
    return {'message': message, 'signature': Web3.to_hex(signed.signature)}


def encode_trigger(trigger: TriggerConfig) -> bytes:
    if trigger.type == TriggerType.TIME:
        trigger_args = encode(['uint128', 'uint128'], [0, trigger.interval])
    elif trigger.type == TriggerType.CRON:
        trigger_args = encode(['string'], [trigger.cron])
    elif trigger.type == TriggerType.EVENT:
        topics = [[HexBytes(topic) for topic in group] for group in trigger.filter['topics']]
        trigger_args = encode(
            ['address', 'bytes32[][]', 'uint256'],
            [trigger.filter['address'], topics, trigger.block_confirmations],
        )
    else:
        trigger_args = b''
    return encode(['uint8', 'bytes'], [int(trigger.type), trigger_args])


def encode_web3_function_args(web3_function_hash: str, user_args: bytes) -> bytes:
    """Web3 Function module data; `user_args` as produced by `user_args.encode_user_args`."""
    return encode(['string', 'bytes'], [web3_function_hash, user_args])


def compute_task_id(task_creator: str, exec_address: str, exec_selector: bytes, module_data, fee_token: str) -> str:
    """Task id as derived by the Automate contract."""
    encoded = encode(
        ['address', 'address', 'bytes4', '(uint8[],bytes[])', 'address'],
        [task_creator, exec_address, exec_selector, module_data, fee_token],
    )
    return Web3.to_hex(Web3.keccak(encoded))


class AutomateClient:
    """Automate contract + tasks API for one chain and one deployer account."""

    def __init__(self, w3: Web3, private_key: str, chain_id: int, api_url: str, abis_path=DEFAULT_ABIS_PATH):
        self.w3 = w3
        self.account = Account.from_key(private_key)
        self.chain_id = chain_id
        self.api_url = api_url.rstrip('/')
        self.automate = w3.eth.contract(address=AUTOMATE_ADDRESS, abi=load_abi(abis_path, 'Automate'))
        self.proxy_factory = w3.eth.contract(
            address=OPS_PROXY_FACTORY_ADDRESS,
            abi=load_abi(abis_path, 'OpsProxyFactory'),
        )

    def get_active_tasks(self) -> List[ActiveTask]:
        task_ids = [Web3.to_hex(task_id) for task_id in
                    self.automate.functions.getTaskIdsByUser(self.account.address).call()]
        if not task_ids:
            return []

        names = self._get_task_names(task_ids)
        return [ActiveTask(task_id=task_id, name=names.get(task_id, task_id)) for task_id in task_ids]

    def _get_task_names(self, task_ids: List[str]) -> Dict[str, str]:
        response = requests.post(
            f"{self.api_url}/automate/tasks/{self.chain_id}/getTasksByIds",
            json={'taskIds': task_ids},
            timeout=API_TIMEOUT,
        )
        response.raise_for_status()
        return {task['taskId']: task['name'] for task in response.json() if task.get('name')}

    def _set_task_name(self, task_id: str, name: str):
        response = requests.post(
            f"{self.api_url}/automate/tasks/{self.chain_id}/{task_id}/name",
            json={'name': name, 'auth': sign_api_request(self.account, self.chain_id)},
            timeout=API_TIMEOUT,
        )
        response.raise_for_status()

    def create_batch_exec_task(
        self,
        name: str,
        web3_function_hash: str,
        web3_function_args: bytes,
        trigger: TriggerConfig,
    ) -> TaskTransaction:
        """
        Create a Web3 Function task executed through the deployer's dedicated proxy.

        Args:
            name: Task name registered with the tasks API
            web3_function_hash: IPFS content address of the Web3 Function
            web3_function_args: User args, ABI-encoded with the function's schema types
            trigger: Trigger module configuration

        Returns:
            TaskTransaction with the task id and the (unconfirmed) creation tx hash
        """
        proxy_address, _ = self.proxy_factory.functions.getProxyOf(self.account.address).call()
        exec_selector = BATCH_EXECUTE_CALL_SELECTOR

        module_data = (
            [int(Module.PROXY), int(Module.WEB3_FUNCTION), int(Module.TRIGGER)],
            [b'', encode_web3_function_args(web3_function_hash, web3_function_args), encode_trigger(trigger)],
        )
        task_id = compute_task_id(self.account.address, proxy_address, exec_selector, module_data, ZERO_ADDRESS)

        tx_hash = self._send(self.automate.functions.createTask(
            proxy_address, exec_selector, module_data, ZERO_ADDRESS,
        ))
        logger.info(f"Task {task_id} creation sent: {tx_hash}")

        self._set_task_name(task_id, name)
        return TaskTransaction(task_id=task_id, tx_hash=tx_hash)

    def cancel_task(self, task_id: str) -> TaskTransaction:
        tx_hash = self._send(self.automate.functions.cancelTask(HexBytes(task_id)))
        logger.info(f"Task {task_id} cancellation sent: {tx_hash}")
        return TaskTransaction(task_id=task_id, tx_hash=tx_hash)

    def wait(self, tx_hash: str):
        receipt = self.w3.eth.wait_for_transaction_receipt(tx_hash, timeout=TX_TIMEOUT)
        if receipt['status'] != 1:
            raise TransactionFailedError(f"Transaction {tx_hash} failed")
        logger.info(f"Transaction {tx_hash} confirmed in block {receipt['blockNumber']}")
        return receipt

    def _send(self, contract_function) -> str:
        tx = contract_function.build_transaction({
            'from': self.account.address,
            'nonce': self.w3.eth.get_transaction_count(self.account.address),
            'chainId': self.chain_id,
        })
        signed_tx = self.account.sign_transaction(tx)
        return Web3.to_hex(self.w3.eth.send_raw_transaction(signed_tx.raw_transaction))


class Web3FunctionSecrets:
    """Secrets storage of Web3 Function tasks."""

    def __init__(self, private_key: str, chain_id: int, api_url: str):
        self.account = Account.from_key(private_key)
        self.chain_id = chain_id
        self.api_url = api_url.rstrip('/')

    def set(self, secrets: Mapping[str, str], task_id: str):
        response = requests.post(
            f"{self.api_url}/web3functions/secrets/{self.chain_id}/{task_id}",
            json={'secrets': dict(secrets), 'auth': sign_api_request(self.account, self.chain_id)},
            timeout=API_TIMEOUT,
        )
        response.raise_for_status()
        logger.info(f"Secrets {sorted(secrets)} set for task {task_id}")
