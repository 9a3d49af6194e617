"""
Deployment settings

Global settings are read from the environment (and a `.env` file) once per run.
"""

import os
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Mapping, NamedTuple, Optional

from .errors import SettingsError

DEFAULT_CONFIGS_PATH = './scripts/configs'
DEFAULT_PRE_DEPLOYMENTS_PATH = './scripts/pre-deployments.json'
DEFAULT_DEPLOYMENTS_PATH = './scripts/deployments.json'
DEFAULT_ABIS_PATH = str(Path(__file__).resolve().parent.parent / 'keepers' / 'abis')
DEFAULT_WEB3_FUNCTIONS_PATH = './web3-functions'
DEFAULT_GELATO_API_URL = 'https://api.gelato.digital'


class Domain(NamedTuple):
    name: str
    chain_id: int
    rpc_env_var: str
    poa: bool


# Order matters: tasks are listed and cancelled network by network in this order
DOMAINS: Dict[str, Domain] = {
    'mainnet': Domain('mainnet', 1, 'MAINNET_RPC_URL', False),
    'gnosis': Domain('gnosis', 100, 'GNOSIS_CHAIN_RPC_URL', True),
}


@dataclass
class DeploymentSettings:
    rpc_urls: Dict[str, str]
    private_key: Optional[str] = None
    keystore_path: Optional[str] = None
    password_path: Optional[str] = None
    configs_path: str = DEFAULT_CONFIGS_PATH
    pre_deployments_path: str = DEFAULT_PRE_DEPLOYMENTS_PATH
    deployments_path: str = DEFAULT_DEPLOYMENTS_PATH
    abis_path: str = DEFAULT_ABIS_PATH
    web3_functions_path: str = DEFAULT_WEB3_FUNCTIONS_PATH
    gelato_api_url: str = DEFAULT_GELATO_API_URL

    @classmethod
    def from_env(cls, environ: Mapping[str, str] = os.environ) -> 'DeploymentSettings':
        rpc_urls = {}
        for domain in DOMAINS.values():
            rpc_url = environ.get(domain.rpc_env_var)
            if not rpc_url:
                raise SettingsError(f"Set a valid value for {domain.rpc_env_var}")
            rpc_urls[domain.name] = rpc_url

        return cls(
            rpc_urls=rpc_urls,
            private_key=environ.get('GELATO_PRIVATE_KEY'),
            keystore_path=environ.get('GELATO_KEYSTORE_PATH'),
            password_path=environ.get('GELATO_PASSWORD_PATH'),
            configs_path=environ.get('KEEPER_CONFIGS_PATH', DEFAULT_CONFIGS_PATH),
            pre_deployments_path=environ.get('KEEPER_PRE_DEPLOYMENTS_PATH', DEFAULT_PRE_DEPLOYMENTS_PATH),
            deployments_path=environ.get('KEEPER_DEPLOYMENTS_PATH', DEFAULT_DEPLOYMENTS_PATH),
            abis_path=environ.get('KEEPER_ABIS_PATH', DEFAULT_ABIS_PATH),
            web3_functions_path=environ.get('KEEPER_WEB3_FUNCTIONS_PATH', DEFAULT_WEB3_FUNCTIONS_PATH),
            gelato_api_url=environ.get('GELATO_API_URL', DEFAULT_GELATO_API_URL),
        )


def setup_logging(log_file: str, level=logging.INFO):
    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[
            logging.FileHandler(log_file),
            logging.StreamHandler()
        ]
    )
