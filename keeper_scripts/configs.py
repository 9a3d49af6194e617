"""
Deployment config loading

Each keeper has a directory of JSON config files, one per task to deploy:

    {
        "domain": "mainnet",
        "args": {"maxDelta": "604800", "gasLimit": "800000"},
        "secrets": {"SLACK_WEBHOOK_URL": "GELATO_KEEPERS_SLACK_WEBHOOK_URL"},
        "trigger": {"type": "time", "interval": 300000}
    }
"""

import os
import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Union

from .errors import ConfigError, MissingSecretError, UnsupportedDomainError, UnsupportedTriggerError

logger = logging.getLogger(__name__)

SUPPORTED_DOMAINS = ('mainnet', 'gnosis')
TRIGGER_TYPE_NAMES = ('block', 'cron', 'event', 'time')


@dataclass(frozen=True)
class BlockTrigger:
    pass


@dataclass(frozen=True)
class CronTrigger:
    cron: str


@dataclass(frozen=True)
class TimeTrigger:
    interval: int  # milliseconds


@dataclass(frozen=True)
class EventTopic:
    abi_name: str
    event_name: str


@dataclass(frozen=True)
class EventTrigger:
    address: str
    topics: List[EventTopic] = field(default_factory=list)
    block_confirmations: int = 0


Trigger = Union[BlockTrigger, CronTrigger, TimeTrigger, EventTrigger]


@dataclass(frozen=True)
class DeploymentConfig:
    """A single task deployment read from a config file"""
    domain: str
    args: Dict[str, Any]
    secrets: Dict[str, str]
    trigger: Trigger


@dataclass(frozen=True)
class LoadedConfig:
    """Parsed config together with the raw bytes it was hashed from"""
    keeper_name: str
    label: str
    raw: bytes
    config: DeploymentConfig


def parse_trigger(data: Any) -> Trigger:
    """Build a Trigger from the `trigger` object of a config file."""
    if not isinstance(data, dict):
        raise ConfigError("Trigger must be an object")

    trigger_type = data.get('type')
    if trigger_type not in TRIGGER_TYPE_NAMES:
        raise UnsupportedTriggerError(f"Trigger type {trigger_type} is not supported")

    try:
        if trigger_type == 'block':
            return BlockTrigger()
        if trigger_type == 'cron':
            return CronTrigger(cron=data['cron'])
        if trigger_type == 'time':
            return TimeTrigger(interval=int(data['interval']))

        event_filter = data['filter']
        topics = [EventTopic(abi_name=t['abiName'], event_name=t['eventName']) for t in event_filter['topics']]
        return EventTrigger(
            address=event_filter['address'],
            topics=topics,
            block_confirmations=int(data.get('blockConfirmations', 0)),
        )
    except (KeyError, TypeError, ValueError) as e:
        raise ConfigError(f"Invalid {trigger_type} trigger: {e}") from e


def parse_deployment_config(raw: bytes) -> DeploymentConfig:
    try:
        data = json.loads(raw)
    except ValueError as e:
        raise ConfigError(f"Config is not valid JSON: {e}") from e

    if not isinstance(data, dict):
        raise ConfigError("Config must be a JSON object")

    domain = data.get('domain')
    if domain not in SUPPORTED_DOMAINS:
        raise UnsupportedDomainError(f"Domain {domain} is not supported")

    if 'trigger' not in data:
        raise ConfigError("Config has no trigger")

    args = data.get('args') or {}
    if not isinstance(args, dict):
        raise ConfigError("Config args must be an object")

    secrets = data.get('secrets') or {}
    if not isinstance(secrets, dict) or not all(isinstance(v, str) for v in secrets.values()):
        raise ConfigError("Config secrets must map secret names to env variable names")

    return DeploymentConfig(
        domain=domain,
        args=dict(args),
        secrets=dict(secrets),
        trigger=parse_trigger(data['trigger']),
    )


def list_directories(path) -> List[str]:
    """Names of the sub-directories of `path`, sorted. Missing path gives none."""
    path = Path(path)
    if not path.is_dir():
        logger.warning(f"Directory {path} does not exist")
        return []
    return sorted(entry.name for entry in path.iterdir() if entry.is_dir())


def load_keeper_configs(configs_path, keeper_name: str) -> List[Path]:
    """Config files of one keeper, sorted by file name."""
    keeper_dir = Path(configs_path) / keeper_name
    if not keeper_dir.is_dir():
        return []
    return sorted(p for p in keeper_dir.iterdir() if p.is_file() and p.suffix == '.json')


def load_config_file(path, keeper_name: str) -> LoadedConfig:
    path = Path(path)
    raw = path.read_bytes()
    return LoadedConfig(
        keeper_name=keeper_name,
        label=path.stem,
        raw=raw,
        config=parse_deployment_config(raw),
    )


def load_code_deployments(path) -> Dict[str, str]:
    """Load the code-deployment index (keeper name -> IPFS content address)."""
    path = Path(path)
    if not path.exists():
        logger.warning(f"Code deployment index {path} not found")
        return {}
    with open(path, 'r') as f:
        return json.load(f)


def resolve_secrets(secrets: Mapping[str, str], environ: Mapping[str, str] = os.environ) -> Dict[str, str]:
    """
    Resolve a config's secrets from the environment.

    Args:
        secrets: Secret name -> name of the environment variable holding its value
        environ: Environment to read from

    Returns:
        Secret name -> value
    """
    resolved = {}
    for key, env_var_name in secrets.items():
        value = environ.get(env_var_name)
        if not value:
            raise MissingSecretError(f"{env_var_name} env variable is not defined")
        resolved[key] = value
    return resolved
