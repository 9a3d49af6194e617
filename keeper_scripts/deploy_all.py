#!/usr/bin/env python3
"""
All-in-one keeper deployment

Simpler alternative to `deploy`: a keeper is redeployed as a whole whenever its
IPFS deployment differs from the one recorded in the deployed-state file. Its
previous tasks (matched by `<keeper>/<config name>`, ignoring the date tag) are
retired and one task per config is created as `<keeper>/<config name> <YYYY-MM-DD HH:MM:SS>`.
"""

import sys
import json
import logging
import argparse
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from dotenv import load_dotenv

from .configs import (
    LoadedConfig,
    list_directories,
    load_code_deployments,
    load_config_file,
    load_keeper_configs,
    resolve_secrets,
)
from .deploy import DeploymentContext, always_confirm, build_context, console_confirm
from .errors import ConfigError, CredentialError, SettingsError, UnsupportedDomainError
from .settings import DOMAINS, DeploymentSettings, setup_logging
from .triggers import TriggerConfig, create_trigger_config
from .user_args import encode_user_args, load_user_arg_types

logger = logging.getLogger(__name__)

TAG_LENGTH = len(' <YYYY-MM-DD HH:MM:SS>')


def deployment_tag(now: Optional[datetime] = None) -> str:
    now = now or datetime.now(timezone.utc)
    return f" <{now.strftime('%Y-%m-%d %H:%M:%S')}>"


def load_deployed_state(path) -> Dict[str, str]:
    path = Path(path)
    if not path.exists():
        return {}
    with open(path, 'r') as f:
        return json.load(f)


def save_deployed_state(path, state: Dict[str, str]):
    with open(path, 'w') as f:
        f.write(json.dumps(state, indent=4) + '\n')


def task_prefix(keeper_name: str, label: str) -> str:
    """Task name without its date tag. Config labels are only unique within a keeper."""
    return f"{keeper_name}/{label}"


def retire_previously_deployed_tasks(context: DeploymentContext, domain: str, task_prefixes: List[str]) -> List[str]:
    automate = context.clients[domain].automate
    retired = []
    for task in automate.get_active_tasks():
        if len(task.name) <= TAG_LENGTH or task.name[:-TAG_LENGTH] not in task_prefixes:
            continue
        logger.info(f"   * Retiring {task.name}...")
        tx = automate.cancel_task(task.task_id)
        automate.wait(tx.tx_hash)
        logger.info(f"   * {task.name} retired successfully!")
        retired.append(task.name)
    return retired


def _prepare(context: DeploymentContext, loaded: LoadedConfig) -> Tuple[Dict[str, str], bytes, TriggerConfig]:
    if loaded.config.domain not in context.clients:
        raise UnsupportedDomainError(f"Domain {loaded.config.domain} is not supported")
    secrets = resolve_secrets(loaded.config.secrets, context.environ)
    user_arg_types = load_user_arg_types(context.settings.web3_functions_path, loaded.keeper_name)
    user_args = encode_user_args(user_arg_types, loaded.config.args)
    trigger = create_trigger_config(loaded.config.trigger, context.settings.abis_path)
    return secrets, user_args, trigger


def deploy_keeper(
    context: DeploymentContext,
    keeper_name: str,
    ipfs_deployment: Optional[str],
    state: Dict[str, str],
    tag: str,
) -> bool:
    """
    Redeploy every task of one keeper if its IPFS deployment changed.

    Args:
        context: Deployment context
        keeper_name: Keeper (config directory) name
        ipfs_deployment: Content address from the code-deployment index
        state: Deployed-state mapping, updated and written on success
        tag: Date tag appended to task names

    Returns:
        True if the keeper was deployed
    """
    logger.info(f"== Deploying {keeper_name} ==")

    if ipfs_deployment is None:
        logger.info(f"   * Skipping {keeper_name} deployment (no IPFS deployment found)")
        return False
    if ipfs_deployment == state.get(keeper_name):
        logger.info(f"   * Skipping {keeper_name} deployment (already deployed)")
        return False

    # Validate every config before sending anything
    try:
        prepared = []
        for config_path in load_keeper_configs(context.settings.configs_path, keeper_name):
            loaded = load_config_file(config_path, keeper_name)
            prepared.append((loaded, *_prepare(context, loaded)))
    except ConfigError as e:
        logger.error(f"   * Skipping {keeper_name} deployment: {e}")
        return False

    if not prepared:
        logger.info(f"   * Skipping {keeper_name} deployment (no configs)")
        return False

    logger.info(f"   * Deployment of {keeper_name} to be executed (IPFS hash: {ipfs_deployment})")
    if not context.confirm(f"Deploy {keeper_name} ({ipfs_deployment})"):
        logger.info(f"   * Deployment of {keeper_name} declined")
        return False

    logger.info(f"   * Deploying {keeper_name}...")
    task_prefixes = [task_prefix(keeper_name, loaded.label) for loaded, _, _, _ in prepared]
    for domain in DOMAINS:
        if domain in context.clients:
            retire_previously_deployed_tasks(context, domain, task_prefixes)

    for loaded, secrets, user_args, trigger in prepared:
        clients = context.clients[loaded.config.domain]
        task = clients.automate.create_batch_exec_task(
            name=task_prefix(keeper_name, loaded.label) + tag,
            web3_function_hash=ipfs_deployment,
            web3_function_args=user_args,
            trigger=trigger,
        )
        clients.automate.wait(task.tx_hash)
        clients.secrets.set(secrets, task.task_id)

    logger.info(f"   * Deployed {keeper_name} successfully!")
    state[keeper_name] = ipfs_deployment
    save_deployed_state(context.settings.deployments_path, state)
    return True


def deploy_all(context: DeploymentContext, tag: Optional[str] = None) -> List[str]:
    """Deploy every keeper with a changed IPFS deployment. Returns the deployed keeper names."""
    tag = tag or deployment_tag()
    settings = context.settings
    ipfs_deployments = load_code_deployments(settings.pre_deployments_path)
    state = load_deployed_state(settings.deployments_path)

    deployed = []
    for keeper_name in list_directories(settings.configs_path):
        if deploy_keeper(context, keeper_name, ipfs_deployments.get(keeper_name), state, tag):
            deployed.append(keeper_name)
    return deployed


def main(argv=None):
    parser = argparse.ArgumentParser(description="Deploy every keeper whose IPFS deployment changed")
    parser.add_argument('--yes', action='store_true', help="Do not ask for confirmation before each keeper")
    args = parser.parse_args(argv)

    load_dotenv()
    setup_logging('keeper_deploy.log')
    logger.info("== Preparing a deployment of all the keeper actions ==")

    try:
        settings = DeploymentSettings.from_env()
        context = build_context(settings, confirm=always_confirm if args.yes else console_confirm)
    except (CredentialError, SettingsError) as e:
        logger.error(f"Deployment setup failed: {e}")
        return 1

    try:
        deployed = deploy_all(context)
    except KeyboardInterrupt:
        logger.info("Deployment stopped by user")
        return 1
    except Exception as e:
        logger.error(f"Deployment failed: {e}")
        raise

    logger.info(f"Deployed keepers: {', '.join(deployed) if deployed else 'none'}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
