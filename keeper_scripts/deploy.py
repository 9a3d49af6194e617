#!/usr/bin/env python3
"""
Keeper task reconciliation

Brings the deployer's active Gelato tasks in line with the local config tree.
Every config file maps to one task named `<config name> <hash>`, where the hash
covers the raw config bytes and the keeper's IPFS deployment. A task whose name
matches a local config is left alone, a config with no matching task is
deployed, and any active task no config claims is cancelled.
"""

import os
import sys
import logging
import argparse
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Mapping, Optional, Tuple

from dotenv import load_dotenv
from web3 import Web3

from .automate import AutomateClient, Web3FunctionSecrets, connect
from .configs import (
    LoadedConfig,
    list_directories,
    load_code_deployments,
    load_config_file,
    load_keeper_configs,
    resolve_secrets,
)
from .errors import ConfigError, CredentialError, SettingsError, UnsupportedDomainError
from .identity import resolve_private_key
from .settings import DOMAINS, DeploymentSettings, setup_logging
from .triggers import create_trigger_config
from .user_args import encode_user_args, load_user_arg_types

logger = logging.getLogger(__name__)

ConfirmCallback = Callable[[str], bool]


def console_confirm(message: str) -> bool:
    """Blocks until the operator presses ENTER. Answering 'n' declines."""
    answer = input(f"{message}\nPress ENTER to confirm & continue...")
    return answer.strip().lower() not in ('n', 'no')


def always_confirm(message: str) -> bool:
    return True


@dataclass
class DomainClients:
    automate: AutomateClient
    secrets: Web3FunctionSecrets


@dataclass
class DeploymentContext:
    """Everything a deployment run needs, built once per run."""
    settings: DeploymentSettings
    clients: Dict[str, DomainClients]
    environ: Mapping[str, str] = field(default_factory=lambda: dict(os.environ))
    confirm: ConfirmCallback = console_confirm


@dataclass(frozen=True)
class OldTask:
    task_id: str
    domain: str


@dataclass
class ReconcileReport:
    kept: List[str] = field(default_factory=list)
    created: List[str] = field(default_factory=list)
    cancelled: List[str] = field(default_factory=list)
    declined: List[str] = field(default_factory=list)
    skipped: List[Tuple[str, str]] = field(default_factory=list)


def create_hash(raw_config: bytes, ipfs_deployment: str) -> str:
    config_hash = Web3.to_hex(Web3.keccak(raw_config))
    ipfs_deployment_hash = Web3.to_hex(Web3.keccak(text=ipfs_deployment))
    return Web3.to_hex(Web3.keccak(text=config_hash + ipfs_deployment_hash))


def deployment_name(config_name: str, config_hash: str) -> str:
    return f"{config_name} {config_hash}"


def collect_active_tasks(context: DeploymentContext) -> Dict[str, OldTask]:
    """Active tasks of every network, keyed by task name."""
    old_tasks = {}
    for domain in DOMAINS:
        if domain not in context.clients:
            continue
        tasks = context.clients[domain].automate.get_active_tasks()
        logger.info(f"{len(tasks)} active tasks on {domain}")
        for task in tasks:
            old_tasks[task.name] = OldTask(task_id=task.task_id, domain=domain)
    return old_tasks


def deploy_config(context: DeploymentContext, loaded: LoadedConfig, name: str, ipfs_deployment: str) -> Optional[str]:
    """
    Create the task for one config and store its secrets.

    Returns:
        The new task id, or None when the operator declined
    """
    config = loaded.config
    if config.domain not in context.clients:
        raise UnsupportedDomainError(f"Domain {config.domain} is not supported")

    secrets = resolve_secrets(config.secrets, context.environ)
    user_arg_types = load_user_arg_types(context.settings.web3_functions_path, loaded.keeper_name)
    user_args = encode_user_args(user_arg_types, config.args)
    trigger = create_trigger_config(config.trigger, context.settings.abis_path)

    logger.info(f"Deploying {name}")
    if not context.confirm(f"Deploy {name} on {config.domain}"):
        logger.info(f"Deployment of {name} declined")
        return None

    clients = context.clients[config.domain]
    task = clients.automate.create_batch_exec_task(
        name=name,
        web3_function_hash=ipfs_deployment,
        web3_function_args=user_args,
        trigger=trigger,
    )
    clients.automate.wait(task.tx_hash)
    # The task is live without secrets until this call returns
    clients.secrets.set(secrets, task.task_id)
    logger.info(f"Deployed {name} as task {task.task_id}")
    return task.task_id


def reconcile(context: DeploymentContext) -> ReconcileReport:
    settings = context.settings
    report = ReconcileReport()

    ipfs_deployments = load_code_deployments(settings.pre_deployments_path)
    config_dirs = list_directories(settings.configs_path)
    old_tasks = collect_active_tasks(context)

    for keeper_name in sorted(set(config_dirs) | set(ipfs_deployments)):
        if keeper_name not in config_dirs:
            logger.info(f"No configs for {keeper_name}")
            continue
        ipfs_deployment = ipfs_deployments.get(keeper_name)
        if not ipfs_deployment:
            logger.info(f"No IPFS deployment for {keeper_name}")
            continue

        config_paths = load_keeper_configs(settings.configs_path, keeper_name)
        if not config_paths:
            logger.info(f"No configs for {keeper_name}")
            continue

        logger.info(f"Deploying {keeper_name}")

        for config_path in config_paths:
            config_ref = f"{keeper_name}/{config_path.name}"
            try:
                loaded = load_config_file(config_path, keeper_name)
                name = deployment_name(loaded.label, create_hash(loaded.raw, ipfs_deployment))

                if name in old_tasks:
                    logger.info(f"Task {name} is already active")
                    del old_tasks[name]
                    report.kept.append(name)
                    continue

                task_id = deploy_config(context, loaded, name, ipfs_deployment)
            except ConfigError as e:
                logger.error(f"Skipping {config_ref}: {e}")
                report.skipped.append((config_ref, str(e)))
                continue

            if task_id is None:
                report.declined.append(name)
            else:
                report.created.append(name)

    for task_name, task in old_tasks.items():
        logger.info(f"Cancelling task {task_name}")
        if not context.confirm(f"Cancel {task_name} on {task.domain}"):
            logger.info(f"Cancellation of {task_name} declined")
            report.declined.append(task_name)
            continue
        automate = context.clients[task.domain].automate
        tx = automate.cancel_task(task.task_id)
        automate.wait(tx.tx_hash)
        report.cancelled.append(task_name)

    return report


def build_context(
    settings: DeploymentSettings,
    confirm: ConfirmCallback = console_confirm,
    environ: Optional[Mapping[str, str]] = None,
) -> DeploymentContext:
    """Resolve the deployer key and connect one client pair per network."""
    private_key = resolve_private_key(settings.private_key, settings.keystore_path, settings.password_path)

    clients = {}
    for domain in DOMAINS.values():
        w3 = connect(settings.rpc_urls[domain.name], poa=domain.poa)
        clients[domain.name] = DomainClients(
            automate=AutomateClient(w3, private_key, domain.chain_id, settings.gelato_api_url, settings.abis_path),
            secrets=Web3FunctionSecrets(private_key, domain.chain_id, settings.gelato_api_url),
        )

    return DeploymentContext(
        settings=settings,
        clients=clients,
        environ=dict(os.environ) if environ is None else environ,
        confirm=confirm,
    )


def log_report(report: ReconcileReport):
    logger.info(
        f"Reconciliation done - Kept: {len(report.kept)}, Created: {len(report.created)}, "
        f"Cancelled: {len(report.cancelled)}, Declined: {len(report.declined)}, Skipped: {len(report.skipped)}"
    )
    for config_ref, reason in report.skipped:
        logger.warning(f"Skipped {config_ref}: {reason}")


def main(argv=None):
    parser = argparse.ArgumentParser(description="Reconcile Gelato keeper tasks with the local configs")
    parser.add_argument('--yes', action='store_true', help="Do not ask for confirmation before each transaction")
    args = parser.parse_args(argv)

    load_dotenv()
    setup_logging('keeper_deploy.log')

    try:
        settings = DeploymentSettings.from_env()
        context = build_context(settings, confirm=always_confirm if args.yes else console_confirm)
    except (CredentialError, SettingsError) as e:
        logger.error(f"Deployment setup failed: {e}")
        return 1

    try:
        report = reconcile(context)
    except KeyboardInterrupt:
        logger.info("Deployment stopped by user")
        return 1
    except Exception as e:
        logger.error(f"Deployment failed: {e}")
        raise

    log_report(report)
    return 0


if __name__ == "__main__":
    sys.exit(main())
