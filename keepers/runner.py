#!/usr/bin/env python3
"""
Local keeper runner

Evaluates a keeper against a live RPC with the args and secrets of one of its
deployment configs, and logs what it would do. Nothing is ever sent on-chain.
"""

import os
import sys
import time
import logging
import argparse
from pathlib import Path
from typing import Mapping, Optional

import schedule
from dotenv import load_dotenv
from web3 import Web3

from keeper_scripts.configs import parse_deployment_config, resolve_secrets
from keeper_scripts.errors import ConfigError, SettingsError
from keeper_scripts.settings import DOMAINS, setup_logging

from . import KEEPERS
from .context import Web3FunctionContext, Web3FunctionResult, http_provider

logger = logging.getLogger(__name__)


def build_context(
    config_path,
    environ: Mapping[str, str] = os.environ,
    provider: Optional[Web3] = None,
    send_slack_messages: bool = False,
) -> Web3FunctionContext:
    """Context built from a deployment config; the RPC URL comes from the config's domain."""
    config = parse_deployment_config(Path(config_path).read_bytes())

    if provider is None:
        rpc_env_var = DOMAINS[config.domain].rpc_env_var
        rpc_url = environ.get(rpc_env_var)
        if not rpc_url:
            raise SettingsError(f"Set a valid value for {rpc_env_var}")
        provider = http_provider(rpc_url)

    user_args = dict(config.args)
    user_args['sendSlackMessages'] = send_slack_messages and bool(user_args.get('sendSlackMessages'))

    return Web3FunctionContext(
        provider=provider,
        user_args=user_args,
        secrets=resolve_secrets(config.secrets, environ),
    )


def run_once(keeper_name: str, context: Web3FunctionContext) -> Web3FunctionResult:
    result = KEEPERS[keeper_name](context)
    if not result.can_exec:
        logger.info(f"{keeper_name}: no action ({result.message})")
        return result

    logger.info(f"{keeper_name}: {len(result.call_data)} call(s) to execute")
    for call in result.call_data:
        logger.info(f"   * to={call.to} data={call.data}")
    return result


def main(argv=None):
    parser = argparse.ArgumentParser(description="Evaluate a keeper locally without sending transactions")
    parser.add_argument('keeper', choices=sorted(KEEPERS))
    parser.add_argument('config', help="Deployment config file to take args and secrets from")
    parser.add_argument('--interval', type=int, default=300, help="Seconds between evaluations")
    parser.add_argument('--once', action='store_true', help="Evaluate once and exit")
    parser.add_argument('--slack', action='store_true', help="Let the keeper send its Slack messages")
    args = parser.parse_args(argv)

    load_dotenv()
    setup_logging('keeper_runner.log')

    try:
        context = build_context(args.config, send_slack_messages=args.slack)
    except (ConfigError, SettingsError) as e:
        logger.error(f"Could not build keeper context: {e}")
        return 1

    if args.once:
        run_once(args.keeper, context)
        return 0

    def run_scheduled():
        try:
            run_once(args.keeper, context)
        except Exception as e:
            logger.error(f"Keeper run failed: {e}")

    schedule.every(args.interval).seconds.do(run_scheduled)

    try:
        run_scheduled()
        logger.info(f"Running {args.keeper} every {args.interval}s...")
        while True:
            schedule.run_pending()
            time.sleep(1)
    except KeyboardInterrupt:
        logger.info("Runner stopped by user")
    return 0


if __name__ == "__main__":
    sys.exit(main())
