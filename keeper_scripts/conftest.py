"""Shared fixtures: a config tree on disk and fake Gelato clients."""

import json
from pathlib import Path

import pytest

from keeper_scripts.automate import ActiveTask, TaskTransaction
from keeper_scripts.deploy import DeploymentContext, DomainClients, always_confirm
from keeper_scripts.settings import DEFAULT_ABIS_PATH, DeploymentSettings

TICKER_USER_ARGS = {'maxDelta': 'string', 'gasLimit': 'string', 'sendSlackMessages': 'boolean'}


class FakeAutomateClient:
    """In-memory stand-in for AutomateClient; tasks survive across runs."""

    def __init__(self, domain):
        self.domain = domain
        self.tasks = {}
        self.created = []
        self.cancelled = []
        self.waited = []
        self._counter = 0

    def add_task(self, name):
        self._counter += 1
        task_id = f"0x{self.domain}-{self._counter}"
        self.tasks[task_id] = name
        return task_id

    def get_active_tasks(self):
        return [ActiveTask(task_id=task_id, name=name) for task_id, name in self.tasks.items()]

    def create_batch_exec_task(self, name, web3_function_hash, web3_function_args, trigger):
        task_id = self.add_task(name)
        self.created.append({
            'task_id': task_id,
            'name': name,
            'web3_function_hash': web3_function_hash,
            'web3_function_args': web3_function_args,
            'trigger': trigger,
        })
        return TaskTransaction(task_id=task_id, tx_hash=f"0xcreate-{task_id}")

    def cancel_task(self, task_id):
        del self.tasks[task_id]
        self.cancelled.append(task_id)
        return TaskTransaction(task_id=task_id, tx_hash=f"0xcancel-{task_id}")

    def wait(self, tx_hash):
        self.waited.append(tx_hash)


class FakeSecrets:
    def __init__(self):
        self.calls = []

    def set(self, secrets, task_id):
        self.calls.append((task_id, dict(secrets)))


@pytest.fixture
def settings(tmp_path):
    configs_path = tmp_path / 'configs'
    configs_path.mkdir()
    return DeploymentSettings(
        rpc_urls={'mainnet': 'http://mainnet.invalid', 'gnosis': 'http://gnosis.invalid'},
        configs_path=str(configs_path),
        pre_deployments_path=str(tmp_path / 'pre-deployments.json'),
        deployments_path=str(tmp_path / 'deployments.json'),
        abis_path=DEFAULT_ABIS_PATH,
        web3_functions_path=str(tmp_path / 'web3-functions'),
    )


@pytest.fixture
def clients():
    return {
        'mainnet': DomainClients(automate=FakeAutomateClient('mainnet'), secrets=FakeSecrets()),
        'gnosis': DomainClients(automate=FakeAutomateClient('gnosis'), secrets=FakeSecrets()),
    }


@pytest.fixture
def context(settings, clients):
    return DeploymentContext(
        settings=settings,
        clients=clients,
        environ={'GELATO_KEEPERS_SLACK_WEBHOOK_URL': 'https://hooks.slack.invalid/T000'},
        confirm=always_confirm,
    )


@pytest.fixture
def write_config(settings):
    """Writes `<configs>/<keeper>/<label>.json` and returns its path."""
    def _write(keeper_name, label, config):
        path = Path(settings.configs_path) / keeper_name
        path.mkdir(parents=True, exist_ok=True)
        config_path = path / f"{label}.json"
        config_path.write_text(json.dumps(config, indent=4) + '\n')
        return config_path
    return _write


@pytest.fixture
def write_index(settings):
    def _write(deployments):
        with open(settings.pre_deployments_path, 'w') as f:
            json.dump(deployments, f)
    return _write


@pytest.fixture
def write_schema(settings):
    """Writes `<web3-functions>/<keeper>/schema.json` declaring `user_args`."""
    def _write(keeper_name, user_args):
        path = Path(settings.web3_functions_path) / keeper_name
        path.mkdir(parents=True, exist_ok=True)
        schema = {'web3FunctionVersion': '2.0.0', 'runtime': 'js-1.0', 'userArgs': user_args}
        (path / 'schema.json').write_text(json.dumps(schema, indent=4))
        return path / 'schema.json'
    return _write


@pytest.fixture
def ticker_config(write_schema):
    write_schema('xchain-oracle-ticker', TICKER_USER_ARGS)
    return {
        'domain': 'mainnet',
        'args': {'maxDelta': '604800', 'gasLimit': '800000', 'sendSlackMessages': True},
        'secrets': {'SLACK_WEBHOOK_URL': 'GELATO_KEEPERS_SLACK_WEBHOOK_URL'},
        'trigger': {'type': 'time', 'interval': 300000},
    }
