"""
Web3 Function user args

The platform runtime decodes a task's user args with the types declared in the
function's `schema.json`:

    {
        "web3FunctionVersion": "2.0.0",
        "runtime": "js-1.0",
        "userArgs": {"maxDelta": "string", "sendSlackMessages": "boolean"}
    }

Args are ABI-encoded in the order the schema declares them. Schema types map to
ABI types through `USER_ARG_ABI_TYPES`, which follows the vendor SDK.
"""

import json
from pathlib import Path
from typing import Any, Dict, Mapping

from eth_abi import encode

from .errors import ConfigError

SCHEMA_FILE = 'schema.json'

USER_ARG_ABI_TYPES = {
    'boolean': 'bool',
    'boolean[]': 'bool[]',
    'string': 'string',
    'string[]': 'string[]',
    'number': 'int256',
    'number[]': 'int256[]',
}


def load_user_arg_types(web3_functions_path, keeper_name: str) -> Dict[str, str]:
    """User arg name -> schema type, in declaration order."""
    schema_path = Path(web3_functions_path) / keeper_name / SCHEMA_FILE
    try:
        with open(schema_path, 'r') as f:
            schema = json.load(f)
    except FileNotFoundError as e:
        raise ConfigError(f"No {SCHEMA_FILE} for {keeper_name} at {schema_path}") from e
    except ValueError as e:
        raise ConfigError(f"Schema {schema_path} is not valid JSON: {e}") from e

    if not isinstance(schema, dict):
        raise ConfigError(f"Schema {schema_path} must be a JSON object")
    user_args = schema.get('userArgs') or {}
    if not isinstance(user_args, dict):
        raise ConfigError(f"Schema {schema_path} has no valid userArgs")
    return user_args


def _check_value(name: str, schema_type: str, value: Any):
    base_type = schema_type[:-2] if schema_type.endswith('[]') else schema_type
    values = value if schema_type.endswith('[]') else [value]
    if schema_type.endswith('[]') and not isinstance(value, list):
        raise ConfigError(f"User arg {name} must be a list")

    for item in values:
        if base_type == 'boolean':
            valid = isinstance(item, bool)
        elif base_type == 'string':
            valid = isinstance(item, str)
        else:
            valid = isinstance(item, int) and not isinstance(item, bool)
        if not valid:
            raise ConfigError(f"User arg {name} is not a valid {schema_type}: {item!r}")


def encode_user_args(user_arg_types: Mapping[str, str], args: Mapping[str, Any]) -> bytes:
    unknown = sorted(set(args) - set(user_arg_types))
    if unknown:
        raise ConfigError(f"User args {', '.join(unknown)} are not declared in the schema")

    abi_types = []
    values = []
    for name, schema_type in user_arg_types.items():
        if schema_type not in USER_ARG_ABI_TYPES:
            raise ConfigError(f"User arg type {schema_type} is not supported")
        if name not in args:
            raise ConfigError(f"User arg {name} is missing")
        _check_value(name, schema_type, args[name])
        abi_types.append(USER_ARG_ABI_TYPES[schema_type])
        values.append(args[name])
    return encode(abi_types, values)
