"""Deployer private key resolution."""

import logging
from typing import Optional

from eth_account import Account
from web3 import Web3

from .errors import CredentialError

logger = logging.getLogger(__name__)


def read_password(password_path: Optional[str]) -> str:
    """Password file contents without the trailing newline. No path means an empty password."""
    if not password_path:
        return ''
    with open(password_path, 'r') as f:
        password = f.read()
    if password.endswith('\n'):
        password = password[:-1]
    return password


def retrieve_private_key_from_keystore(keystore_path: str, password_path: Optional[str]) -> str:
    """Decrypts a JSON keystore and returns the 0x-prefixed private key."""
    try:
        password = read_password(password_path)
        with open(keystore_path, 'r') as f:
            keystore = f.read()
    except OSError as e:
        raise CredentialError(f"Could not read keystore credentials: {e}") from e

    try:
        private_key = Account.decrypt(keystore, password)
    except ValueError as e:
        raise CredentialError(f"Could not decrypt keystore {keystore_path}: {e}") from e
    return Web3.to_hex(private_key)


def resolve_private_key(
    private_key: Optional[str] = None,
    keystore_path: Optional[str] = None,
    password_path: Optional[str] = None,
) -> str:
    """
    Resolve the deployer key.

    An explicit private key wins; otherwise both a keystore and a password file
    are required.
    """
    if private_key:
        return private_key

    if keystore_path and password_path:
        logger.info(f"Decrypting keystore {keystore_path}")
        return retrieve_private_key_from_keystore(keystore_path, password_path)

    raise CredentialError("Private key is not configured")
