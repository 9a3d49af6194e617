"""Exceptions raised by the deployment scripts."""


class KeeperDeploymentError(Exception):
    """Base class for deployment script errors"""


class ConfigError(KeeperDeploymentError, ValueError):
    """A deployment config file cannot be deployed as written"""


class UnsupportedDomainError(ConfigError):
    pass


class UnsupportedTriggerError(ConfigError):
    pass


class AbiLookupError(ConfigError, LookupError):
    """ABI file missing or event not present in it"""


class MissingSecretError(ConfigError):
    pass


class CredentialError(KeeperDeploymentError):
    """No usable deployer private key"""


class SettingsError(KeeperDeploymentError):
    """A required global setting is missing"""


class TransactionFailedError(KeeperDeploymentError):
    """A transaction was mined but reverted"""
