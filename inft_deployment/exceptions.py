"""Error taxonomy for deployment, upgrade and verification runs."""


class DeploymentError(Exception):
    """Base exception for deployment-related errors."""


#
# Records
#


class RecordNotFound(DeploymentError, LookupError):
    """Raised when a mandatory deployment record is absent."""


class ProxyAddressMissing(RecordNotFound):
    """Raised when the proxy record of a contract to upgrade is absent."""


class RecordIOError(DeploymentError, OSError):
    """Raised when a deployment record cannot be read or written."""


class InvalidRecord(DeploymentError, ValueError):
    """Raised when a deployment record does not match the record schema."""


class RecordConflict(DeploymentError, ValueError):
    """Raised when a write would change the permanent address of a proxy record."""


#
# Chain
#


class NodeUnavailable(DeploymentError):
    """Raised when the RPC endpoint of a network cannot be reached."""


class StorageReadFailure(DeploymentError):
    """Raised when a storage slot cannot be read from the node."""


class TransactionFailed(DeploymentError):
    """Raised when a submitted transaction is mined but reverted."""


#
# Upgrades
#


class Unauthorized(DeploymentError, PermissionError):
    """Raised when the signer does not own the beacon it is asked to upgrade."""


class BeaconNotConfigured(DeploymentError):
    """Raised when a proxy's beacon slot is unset."""


class SafetyCheckFailure(DeploymentError):
    """Raised when a pre-upgrade safety check fails."""


class ImplementationNotDeployed(SafetyCheckFailure):
    """Raised when there is no code at the new implementation address."""


class ProxyNotFound(SafetyCheckFailure):
    """Raised when there is no code at the proxy address."""


class ImplementationMismatch(DeploymentError):
    """Raised when the beacon does not point at the submitted implementation after upgrading."""


#
# Verification
#


class VerificationBackendFailure(DeploymentError):
    """Raised when the external verification command fails."""


#
# Configuration
#


class ConfigurationError(DeploymentError, ValueError):
    """Raised when the run configuration is invalid."""


class UnknownNetwork(ConfigurationError):
    """Raised when a network name is not supported."""


class NetworkMismatch(ConfigurationError):
    """Raised when the connected node reports an unexpected chain id."""


class DependencyCycle(ConfigurationError):
    """Raised when the contract dependency graph cannot be ordered."""


class DeploymentAborted(DeploymentError):
    """Raised when the operator declines a confirmation prompt."""
