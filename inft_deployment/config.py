import os
from typing import Iterable, Mapping, NamedTuple, Optional, Tuple

from dotenv import load_dotenv

from inft_deployment.constants import (
    CONTRACTS,
    DEFAULT_VERIFY_COMMAND,
    NETWORK_ENVVAR,
    NETWORKS,
    SUPPORTED_NETWORKS,
    UPGRADE_FLAGS,
    VERIFICATION_GROUPS,
    VERIFY_COMMAND_ENVVAR,
    VERIFY_DELAY,
    VERIFY_TIMEOUT,
    ContractGroup,
    NetworkSettings,
)
from inft_deployment.exceptions import ConfigurationError, UnknownNetwork
from inft_deployment.graph import topological_order
from inft_deployment.utils import is_truthy_flag


def load_environment() -> Mapping[str, str]:
    """Loads .env into the process environment and returns it."""
    load_dotenv(override=True)
    return os.environ


def resolve_network_name(
    environ: Mapping[str, str],
    positional: Optional[str] = None,
    option: Optional[str] = None,
) -> Optional[str]:
    """INFT_NETWORK wins over the positional argument, which wins over --network."""
    return environ.get(NETWORK_ENVVAR) or positional or option or None


def network_settings(name: str) -> NetworkSettings:
    try:
        return NETWORKS[name]
    except KeyError:
        raise UnknownNetwork(
            f"Unsupported network '{name}'; choose one of {', '.join(SUPPORTED_NETWORKS)}"
        )


class UpgradeConfig(NamedTuple):
    network: str
    contracts: Tuple[str, ...] = ()  # enabled, in dependency order
    perform_safety_checks: bool = True

    @classmethod
    def from_environment(
        cls,
        network: str,
        environ: Mapping[str, str],
        contracts: Iterable[str] = (),
        perform_safety_checks: bool = True,
    ) -> "UpgradeConfig":
        """UPGRADE_* flags set to "true" enable contracts; ``contracts`` adds to them."""
        enabled = {name for name, flag in UPGRADE_FLAGS.items() if is_truthy_flag(environ.get(flag))}
        for name in contracts:
            if name not in UPGRADE_FLAGS:
                raise ConfigurationError(f"Unknown contract '{name}'")
            enabled.add(name)
        ordered = tuple(c.name for c in topological_order(CONTRACTS) if c.name in enabled)
        return cls(
            network=network, contracts=ordered, perform_safety_checks=perform_safety_checks
        )

    def is_enabled(self, contract_name: str) -> bool:
        return contract_name in self.contracts


class VerificationConfig(NamedTuple):
    network: str
    groups: Tuple[ContractGroup, ...] = ()
    command: str = DEFAULT_VERIFY_COMMAND
    timeout: int = VERIFY_TIMEOUT
    delay: float = VERIFY_DELAY

    @classmethod
    def from_environment(cls, network: str, environ: Mapping[str, str]) -> "VerificationConfig":
        groups = tuple(
            group for flag, group in VERIFICATION_GROUPS.items() if is_truthy_flag(environ.get(flag))
        )
        command = environ.get(VERIFY_COMMAND_ENVVAR) or DEFAULT_VERIFY_COMMAND
        return cls(network=network, groups=groups, command=command)
