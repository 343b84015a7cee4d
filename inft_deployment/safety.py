from typing import Optional

from eth_typing import ChecksumAddress

from inft_deployment.constants import VERSION_METHOD
from inft_deployment.exceptions import ImplementationNotDeployed, ProxyNotFound
from inft_deployment.reporting import Reporter


def _has_code(chain, address: ChecksumAddress) -> bool:
    return len(chain.get_code(address)) > 0


def probe_version(chain, contract_name: str, address: ChecksumAddress, reporter: Reporter):
    """Reads VERSION() through the contract's interface; a failure is only a warning."""
    try:
        version = chain.call(contract_name, address, VERSION_METHOD)
    except Exception as e:
        reporter.warning(f"Could not read {contract_name} version: {e}")
        return None
    reporter.success(f"{contract_name} version: {version}")
    return version


class SafetyCheckEngine:
    """Pre-upgrade validation that both ends of an upgrade are live, deployed code."""

    def __init__(self, chain, reporter: Optional[Reporter] = None):
        self.chain = chain
        self.reporter = reporter or Reporter()

    def check(
        self,
        contract_name: str,
        proxy_address: ChecksumAddress,
        implementation_address: ChecksumAddress,
    ) -> None:
        """Raises a SafetyCheckFailure unless the implementation and the proxy both have code."""
        self.reporter.section(f"Safety Checks for {contract_name}")

        if not _has_code(self.chain, implementation_address):
            raise ImplementationNotDeployed(
                f"No code found at implementation address: {implementation_address}"
            )
        self.reporter.success("Implementation contract has code")

        if not _has_code(self.chain, proxy_address):
            raise ProxyNotFound(f"No code found at proxy address: {proxy_address}")
        self.reporter.success("Proxy contract exists")

        probe_version(self.chain, contract_name, proxy_address, self.reporter)
