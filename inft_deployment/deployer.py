from enum import Enum
from typing import Dict, List, NamedTuple, Optional, Tuple

from eth_typing import ChecksumAddress
from eth_utils import to_checksum_address

from inft_deployment.constants import (
    BEACON_CONTRACT,
    BEACON_PROXY_CONTRACT,
    BEACON_SUFFIX,
    IMPLEMENTATION_SUFFIX,
    ContractIdentity,
)
from inft_deployment.exceptions import DeploymentAborted
from inft_deployment.params import (
    INITIALIZER_METHOD,
    POST_DEPLOY_PROBES,
    InitializerParameters,
    describe,
    initializer_args,
)
from inft_deployment.records import DeploymentRecord, DeploymentRecordStore
from inft_deployment.reporting import Reporter


class DeployStatus(Enum):
    DEPLOYED = "deployed"
    SKIPPED = "skipped"
    FAILED = "failed"


class DeployResult(NamedTuple):
    contract_name: str
    status: DeployStatus
    address: Optional[ChecksumAddress] = None
    error: Optional[Exception] = None

    @property
    def success(self) -> bool:
        return self.status != DeployStatus.FAILED


class IdempotentDeployer:
    """
    Deploys one beacon-proxied contract unless a record for it already exists.

    The implementation, its UpgradeableBeacon and the BeaconProxy are each recorded as
    soon as they land, so an interrupted deployment resumes from the last recorded
    piece instead of deploying it twice.
    """

    def __init__(
        self,
        chain,
        store: DeploymentRecordStore,
        network: str,
        params: InitializerParameters,
        reporter: Optional[Reporter] = None,
    ):
        self.chain = chain
        self.store = store
        self.network = network
        self.params = params
        self.reporter = reporter or Reporter()

    def _is_live(self, record: Optional[DeploymentRecord]) -> bool:
        return record is not None and len(self.chain.get_code(record.address)) > 0

    def _record_deployment(self, name: str, deployed, implementation=None) -> DeploymentRecord:
        record = DeploymentRecord(
            address=deployed.address,
            args=tuple(deployed.args),
            transaction_hash=deployed.transaction_hash,
            abi=deployed.abi,
            implementation=implementation,
        )
        return self.store.persist(self.network, name, lambda existing: record)

    def _implementation(self, contract_name: str) -> Tuple[ChecksumAddress, Optional[list]]:
        name = f"{contract_name}{IMPLEMENTATION_SUFFIX}"
        existing = self.store.get_or_none(self.network, name, strict=True)
        if self._is_live(existing):
            self.reporter.info(f"Reusing {name} at: {existing.address}")
            return existing.address, existing.abi

        deployed = self.chain.deploy(contract_name)
        self._record_deployment(name, deployed)
        self.reporter.success(f"{name} deployed at: {deployed.address}")
        return deployed.address, deployed.abi

    def _beacon(self, contract_name: str) -> Tuple[ChecksumAddress, ChecksumAddress, Optional[list]]:
        """Returns (beacon, implementation, implementation abi)."""
        name = f"{contract_name}{BEACON_SUFFIX}"
        existing = self.store.get_or_none(self.network, name, strict=True)
        if self._is_live(existing):
            implementation = to_checksum_address(
                self.chain.call(BEACON_CONTRACT, existing.address, "implementation")
            )
            self.reporter.info(f"Reusing {name} at: {existing.address} -> {implementation}")
            implementation_record = self.store.get_or_none(
                self.network, f"{contract_name}{IMPLEMENTATION_SUFFIX}", strict=True
            )
            abi = implementation_record.abi if implementation_record else None
            return existing.address, implementation, abi

        implementation, abi = self._implementation(contract_name)
        deployed = self.chain.deploy(BEACON_CONTRACT, implementation, self.chain.address)
        self._record_deployment(name, deployed, implementation=implementation)
        self.reporter.success(f"{name} deployed at: {deployed.address}")
        return deployed.address, implementation, abi

    def _probe(self, contract_name: str, address: ChecksumAddress) -> None:
        for method in POST_DEPLOY_PROBES.get(contract_name, ()):
            try:
                value = self.chain.call(contract_name, address, method)
            except Exception as e:
                self.reporter.warning(f"Could not read {contract_name}.{method}(): {e}")
                continue
            self.reporter.info(f"  {method}: {value}")

    def deploy(self, identity: ContractIdentity) -> DeployResult:
        name = identity.name
        self.reporter.info(f"Deploying {name} with account: {self.chain.address}")

        existing = self.store.get_or_none(self.network, name, strict=True)
        if existing is not None:
            self.reporter.success(f"{name} already deployed at: {existing.address}")
            return DeployResult(name, DeployStatus.SKIPPED, address=existing.address)

        # RecordNotFound here stops this contract before anything is sent
        dependencies: Dict[str, DeploymentRecord] = dict()
        for dependency in identity.dependencies:
            dependencies[dependency] = self.store.get(self.network, dependency)
            self.reporter.info(f"Using {dependency} at: {dependencies[dependency].address}")

        args = initializer_args(name, self.params, dependencies, self.chain.address)
        for line in describe(self.params, name):
            self.reporter.info(line)

        self.reporter.info(f"Deploying {name} with Beacon Proxy...")
        init_data = self.chain.encode_call(name, INITIALIZER_METHOD, *args)
        beacon, implementation, abi = self._beacon(name)
        proxy = self.chain.deploy(BEACON_PROXY_CONTRACT, beacon, init_data)
        self._record_deployment(name, proxy._replace(abi=abi or proxy.abi), implementation)
        self.reporter.success(f"{name} deployed at: {proxy.address}")

        self._probe(name, proxy.address)
        return DeployResult(name, DeployStatus.DEPLOYED, address=proxy.address)


class DeploymentPipeline:
    """Drives the deployer over contracts in dependency order, isolating failures."""

    def __init__(self, deployer: IdempotentDeployer, reporter: Optional[Reporter] = None):
        self.deployer = deployer
        self.reporter = reporter or Reporter()

    def run(self, contracts: List[ContractIdentity]) -> List[DeployResult]:
        results = list()
        for identity in contracts:
            self.reporter.section(f"Deploying {identity.name}")
            try:
                result = self.deployer.deploy(identity)
            except DeploymentAborted:
                raise
            except Exception as e:
                self.reporter.error(f"Failed to deploy {identity.name}: {e}")
                result = DeployResult(identity.name, DeployStatus.FAILED, error=e)
            results.append(result)
        self._print_summary(results)
        return results

    def _print_summary(self, results: List[DeployResult]) -> None:
        self.reporter.section("Deployment Summary")
        for result in results:
            line = f"{result.contract_name}: {result.status.value}"
            if result.address:
                line = f"{line} ({result.address})"
            if result.success:
                self.reporter.success(line)
            else:
                self.reporter.error(f"{line} - {result.error}")
