from enum import Enum
from typing import List, NamedTuple, Optional

from eth_typing import ChecksumAddress
from eth_utils import to_checksum_address

from inft_deployment.beacon import BeaconResolver
from inft_deployment.config import UpgradeConfig
from inft_deployment.constants import BEACON_CONTRACT, CONTRACTS, IMPLEMENTATION_SUFFIX
from inft_deployment.exceptions import (
    BeaconNotConfigured,
    DeploymentAborted,
    DeploymentError,
    ImplementationMismatch,
    ProxyAddressMissing,
    RecordNotFound,
    Unauthorized,
)
from inft_deployment.records import DeploymentRecord, DeploymentRecordStore, UpgradeEntry, utc_timestamp
from inft_deployment.reporting import Reporter
from inft_deployment.safety import SafetyCheckEngine, probe_version


class UpgradeStep(Enum):
    LOOKUP_PROXY = "lookup proxy address"
    RESOLVE_BEACON = "resolve beacon"
    READ_CURRENT_IMPLEMENTATION = "read current implementation"
    CHECK_AUTHORIZATION = "check authorization"
    DEPLOY_IMPLEMENTATION = "deploy new implementation"
    RUN_SAFETY_CHECKS = "run safety checks"
    SUBMIT_UPGRADE = "submit upgrade"
    AWAIT_CONFIRMATION = "await confirmation"
    VERIFY_IMPLEMENTATION = "verify implementation"
    PERSIST_RECORD = "persist record"
    DONE = "done"
    FAILED = "failed"


class UpgradeResult(NamedTuple):
    contract_name: str
    success: bool
    transaction_hash: Optional[str] = None
    previous_implementation: Optional[ChecksumAddress] = None
    new_implementation: Optional[ChecksumAddress] = None
    failed_step: Optional[UpgradeStep] = None
    error: Optional[Exception] = None
    record_errors: tuple = ()


def _same_address(a: str, b: str) -> bool:
    return a.lower() == b.lower()


class UpgradeOrchestrator:
    """
    Upgrades beacon-proxied contracts one at a time.

    Each contract walks a fixed sequence of steps; a failure at any step ends that
    contract's upgrade (without touching its records) and the run moves on to the
    next enabled contract. Steps already completed for earlier contracts stand.
    """

    def __init__(
        self,
        chain,
        store: DeploymentRecordStore,
        config: UpgradeConfig,
        reporter: Optional[Reporter] = None,
    ):
        self.chain = chain
        self.store = store
        self.config = config
        self.reporter = reporter or Reporter()
        self.resolver = BeaconResolver(chain)
        self.safety = SafetyCheckEngine(chain, reporter=self.reporter)

    def _enter(self, contract_name: str, step: UpgradeStep, detail: str = "") -> UpgradeStep:
        self.reporter.step(contract_name, step, detail)
        return step

    def _beacon_implementation(self, beacon: ChecksumAddress) -> ChecksumAddress:
        return to_checksum_address(self.chain.call(BEACON_CONTRACT, beacon, "implementation"))

    def upgrade(self, contract_name: str) -> UpgradeResult:
        network = self.config.network
        step = self._enter(contract_name, UpgradeStep.LOOKUP_PROXY)
        previous = new_implementation = transaction_hash = None
        try:
            record = self.store.get_or_none(network, contract_name)
            if record is None:
                raise ProxyAddressMissing(
                    f"{contract_name} proxy address not found in deployments "
                    f"({self.store.filepath(network, contract_name)})"
                )
            proxy = record.address
            self.reporter.info(f"{contract_name} proxy address: {proxy}")

            step = self._enter(contract_name, UpgradeStep.RESOLVE_BEACON)
            beacon = self.resolver.resolve(proxy)
            if self.resolver.is_unset(beacon):
                raise BeaconNotConfigured(f"No beacon configured for {contract_name} at {proxy}")
            self.reporter.info(f"{contract_name} Beacon address: {beacon}")

            step = self._enter(contract_name, UpgradeStep.READ_CURRENT_IMPLEMENTATION)
            previous = self._beacon_implementation(beacon)
            self.reporter.info(f"Current implementation: {previous}")

            step = self._enter(contract_name, UpgradeStep.CHECK_AUTHORIZATION)
            owner = self.chain.call(BEACON_CONTRACT, beacon, "owner")
            if not _same_address(owner, self.chain.address):
                raise Unauthorized(
                    f"Not authorized to upgrade {contract_name}. "
                    f"Owner: {owner}, Deployer: {self.chain.address}"
                )

            step = self._enter(contract_name, UpgradeStep.DEPLOY_IMPLEMENTATION)
            implementation = self.chain.deploy(contract_name)
            new_implementation = implementation.address
            self.reporter.success(f"New {contract_name} implementation: {new_implementation}")

            if self.config.perform_safety_checks:
                step = self._enter(contract_name, UpgradeStep.RUN_SAFETY_CHECKS)
                self.safety.check(contract_name, proxy, new_implementation)

            step = self._enter(contract_name, UpgradeStep.SUBMIT_UPGRADE, new_implementation)
            receipt = self.chain.transact(BEACON_CONTRACT, beacon, "upgradeTo", new_implementation)
            transaction_hash = receipt.transaction_hash

            step = self._enter(
                contract_name,
                UpgradeStep.AWAIT_CONFIRMATION,
                f"{transaction_hash} in block {receipt.block_number}",
            )

            step = self._enter(contract_name, UpgradeStep.VERIFY_IMPLEMENTATION)
            current = self._beacon_implementation(beacon)
            if not _same_address(current, new_implementation):
                raise ImplementationMismatch(
                    f"{contract_name} beacon points at {current} after upgrading "
                    f"to {new_implementation} (transaction {transaction_hash})"
                )
            self.reporter.success(f"{contract_name} upgrade successful")

        except DeploymentAborted:
            raise
        except Exception as e:
            self.reporter.step(contract_name, UpgradeStep.FAILED, f"{step.value}: {e}")
            return UpgradeResult(
                contract_name=contract_name,
                success=False,
                transaction_hash=transaction_hash,
                previous_implementation=previous,
                new_implementation=new_implementation,
                failed_step=step,
                error=e,
            )

        self._enter(contract_name, UpgradeStep.PERSIST_RECORD)
        entry = UpgradeEntry(
            timestamp=utc_timestamp(),
            transaction_hash=transaction_hash,
            new_implementation=new_implementation,
            previous_implementation=previous,
        )
        record_errors = self._persist(contract_name, implementation, entry)

        self._enter(contract_name, UpgradeStep.DONE, f"transaction {transaction_hash}")
        return UpgradeResult(
            contract_name=contract_name,
            success=True,
            transaction_hash=transaction_hash,
            previous_implementation=previous,
            new_implementation=new_implementation,
            record_errors=tuple(record_errors),
        )

    def _persist(self, contract_name: str, implementation, entry: UpgradeEntry) -> List[Exception]:
        """
        Records the upgrade on the proxy record and on the implementation record.
        Write failures are reported, never raised: the upgrade is already on chain.
        """
        network = self.config.network

        def update_proxy(existing: Optional[DeploymentRecord]) -> DeploymentRecord:
            if existing is None:
                raise RecordNotFound(f"{contract_name} record disappeared during the upgrade")
            return existing._replace(implementation=entry.new_implementation, last_upgrade=entry)

        def update_implementation(existing: Optional[DeploymentRecord]) -> DeploymentRecord:
            base = existing or DeploymentRecord(address=implementation.address)
            return base._replace(
                address=implementation.address,
                args=tuple(implementation.args),
                transaction_hash=implementation.transaction_hash,
                abi=implementation.abi,
                last_upgrade=entry,
            )

        errors = list()
        updates = (
            (contract_name, update_proxy),
            (f"{contract_name}{IMPLEMENTATION_SUFFIX}", update_implementation),
        )
        for name, mutator in updates:
            try:
                self.store.persist(network, name, mutator)
            except DeploymentError as e:
                self.reporter.error(f"Error updating deployment file for {name}: {e}")
                errors.append(e)
            else:
                self.reporter.success(f"Updated deployment file: {self.store.filepath(network, name)}")
        self.reporter.info(f"  Previous implementation: {entry.previous_implementation or 'N/A'}")
        self.reporter.info(f"  New implementation: {entry.new_implementation}")
        return errors

    def run(self) -> List[UpgradeResult]:
        self.reporter.section("Smart Contract Upgrade Process")
        self.reporter.info(f"Network: {self.config.network}")
        self.reporter.info(f"Deployments path: {self.store.directory(self.config.network)}")
        self.reporter.info(f"Upgrading: {', '.join(self.config.contracts) or 'nothing'}")

        results = list()
        for contract_name in self.config.contracts:
            self.reporter.section(f"Upgrading {contract_name}")
            results.append(self.upgrade(contract_name))

        self._final_verification(results)
        self._print_summary(results)
        return results

    def _final_verification(self, results: List[UpgradeResult]) -> None:
        self.reporter.section("Final Verification")
        for result in results:
            record = self.store.get_or_none(self.config.network, result.contract_name)
            if record is None:
                continue
            probe_version(self.chain, result.contract_name, record.address, self.reporter)

    def _print_summary(self, results: List[UpgradeResult]) -> None:
        self.reporter.section("Upgrade Summary")
        outcomes = {result.contract_name: result for result in results}
        for contract_name in CONTRACTS:
            result = outcomes.get(contract_name)
            if result is None:
                self.reporter.info(f"{contract_name} upgrade: Skipped")
            elif result.success:
                self.reporter.success(f"{contract_name} upgrade: Success")
            else:
                self.reporter.error(f"{contract_name} upgrade: Failed ({result.error})")

        if all_succeeded(results):
            self.reporter.success("Overall upgrade: Success")
        else:
            self.reporter.error("Overall upgrade: Failed")


def all_succeeded(results) -> bool:
    return all(result.success for result in results)
