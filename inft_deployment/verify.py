import json
import shlex
import subprocess
import time
from typing import Any, Callable, Iterable, List, NamedTuple, Optional, Tuple

from eth_typing import ChecksumAddress

from inft_deployment.config import VerificationConfig
from inft_deployment.constants import ALREADY_VERIFIED_MARKER, VERIFICATION_GROUPS, ContractGroup
from inft_deployment.exceptions import ConfigurationError, VerificationBackendFailure
from inft_deployment.records import DeploymentRecord, DeploymentRecordStore
from inft_deployment.reporting import Reporter


class VerificationResult(NamedTuple):
    contract_name: str
    success: bool
    address: Optional[ChecksumAddress] = None
    error: Optional[str] = None


class VerificationSummary(NamedTuple):
    successful: Tuple[VerificationResult, ...] = ()
    failed: Tuple[VerificationResult, ...] = ()

    @classmethod
    def from_results(cls, results: Iterable[VerificationResult]) -> "VerificationSummary":
        results = list(results)
        return cls(
            successful=tuple(r for r in results if r.success),
            failed=tuple(r for r in results if not r.success),
        )

    @property
    def success(self) -> bool:
        return not self.failed


class CommandOutcome(NamedTuple):
    returncode: int
    stdout: str
    stderr: str

    @property
    def output(self) -> str:
        return f"{self.stdout}\n{self.stderr}".strip()


def run_command(command: str, timeout: float) -> CommandOutcome:
    """Runs a shell command, capturing its output."""
    try:
        completed = subprocess.run(
            command, shell=True, capture_output=True, text=True, timeout=timeout
        )
    except subprocess.TimeoutExpired as e:
        raise VerificationBackendFailure(f"Command timed out after {timeout}s: {command}") from e
    except OSError as e:
        raise VerificationBackendFailure(f"Could not run '{command}': {e}") from e
    return CommandOutcome(
        returncode=completed.returncode,
        stdout=completed.stdout or "",
        stderr=completed.stderr or "",
    )


def _render_arg(arg: Any) -> str:
    if isinstance(arg, bool):
        return json.dumps(arg)
    if arg is None or isinstance(arg, (list, dict)):
        return json.dumps(arg, separators=(",", ":"))
    return str(arg)


def format_constructor_args(args: Iterable[Any]) -> List[str]:
    """
    Renders constructor arguments as shell words: booleans, null, lists and objects
    as JSON, anything else as its string form. Every word is shell-quoted; hex strings
    need no quoting and pass through unchanged.
    """
    return [shlex.quote(_render_arg(arg)) for arg in args]


def build_verify_command(command: str, network: str, record: DeploymentRecord) -> str:
    parts = [command, "--network", network, record.address]
    parts.extend(format_constructor_args(record.args))
    return " ".join(parts)


def _already_verified(text: str) -> bool:
    return ALREADY_VERIFIED_MARKER in text.lower()


class VerificationDispatcher:
    """
    Verifies the source of recorded contracts on the block explorer, one enabled
    contract group at a time. A failing contract never stops the others.
    """

    def __init__(
        self,
        store: DeploymentRecordStore,
        config: VerificationConfig,
        runner: Callable[[str, float], CommandOutcome] = run_command,
        sleep: Callable[[float], None] = time.sleep,
        reporter: Optional[Reporter] = None,
    ):
        self.store = store
        self.config = config
        self.runner = runner
        self.sleep = sleep
        self.reporter = reporter or Reporter()

    def verify_contract(self, contract_name: str) -> VerificationResult:
        self.reporter.info(f"\nVerifying {contract_name}...")
        network = self.config.network

        if not self.store.exists(network, contract_name):
            self.reporter.warning(
                f"Deployment file not found: {self.store.filepath(network, contract_name)}"
            )
            return VerificationResult(contract_name, False, error="Deployment file not found")

        record = self.store.get_or_none(network, contract_name)
        if record is None:
            return VerificationResult(contract_name, False, error="Deployment file unreadable")

        self.reporter.info(f"Address: {record.address}")
        self.reporter.info(f"Args: {json.dumps(list(record.args))}")
        command = build_verify_command(self.config.command, network, record)
        self.reporter.info(f"Command: {command}")

        try:
            outcome = self.runner(command, self.config.timeout)
        except VerificationBackendFailure as e:
            self.reporter.error(f"Failed to verify {contract_name}:")
            self.reporter.error(f"Error: {e}")
            return VerificationResult(contract_name, False, address=record.address, error=str(e))

        if outcome.returncode == 0:
            self.reporter.success(f"{contract_name} verified successfully!")
            if outcome.stdout.strip():
                self.reporter.info(f"Output: {outcome.stdout.strip()}")
            return VerificationResult(contract_name, True, address=record.address)

        if _already_verified(outcome.output):
            self.reporter.success(f"{contract_name} is already verified.")
            return VerificationResult(contract_name, True, address=record.address)

        error = f"Command exited with status {outcome.returncode}"
        self.reporter.error(f"Failed to verify {contract_name}:")
        self.reporter.error(f"Error: {error}")
        if outcome.stdout:
            self.reporter.error(f"Stdout: {outcome.stdout}")
        if outcome.stderr:
            self.reporter.error(f"Stderr: {outcome.stderr}")
        return VerificationResult(contract_name, False, address=record.address, error=error)

    def verify_group(self, group: ContractGroup) -> List[VerificationResult]:
        self.reporter.section(f"Verifying {group.description}")
        results = list()
        for index, contract_name in enumerate(group.contracts):
            results.append(self.verify_contract(contract_name))
            if index < len(group.contracts) - 1:
                self.sleep(self.config.delay)

        self.reporter.info(f"\n{group.description} verification results:")
        for result in results:
            if result.success:
                self.reporter.success(f"  {result.contract_name}: verified")
            else:
                self.reporter.error(f"  {result.contract_name}: {result.error}")
        return results

    def run(self) -> VerificationSummary:
        directory = self.store.directory(self.config.network)
        if not directory.is_dir():
            raise ConfigurationError(f"Deployments directory not found: {directory}")

        self.reporter.section(f"Contract verification on {self.config.network}")
        self.reporter.info(f"Deployments path: {directory}")

        if not self.config.groups:
            self.reporter.warning("No contract groups enabled for verification.")
            self.reporter.info("Set any of the following environment variables to 'true':")
            for flag, group in VERIFICATION_GROUPS.items():
                self.reporter.info(f"  {flag}: {', '.join(group.contracts)}")
            return VerificationSummary()

        results = list()
        for group in self.config.groups:
            results.extend(self.verify_group(group))

        summary = VerificationSummary.from_results(results)
        self._print_summary(summary)
        return summary

    def _print_summary(self, summary: VerificationSummary) -> None:
        self.reporter.section("Verification Summary")
        self.reporter.success(f"Successful: {len(summary.successful)}")
        for result in summary.successful:
            self.reporter.info(f"  {result.contract_name} ({result.address})")
        if summary.failed:
            self.reporter.error(f"Failed: {len(summary.failed)}")
            for result in summary.failed:
                self.reporter.error(f"  {result.contract_name}: {result.error}")
        else:
            self.reporter.info("Failed: 0")
