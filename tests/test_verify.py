import pytest

from inft_deployment.config import VerificationConfig
from inft_deployment.constants import VERIFICATION_GROUPS
from inft_deployment.exceptions import ConfigurationError, VerificationBackendFailure
from inft_deployment.records import DeploymentRecord
from inft_deployment.verify import (
    CommandOutcome,
    VerificationDispatcher,
    build_verify_command,
    format_constructor_args,
    run_command,
)
from tests.conftest import NETWORK

ADDRESS = "0x5FbDB2315678afecb367f032d93F642f64180aa3"
AGENT_NFT_GROUP = VERIFICATION_GROUPS["VERIFY_AGENT_NFT"]
VERIFIER_GROUP = VERIFICATION_GROUPS["VERIFY_VERIFIER"]


class FakeRunner:
    def __init__(self, *outcomes):
        self.outcomes = list(outcomes)
        self.commands = list()

    def __call__(self, command, timeout):
        self.commands.append((command, timeout))
        outcome = self.outcomes.pop(0) if len(self.outcomes) > 1 else self.outcomes[0]
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


ALREADY_VERIFIED = CommandOutcome(1, "", "Error: Contract source code already verified")
VERIFIED = CommandOutcome(0, "Successfully verified contract\n", "")
FAILED = CommandOutcome(1, "", "Error: bytecode mismatch")


@pytest.fixture
def sleeps():
    return list()


def _dispatcher(store, reporter, runner, sleeps, groups=(AGENT_NFT_GROUP,)):
    config = VerificationConfig(network=NETWORK, groups=tuple(groups), command="npx hardhat verify")
    return VerificationDispatcher(
        store, config, runner=runner, sleep=sleeps.append, reporter=reporter
    )


def _record_group(store, group, args=()):
    for name in group.contracts:
        store.persist(NETWORK, name, lambda existing: DeploymentRecord(address=ADDRESS, args=args))


def test_already_verified_counts_as_success(store, reporter, sleeps):
    _record_group(store, AGENT_NFT_GROUP)
    runner = FakeRunner(ALREADY_VERIFIED)

    summary = _dispatcher(store, reporter, runner, sleeps).run()

    assert len(summary.successful) == 3
    assert len(summary.failed) == 0
    assert summary.success
    assert len(runner.commands) == 3
    assert sleeps == [3, 3]


def test_already_verified_on_stdout(store, reporter, sleeps):
    _record_group(store, AGENT_NFT_GROUP)
    runner = FakeRunner(CommandOutcome(1, "Contract Already Verified", ""))
    assert _dispatcher(store, reporter, runner, sleeps).run().success


def test_one_failure(store, reporter, sleeps):
    _record_group(store, AGENT_NFT_GROUP)
    runner = FakeRunner(VERIFIED, FAILED, VERIFIED)

    summary = _dispatcher(store, reporter, runner, sleeps).run()

    assert [r.contract_name for r in summary.successful] == ["AgentNFT", "AgentNFTImpl"]
    assert [r.contract_name for r in summary.failed] == ["AgentNFTBeacon"]
    assert not summary.success
    assert summary.failed[0].address == ADDRESS
    assert any("bytecode mismatch" in m for m in reporter.messages("error"))


def test_missing_record(store, reporter, sleeps):
    store.persist(NETWORK, "AgentNFT", lambda existing: DeploymentRecord(address=ADDRESS))
    runner = FakeRunner(VERIFIED)

    summary = _dispatcher(store, reporter, runner, sleeps).run()

    assert [r.contract_name for r in summary.failed] == ["AgentNFTBeacon", "AgentNFTImpl"]
    assert {r.error for r in summary.failed} == {"Deployment file not found"}
    assert len(runner.commands) == 1
    assert sleeps == [3, 3]


def test_backend_failure(store, reporter, sleeps):
    _record_group(store, AGENT_NFT_GROUP)
    runner = FakeRunner(VerificationBackendFailure("Command timed out after 60s"))

    summary = _dispatcher(store, reporter, runner, sleeps).run()

    assert len(summary.failed) == 3
    assert "timed out" in summary.failed[0].error
    assert runner.commands[0][1] == 60


def test_groups_run_in_order(store, reporter, sleeps):
    _record_group(store, VERIFIER_GROUP)
    _record_group(store, AGENT_NFT_GROUP)
    runner = FakeRunner(VERIFIED)

    summary = _dispatcher(
        store, reporter, runner, sleeps, groups=(VERIFIER_GROUP, AGENT_NFT_GROUP)
    ).run()

    assert [r.contract_name for r in summary.successful] == [
        "Verifier",
        "VerifierBeacon",
        "VerifierImpl",
        "AgentNFT",
        "AgentNFTBeacon",
        "AgentNFTImpl",
    ]
    assert len(sleeps) == 4


def test_no_groups_enabled(store, reporter, sleeps):
    _record_group(store, AGENT_NFT_GROUP)
    runner = FakeRunner(VERIFIED)

    summary = _dispatcher(store, reporter, runner, sleeps, groups=()).run()

    assert summary.success
    assert summary.successful == ()
    assert runner.commands == []
    assert any("VERIFY_AGENT_MARKET" in m for m in reporter.messages("info"))


def test_missing_deployments_directory(store, reporter, sleeps):
    with pytest.raises(ConfigurationError, match="Deployments directory not found"):
        _dispatcher(store, reporter, FakeRunner(VERIFIED), sleeps).run()


def test_command_includes_network_address_and_args(store, reporter, sleeps):
    _record_group(store, VERIFIER_GROUP, args=("0x1234", 5))
    runner = FakeRunner(VERIFIED)

    _dispatcher(store, reporter, runner, sleeps, groups=(VERIFIER_GROUP,)).run()

    command, timeout = runner.commands[0]
    assert command == f"npx hardhat verify --network {NETWORK} {ADDRESS} 0x1234 5"


def test_format_constructor_args():
    assert format_constructor_args([]) == []
    assert format_constructor_args(["0xabc", "name", 1000, True, False, None]) == [
        "0xabc",
        "name",
        "1000",
        "true",
        "false",
        "null",
    ]
    assert format_constructor_args([[1, "a"], {"k": 2}]) == ["'[1,\"a\"]'", "'{\"k\":2}'"]
    assert format_constructor_args(["Agent NFT", "$HOME"]) == ["'Agent NFT'", "'$HOME'"]


def test_constructor_args_reach_the_command_literally():
    args = ["$HOME", "`id`", 'say "hi"', "it's"]
    command = "printf '%s|' " + " ".join(format_constructor_args(args))
    outcome = run_command(command, timeout=10)
    assert outcome.stdout == "|".join(args) + "|"


def test_build_verify_command():
    record = DeploymentRecord(address=ADDRESS, args=(ADDRESS, "0x"))
    assert (
        build_verify_command("npx hardhat verify", "zgTestnet", record)
        == f"npx hardhat verify --network zgTestnet {ADDRESS} {ADDRESS} 0x"
    )


def test_verification_config_from_environment():
    environ = {"VERIFY_AGENT_NFT": "true", "VERIFY_VERIFIER": "no", "VERIFY_COMMAND": "echo"}
    config = VerificationConfig.from_environment(NETWORK, environ)
    assert config.groups == (AGENT_NFT_GROUP,)
    assert config.command == "echo"
    assert config.timeout == 60
    assert config.delay == 3

    assert VerificationConfig.from_environment(NETWORK, dict()).command == "npx hardhat verify"


def test_run_command():
    outcome = run_command("echo verified", timeout=10)
    assert outcome.returncode == 0
    assert outcome.stdout.strip() == "verified"

    outcome = run_command("echo oops >&2; exit 3", timeout=10)
    assert outcome.returncode == 3
    assert outcome.output == "oops"


def test_run_command_timeout():
    with pytest.raises(VerificationBackendFailure, match="timed out"):
        run_command("sleep 5", timeout=0.1)
