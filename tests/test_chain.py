import json

import pytest
from eth_account import Account
from web3 import Web3

from inft_deployment.artifacts import ArtifactStore
from inft_deployment.chain import ChainClient, connect
from inft_deployment.confirm import _confirm_transaction, _continue
from inft_deployment.constants import NETWORKS, ZERO_ADDRESS, ZG_TESTNET
from inft_deployment.exceptions import ConfigurationError, DeploymentAborted, NodeUnavailable

INITIALIZE_ABI = [
    {
        "type": "function",
        "name": "initialize",
        "stateMutability": "nonpayable",
        "inputs": [
            {"name": "name", "type": "string"},
            {"name": "feeRate", "type": "uint256"},
        ],
        "outputs": [],
    }
]


def _artifact(root, relative, name, abi=INITIALIZE_ABI):
    filepath = root / relative / f"{name}.json"
    filepath.parent.mkdir(parents=True, exist_ok=True)
    filepath.write_text(json.dumps({"contractName": name, "abi": abi, "bytecode": "0x6080"}))
    return filepath


@pytest.fixture
def artifacts_dir(tmp_path):
    root = tmp_path / "artifacts"
    _artifact(root, "contracts/AgentMarket.sol", "AgentMarket")
    _artifact(root, "build-info", "AgentMarket")
    return root


def test_artifact_lookup(artifacts_dir):
    artifact = ArtifactStore(artifacts_dir).get("AgentMarket")
    assert artifact.name == "AgentMarket"
    assert artifact.abi == INITIALIZE_ABI
    assert artifact.bytecode == "0x6080"


def test_missing_artifact(artifacts_dir):
    with pytest.raises(ArtifactStore.NotFound):
        ArtifactStore(artifacts_dir).get("AgentNFT")


def test_ambiguous_artifact(artifacts_dir):
    _artifact(artifacts_dir, "contracts/legacy/AgentMarket.sol", "AgentMarket")
    with pytest.raises(ValueError, match="ambiguous"):
        ArtifactStore(artifacts_dir).get("AgentMarket")


def test_encode_call(artifacts_dir):
    chain = ChainClient(w3=Web3(), account=Account.create(), artifacts=ArtifactStore(artifacts_dir))
    data = chain.encode_call("AgentMarket", "initialize", "Agent", 1000)

    contract = Web3().eth.contract(abi=INITIALIZE_ABI)
    function, args = contract.decode_function_input(data)
    assert function.abi["name"] == "initialize"
    assert args == {"name": "Agent", "feeRate": 1000}


def test_connect_requires_rpc_url(artifacts_dir):
    with pytest.raises(ConfigurationError, match="ZG_TESTNET_RPC_URL"):
        connect(NETWORKS[ZG_TESTNET], dict(), ArtifactStore(artifacts_dir))


def test_connect_requires_private_key(artifacts_dir):
    environ = {"ZG_TESTNET_RPC_URL": "http://127.0.0.1:1"}
    with pytest.raises(ConfigurationError, match="ZG_TESTNET_PRIVATE_KEY"):
        connect(NETWORKS[ZG_TESTNET], environ, ArtifactStore(artifacts_dir))


def test_connect_rejects_invalid_private_key(artifacts_dir):
    environ = {"ZG_TESTNET_RPC_URL": "http://127.0.0.1:1", "ZG_TESTNET_PRIVATE_KEY": "not-a-key"}
    with pytest.raises(ConfigurationError, match="not a valid private key"):
        connect(NETWORKS[ZG_TESTNET], environ, ArtifactStore(artifacts_dir))


def test_connect_reports_unreachable_node(artifacts_dir):
    environ = {
        "ZG_TESTNET_RPC_URL": "http://127.0.0.1:1",
        "ZG_TESTNET_PRIVATE_KEY": Account.create().key.hex(),
    }
    with pytest.raises(NodeUnavailable, match="Could not reach zgTestnet"):
        connect(NETWORKS[ZG_TESTNET], environ, ArtifactStore(artifacts_dir))


def test_declined_confirmation_aborts(monkeypatch):
    monkeypatch.setattr("builtins.input", lambda prompt: "n")
    with pytest.raises(DeploymentAborted):
        _continue()


def test_zero_address_needs_a_second_confirmation(monkeypatch):
    answers = iter(["y", "N"])
    monkeypatch.setattr("builtins.input", lambda prompt: next(answers))
    with pytest.raises(DeploymentAborted):
        _confirm_transaction("Deploying UpgradeableBeacon", (ZERO_ADDRESS,))


def test_confirmation(monkeypatch, capsys):
    monkeypatch.setattr("builtins.input", lambda prompt: "y")
    _confirm_transaction("Deploying AgentNFT", ("0x01", 5))
    assert "Deploying AgentNFT with arguments:" in capsys.readouterr().out
