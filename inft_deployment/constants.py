from pathlib import Path
from typing import NamedTuple, Tuple

#
# Filesystem
#

DEPLOYMENTS_DIR = Path("deployments")
ARTIFACTS_DIR = Path("build") / "artifacts"

RECORD_SCHEMA_VERSION = 1
RECORD_JSON_FORMAT = {"indent": 2}

BEACON_SUFFIX = "Beacon"
IMPLEMENTATION_SUFFIX = "Impl"

#
# Networks
#

HARDHAT = "hardhat"
ZG_TESTNET = "zgTestnet"
ZG_MAINNET = "zgMainnet"


class NetworkSettings(NamedTuple):
    name: str
    env_prefix: str
    chain_id: int
    live: bool
    default_rpc_url: str = ""

    @property
    def rpc_url_envvar(self) -> str:
        return f"{self.env_prefix}_RPC_URL"

    @property
    def private_key_envvar(self) -> str:
        return f"{self.env_prefix}_PRIVATE_KEY"

    @property
    def chain_id_envvar(self) -> str:
        return f"{self.env_prefix}_CHAIN_ID"

    @property
    def deployments_path_envvar(self) -> str:
        return f"{self.env_prefix}_DEPLOYMENTS_PATH"


NETWORKS = {
    HARDHAT: NetworkSettings(
        name=HARDHAT,
        env_prefix="LOCAL",
        chain_id=31337,
        live=False,
        default_rpc_url="http://127.0.0.1:8545",
    ),
    ZG_TESTNET: NetworkSettings(name=ZG_TESTNET, env_prefix="ZG_TESTNET", chain_id=16602, live=True),
    ZG_MAINNET: NetworkSettings(name=ZG_MAINNET, env_prefix="ZG_MAINNET", chain_id=16661, live=True),
}

SUPPORTED_NETWORKS = list(NETWORKS)

# Local network private key falls back to the first named account of the hardhat config
LOCAL_PRIVATE_KEY_ENVVAR = "ZG_AGENT_NFT_CREATOR_PRIVATE_KEY"

NETWORK_ENVVAR = "INFT_NETWORK"

#
# Contracts
#

TEE_VERIFIER = "TEEVerifier"
VERIFIER = "Verifier"
AGENT_NFT = "AgentNFT"
AGENT_MARKET = "AgentMarket"

BEACON_CONTRACT = "UpgradeableBeacon"
BEACON_PROXY_CONTRACT = "BeaconProxy"


class ContractIdentity(NamedTuple):
    name: str
    dependencies: Tuple[str, ...] = ()
    tags: Tuple[str, ...] = ()


CONTRACTS = {
    TEE_VERIFIER: ContractIdentity(
        name=TEE_VERIFIER, dependencies=(), tags=("tee-verifier", "core", "prod")
    ),
    VERIFIER: ContractIdentity(
        name=VERIFIER, dependencies=(TEE_VERIFIER,), tags=("verifier", "core", "prod")
    ),
    AGENT_NFT: ContractIdentity(
        name=AGENT_NFT, dependencies=(VERIFIER,), tags=("agentNFT", "core", "prod")
    ),
    AGENT_MARKET: ContractIdentity(
        name=AGENT_MARKET, dependencies=(AGENT_NFT,), tags=("agentMarket", "core", "prod")
    ),
}

# EIP1967 Beacon slot - https://eips.ethereum.org/EIPS/eip-1967#beacon-contract-address
EIP1967_BEACON_SLOT = 0xA3F0AD74E5423AEBFD80D3EF4346578335A9A72AEAEE59FF6CB3582B35133D50

VERSION_METHOD = "VERSION"

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"

#
# Upgrades
#

UPGRADE_FLAGS = {
    TEE_VERIFIER: "UPGRADE_TEE_VERIFIER",
    VERIFIER: "UPGRADE_VERIFIER",
    AGENT_NFT: "UPGRADE_AGENT_NFT",
    AGENT_MARKET: "UPGRADE_AGENT_MARKET",
}

#
# Verification
#


class ContractGroup(NamedTuple):
    flag: str
    contracts: Tuple[str, str, str]
    description: str


def _group(flag: str, contract_name: str, description: str) -> ContractGroup:
    contracts = (
        contract_name,
        f"{contract_name}{BEACON_SUFFIX}",
        f"{contract_name}{IMPLEMENTATION_SUFFIX}",
    )
    return ContractGroup(flag=flag, contracts=contracts, description=description)


VERIFICATION_GROUPS = {
    group.flag: group
    for group in (
        _group("VERIFY_TEE_VERIFIER", TEE_VERIFIER, "TEE Verifier contracts"),
        _group("VERIFY_VERIFIER", VERIFIER, "Verifier contracts"),
        _group("VERIFY_AGENT_NFT", AGENT_NFT, "Agent NFT contracts"),
        _group("VERIFY_AGENT_MARKET", AGENT_MARKET, "Agent Market contracts"),
    )
}

VERIFY_COMMAND_ENVVAR = "VERIFY_COMMAND"
DEFAULT_VERIFY_COMMAND = "npx hardhat verify"
VERIFY_TIMEOUT = 60  # seconds
VERIFY_DELAY = 3  # seconds, between contracts of a group
ALREADY_VERIFIED_MARKER = "already verified"
