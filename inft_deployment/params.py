"""
Initializer wiring for the beacon-proxied contracts.

Each proxied contract is initialized atomically with its proxy construction, using
the addresses of its (already deployed) dependencies plus configuration values read
from the environment and, optionally, the ``constants`` section of a YAML params file:

    constants:
      ZG_iNFT_NAME: "0XDB Agent NFT"
      ZG_INITIAL_FEE_RATE: 1000
"""

import json
from pathlib import Path
from typing import Any, Callable, Dict, List, Mapping, NamedTuple, Optional, Tuple

from eth_typing import ChecksumAddress
from eth_utils import is_address, is_hex, to_checksum_address
from hexbytes import HexBytes

from inft_deployment.constants import AGENT_MARKET, AGENT_NFT, TEE_VERIFIER, VERIFIER
from inft_deployment.exceptions import ConfigurationError
from inft_deployment.records import DeploymentRecord
from inft_deployment.utils import _load_yaml

INITIALIZER_METHOD = "initialize"

EMPTY_MEASUREMENT = "0x" + "00" * 32

# field name -> (environment variable, default)
ENVIRONMENT = {
    "tdx_quote": ("TDX_QUOTE", "0x00"),
    "mrtd": ("TRUSTED_MRTD", EMPTY_MEASUREMENT),
    "rtmr0": ("TRUSTED_RTMR0", EMPTY_MEASUREMENT),
    "rtmr1": ("TRUSTED_RTMR1", EMPTY_MEASUREMENT),
    "rtmr2": ("TRUSTED_RTMR2", EMPTY_MEASUREMENT),
    "rtmr3": ("TRUSTED_RTMR3", EMPTY_MEASUREMENT),
    "attestation_contract": ("ATTESTATION_CONTRACT", None),
    "verifier_type": ("VERIFIER_TYPE", 0),
    "nft_name": ("ZG_iNFT_NAME", "0XDB Agent NFT"),
    "nft_symbol": ("ZG_iNFT_SYMBOL", "DB0GI"),
    "chain_url": ("ZG_RPC_URL", "https://evmrpc-testnet.0g.ai"),
    "indexer_url": ("ZG_INDEXER_URL", "https://indexer-storage-testnet-turbo.0g.ai"),
    "initial_fee_rate": ("ZG_INITIAL_FEE_RATE", 1000),
    "initial_mint_fee": ("ZG_INITIAL_MINT_FEE", 100000000000000000),
    "initial_discount_mint_fee": ("INITIAL_DISCOUNT_MINT_FEE", 0),
}

_INTEGERS = ("verifier_type", "initial_fee_rate", "initial_mint_fee", "initial_discount_mint_fee")
_MEASUREMENTS = ("mrtd", "rtmr0", "rtmr1", "rtmr2", "rtmr3")


class InitializerParameters(NamedTuple):
    """Configuration values consumed by the contracts' initializers."""

    tdx_quote: str
    mrtd: str
    rtmr0: str
    rtmr1: str
    rtmr2: str
    rtmr3: str
    attestation_contract: Optional[ChecksumAddress]
    verifier_type: int
    nft_name: str
    nft_symbol: str
    chain_url: str
    indexer_url: str
    initial_fee_rate: int
    initial_mint_fee: int
    initial_discount_mint_fee: int

    @classmethod
    def from_config(
        cls, environ: Mapping[str, str], params_filepath: Optional[Path] = None
    ) -> "InitializerParameters":
        """Environment values, overridden by the params file's ``constants``."""
        constants = dict()
        if params_filepath is not None:
            config = _load_yaml(params_filepath) or dict()
            constants = config.get("constants") or dict()
            if not isinstance(constants, dict):
                raise ConfigurationError(f"'constants' in {params_filepath} must be a mapping")

        values = dict()
        for field, (envvar, default) in ENVIRONMENT.items():
            if envvar in constants:
                value = constants[envvar]
            elif environ.get(envvar):
                value = environ[envvar]
            else:
                value = default
            values[field] = _validate(field, envvar, value)
        return cls(**values)

    @property
    def trusted_measurements(self) -> Tuple[bytes, bytes, bytes, bytes, bytes]:
        return tuple(bytes(HexBytes(getattr(self, name))) for name in _MEASUREMENTS)

    @property
    def storage_info(self) -> str:
        return json.dumps({"chainURL": self.chain_url, "indexerURL": self.indexer_url})


def _validate(field: str, envvar: str, value: Any) -> Any:
    if value is None:
        return None
    if field in _INTEGERS:
        try:
            return int(value)
        except (TypeError, ValueError):
            raise ConfigurationError(f"{envvar} must be an integer, got {value!r}")
    if field == "attestation_contract":
        if not is_address(value):
            raise ConfigurationError(f"{envvar} is not a valid address: {value!r}")
        return to_checksum_address(value)
    if field in _MEASUREMENTS:
        if not is_hex(value) or len(HexBytes(value)) != 32:
            raise ConfigurationError(f"{envvar} must be a 32-byte hex value, got {value!r}")
    if field == "tdx_quote" and not is_hex(value):
        raise ConfigurationError(f"{envvar} must be a hex value, got {value!r}")
    return str(value)


Dependencies = Dict[str, DeploymentRecord]
InitializerBuilder = Callable[[InitializerParameters, Dependencies, ChecksumAddress], List[Any]]


def _tee_verifier(params, dependencies, signer) -> List[Any]:
    return [bytes(HexBytes(params.tdx_quote)), params.trusted_measurements]


def _verifier(params, dependencies, signer) -> List[Any]:
    attestation_contract = params.attestation_contract or dependencies[TEE_VERIFIER].address
    attestation_config = (params.verifier_type, attestation_contract)
    return [[attestation_config], signer]


def _agent_nft(params, dependencies, signer) -> List[Any]:
    return [
        params.nft_name,
        params.nft_symbol,
        params.storage_info,
        dependencies[VERIFIER].address,
        signer,
    ]


def _agent_market(params, dependencies, signer) -> List[Any]:
    return [
        dependencies[AGENT_NFT].address,
        params.initial_fee_rate,
        signer,
        params.initial_mint_fee,
        params.initial_discount_mint_fee,
    ]


INITIALIZERS: Dict[str, InitializerBuilder] = {
    TEE_VERIFIER: _tee_verifier,
    VERIFIER: _verifier,
    AGENT_NFT: _agent_nft,
    AGENT_MARKET: _agent_market,
}

# Read-only calls made after a proxy is deployed, for the operator's information
POST_DEPLOY_PROBES = {
    TEE_VERIFIER: ("verified", "teeAddress"),
}


def initializer_args(
    contract_name: str,
    params: InitializerParameters,
    dependencies: Dependencies,
    signer: ChecksumAddress,
) -> List[Any]:
    try:
        builder = INITIALIZERS[contract_name]
    except KeyError:
        raise ConfigurationError(f"No initializer wiring for '{contract_name}'")
    return builder(params, dependencies, signer)


def describe(params: InitializerParameters, contract_name: str) -> List[str]:
    """Lines describing the configuration a contract is about to be initialized with."""
    if contract_name == TEE_VERIFIER:
        lines = ["Using trusted measurements:"]
        lines.extend(f"  {name.upper()}: {getattr(params, name)}" for name in _MEASUREMENTS)
        return lines
    if contract_name == VERIFIER:
        source = params.attestation_contract or f"{TEE_VERIFIER} deployment"
        return [
            "Attestation config:",
            f"  Oracle Type: {params.verifier_type}",
            f"  Contract Address: {source}",
        ]
    return []
