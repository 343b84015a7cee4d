from typing import Any, List, Mapping, NamedTuple, Optional, Tuple

from eth_account.signers.local import LocalAccount
from eth_typing import ChecksumAddress
from web3 import Web3
from web3.contract import Contract
from web3.exceptions import TimeExhausted, Web3Exception
from web3.middleware import ExtraDataToPOAMiddleware, SignAndSendRawMiddlewareBuilder

from inft_deployment.artifacts import ArtifactStore
from inft_deployment.confirm import _confirm_transaction
from inft_deployment.constants import LOCAL_PRIVATE_KEY_ENVVAR, NetworkSettings
from inft_deployment.exceptions import (
    ConfigurationError,
    NetworkMismatch,
    NodeUnavailable,
    TransactionFailed,
)
from inft_deployment.reporting import Reporter

RECEIPT_POLL_TIMEOUT = 120  # seconds per wait; waiting itself never gives up


class DeployedContract(NamedTuple):
    name: str
    address: ChecksumAddress
    transaction_hash: str
    args: Tuple[Any, ...]
    abi: List[Any]


class TransactionResult(NamedTuple):
    transaction_hash: str
    block_number: int


class ChainClient:
    """
    Represents a local signing account on a connected node plus annotated transaction
    execution. Every transaction is announced and, unless autosign is enabled,
    confirmed by the operator before it is signed.
    """

    def __init__(
        self,
        w3: Web3,
        account: LocalAccount,
        artifacts: ArtifactStore,
        autosign: bool = False,
        reporter: Optional[Reporter] = None,
    ):
        self.w3 = w3
        self.account = account
        self.artifacts = artifacts
        self.autosign = autosign
        self.reporter = reporter or Reporter()
        if autosign:
            self.reporter.warning("Autosign is enabled. Transactions will be signed automatically.")

    @property
    def address(self) -> ChecksumAddress:
        return self.account.address

    @property
    def chain_id(self) -> int:
        return self.w3.eth.chain_id

    def get_storage_at(self, address: ChecksumAddress, slot: int) -> bytes:
        return bytes(self.w3.eth.get_storage_at(address, slot))

    def get_code(self, address: ChecksumAddress) -> bytes:
        return bytes(self.w3.eth.get_code(address))

    def _contract(self, contract_name: str, address: Optional[ChecksumAddress] = None) -> Contract:
        artifact = self.artifacts.get(contract_name)
        if address is None:
            return self.w3.eth.contract(abi=artifact.abi, bytecode=artifact.bytecode)
        return self.w3.eth.contract(address=address, abi=artifact.abi)

    def call(self, contract_name: str, address: ChecksumAddress, method: str, *args) -> Any:
        contract = self._contract(contract_name, address)
        return getattr(contract.functions, method)(*args).call()

    def encode_call(self, contract_name: str, method: str, *args) -> str:
        contract = self._contract(contract_name)
        return contract.encode_abi(method, args=list(args))

    def _announce(self, description: str, args: Tuple[Any, ...]) -> None:
        if self.autosign:
            self.reporter.info(description)
        else:
            _confirm_transaction(description, args)

    def _wait_for_receipt(self, transaction_hash) -> Mapping[str, Any]:
        # A submitted transaction is never abandoned; keep polling until it is mined.
        while True:
            try:
                return self.w3.eth.wait_for_transaction_receipt(
                    transaction_hash, timeout=RECEIPT_POLL_TIMEOUT
                )
            except TimeExhausted:
                self.reporter.info(
                    f"Still waiting for transaction {Web3.to_hex(transaction_hash)}..."
                )

    def deploy(self, contract_name: str, *args) -> DeployedContract:
        factory = self._contract(contract_name)
        self._announce(f"Deploying {contract_name}", args)
        transaction_hash = factory.constructor(*args).transact({"from": self.address})
        receipt = self._wait_for_receipt(transaction_hash)
        if receipt["status"] != 1 or not receipt.get("contractAddress"):
            raise TransactionFailed(
                f"Deployment of {contract_name} reverted "
                f"(transaction {Web3.to_hex(transaction_hash)})"
            )
        return DeployedContract(
            name=contract_name,
            address=Web3.to_checksum_address(receipt["contractAddress"]),
            transaction_hash=Web3.to_hex(transaction_hash),
            args=tuple(args),
            abi=self.artifacts.get(contract_name).abi,
        )

    def transact(
        self, contract_name: str, address: ChecksumAddress, method: str, *args
    ) -> TransactionResult:
        contract = self._contract(contract_name, address)
        self._announce(f"Transacting {contract_name}[{address[:10]}].{method}", args)
        transaction_hash = getattr(contract.functions, method)(*args).transact(
            {"from": self.address}
        )
        receipt = self._wait_for_receipt(transaction_hash)
        if receipt["status"] != 1:
            raise TransactionFailed(
                f"{contract_name}.{method} reverted (transaction {Web3.to_hex(transaction_hash)})"
            )
        return TransactionResult(
            transaction_hash=Web3.to_hex(transaction_hash),
            block_number=receipt["blockNumber"],
        )


def connect(
    settings: NetworkSettings,
    environ: Mapping[str, str],
    artifacts: ArtifactStore,
    autosign: bool = False,
    reporter: Optional[Reporter] = None,
) -> ChainClient:
    """Connects to the network's RPC endpoint with the network's signing key."""
    rpc_url = environ.get(settings.rpc_url_envvar) or settings.default_rpc_url
    if not rpc_url:
        raise ConfigurationError(f"{settings.rpc_url_envvar} is not set.")

    private_key = environ.get(settings.private_key_envvar)
    if not private_key and not settings.live:
        private_key = environ.get(LOCAL_PRIVATE_KEY_ENVVAR)
    if not private_key:
        raise ConfigurationError(f"{settings.private_key_envvar} is not set.")

    w3 = Web3(Web3.HTTPProvider(rpc_url))
    w3.middleware_onion.inject(ExtraDataToPOAMiddleware, layer=0)
    try:
        account = w3.eth.account.from_key(private_key)
    except ValueError as e:
        raise ConfigurationError(f"{settings.private_key_envvar} is not a valid private key.") from e
    w3.middleware_onion.inject(SignAndSendRawMiddlewareBuilder.build(account), layer=0)
    w3.eth.default_account = account.address

    try:
        expected_chain_id = int(environ.get(settings.chain_id_envvar) or settings.chain_id)
    except ValueError as e:
        raise ConfigurationError(f"{settings.chain_id_envvar} must be an integer.") from e

    try:
        connected_chain_id = w3.eth.chain_id
    except (OSError, Web3Exception) as e:
        raise NodeUnavailable(f"Could not reach {settings.name} at {rpc_url}: {e}") from e
    if settings.live and connected_chain_id != expected_chain_id:
        raise NetworkMismatch(
            f"chain_id of {settings.name} ({expected_chain_id}) does not match "
            f"chain_id of the connected node ({connected_chain_id})."
        )

    return ChainClient(
        w3=w3, account=account, artifacts=artifacts, autosign=autosign, reporter=reporter
    )
