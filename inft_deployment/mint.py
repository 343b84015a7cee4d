"""Post-deploy smoke step: mint one iNFT from the recorded AgentNFT proxy."""

from typing import NamedTuple, Optional

from eth_account.messages import defunct_hash_message
from eth_typing import ChecksumAddress
from eth_utils import is_address, to_checksum_address

from inft_deployment.chain import TransactionResult
from inft_deployment.constants import AGENT_NFT
from inft_deployment.exceptions import ConfigurationError
from inft_deployment.records import DeploymentRecordStore
from inft_deployment.reporting import Reporter

MINT_METHOD = "mint"

DEFAULT_DATA_DESCRIPTION = "minted inft"
DEFAULT_DATA = "0xdb mint inft"


class IntelligentData(NamedTuple):
    data_description: str
    data_hash: bytes

    @classmethod
    def from_text(cls, description: str, text: str) -> "IntelligentData":
        """Hashes ``text`` as an EIP-191 personal message, like ethers' hashMessage."""
        return cls(data_description=description, data_hash=bytes(defunct_hash_message(text=text)))


def mint(
    chain,
    store: DeploymentRecordStore,
    network: str,
    datas,
    recipient: Optional[str] = None,
    reporter: Optional[Reporter] = None,
) -> TransactionResult:
    reporter = reporter or Reporter()
    if recipient is None:
        recipient = chain.address
    elif not is_address(recipient):
        raise ConfigurationError(f"Invalid recipient address: {recipient}")
    recipient: ChecksumAddress = to_checksum_address(recipient)

    agent_nft = store.get(network, AGENT_NFT)
    reporter.info(f"{AGENT_NFT} deployed to: {agent_nft.address}")

    result = chain.transact(
        AGENT_NFT, agent_nft.address, MINT_METHOD, [tuple(data) for data in datas], recipient
    )
    reporter.success(f"{AGENT_NFT} minted for {recipient} (transaction {result.transaction_hash})")
    return result
