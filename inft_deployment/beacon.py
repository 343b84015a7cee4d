from eth_typing import ChecksumAddress
from eth_utils import to_checksum_address
from hexbytes import HexBytes

from inft_deployment.constants import EIP1967_BEACON_SLOT, ZERO_ADDRESS
from inft_deployment.exceptions import StorageReadFailure

WORD_SIZE = 32
ADDRESS_SIZE = 20


def decode_address_word(word) -> ChecksumAddress:
    """
    Decodes a 32-byte storage word holding an address (the low-order 20 bytes).
    Shorter values are treated as left-padded.
    """
    raw = bytes(HexBytes(word))
    if len(raw) > WORD_SIZE:
        raise ValueError(f"Storage word is {len(raw)} bytes long; expected at most {WORD_SIZE}")
    raw = raw.rjust(WORD_SIZE, b"\x00")
    return to_checksum_address(raw[-ADDRESS_SIZE:])


class BeaconResolver:
    """Finds the beacon governing a beacon proxy by reading its EIP-1967 beacon slot."""

    def __init__(self, chain):
        self.chain = chain

    def resolve(self, proxy_address: ChecksumAddress) -> ChecksumAddress:
        """
        Returns the beacon address of ``proxy_address``.

        An unset slot yields the zero address rather than an error; callers decide
        what "no beacon configured" means for them.
        """
        try:
            word = self.chain.get_storage_at(proxy_address, EIP1967_BEACON_SLOT)
        except Exception as e:
            raise StorageReadFailure(
                f"Could not read the beacon slot of {proxy_address}: {e}"
            ) from e
        return decode_address_word(word)

    @staticmethod
    def is_unset(beacon_address: ChecksumAddress) -> bool:
        return beacon_address == ZERO_ADDRESS
