import pytest
from eth_utils import to_checksum_address
from hexbytes import HexBytes

from inft_deployment.beacon import BeaconResolver, decode_address_word
from inft_deployment.constants import EIP1967_BEACON_SLOT, ZERO_ADDRESS
from inft_deployment.exceptions import StorageReadFailure

BEACON = "0x5fbdb2315678afecb367f032d93f642f64180aa3"


def test_decode_address_word():
    word = "0x" + "00" * 12 + BEACON[2:]
    assert decode_address_word(word) == to_checksum_address(BEACON)
    assert decode_address_word(bytes(HexBytes(word))) == to_checksum_address(BEACON)


def test_decode_ignores_high_order_bytes():
    word = "0x" + "ff" * 12 + BEACON[2:]
    assert decode_address_word(word) == to_checksum_address(BEACON)


def test_decode_short_word_is_left_padded():
    assert decode_address_word("0x01") == to_checksum_address("0x" + "00" * 19 + "01")
    assert decode_address_word(BEACON) == to_checksum_address(BEACON)


def test_decode_empty_slot():
    assert decode_address_word(bytes(32)) == ZERO_ADDRESS
    assert decode_address_word("0x") == ZERO_ADDRESS


def test_decode_rejects_oversized_word():
    with pytest.raises(ValueError):
        decode_address_word(b"\x01" * 33)


def test_resolve(chain):
    proxy = to_checksum_address("0x" + "aa" * 20)
    chain.set_beacon_slot(proxy, to_checksum_address(BEACON))

    resolver = BeaconResolver(chain)
    beacon = resolver.resolve(proxy)
    assert beacon == to_checksum_address(BEACON)
    assert not resolver.is_unset(beacon)


def test_resolve_unset_slot(chain):
    resolver = BeaconResolver(chain)
    beacon = resolver.resolve(to_checksum_address("0x" + "aa" * 20))
    assert beacon == ZERO_ADDRESS
    assert resolver.is_unset(beacon)


def test_resolve_reads_the_beacon_slot():
    reads = list()

    class Chain:
        def get_storage_at(self, address, slot):
            reads.append((address, slot))
            return bytes(32)

    BeaconResolver(Chain()).resolve(ZERO_ADDRESS)
    assert reads == [(ZERO_ADDRESS, EIP1967_BEACON_SLOT)]


def test_resolve_storage_failure():
    class UnreachableChain:
        def get_storage_at(self, address, slot):
            raise ConnectionError("node unreachable")

    with pytest.raises(StorageReadFailure, match="node unreachable"):
        BeaconResolver(UnreachableChain()).resolve(ZERO_ADDRESS)
