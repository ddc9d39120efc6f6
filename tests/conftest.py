"""
Pytest configuration and shared fixtures.

Proof fixtures are built with py-trie so that every root, node and value is
a real Merkle-Patricia structure, independent of the code under test.
"""

from typing import Any, Dict, List
from unittest.mock import MagicMock

import pytest
import rlp
from eth_abi import encode
from eth_utils import keccak, to_canonical_address, to_checksum_address
from hexbytes import HexBytes
from trie import HexaryTrie

from safe_relay_toolkit.proofs.generators.block_info import encode_block_header
from safe_relay_toolkit.proofs.generators.storage_key import derive_storage_key
from safe_relay_toolkit.proofs.types import AccountRecord
from safe_relay_toolkit.utils.blockchain import to_minimal_bytes

PERIPHERAL = to_checksum_address("0x" + "22" * 20)
MAIN_SAFE = to_checksum_address("0x" + "33" * 20)
EMPTY_ACCOUNT = to_checksum_address("0x" + "11" * 20)

BLANK_ROOT = keccak(rlp.encode(b""))
EMPTY_CODE_HASH = keccak(b"")


def raw_nodes(trie: HexaryTrie, path: bytes) -> List[HexBytes]:
    """Proof for `path` as an RPC node returns it: raw RLP nodes."""
    return [HexBytes(rlp.encode(node)) for node in trie.get_proof(path)]


def make_block(state_root: bytes, number: int = 30_000_000, **overrides):
    """A post-Cancun block as returned by eth_getBlockByNumber."""
    block: Dict[str, Any] = {
        "parentHash": HexBytes(b"\x01" * 32),
        "sha3Uncles": HexBytes(
            "0x1dcc4de8dec75d7aab85b567b6ccd41ad312451b948a7413f0a142fd40d49347"
        ),
        "miner": HexBytes(b"\x02" * 20),
        "stateRoot": HexBytes(state_root),
        "transactionsRoot": HexBytes(b"\x03" * 32),
        "receiptsRoot": HexBytes(b"\x04" * 32),
        "logsBloom": HexBytes(b"\x00" * 256),
        "difficulty": 0,
        "number": number,
        "gasLimit": 30_000_000,
        "gasUsed": 1_234_567,
        "timestamp": 1_723_685_159,
        "extraData": HexBytes(b"relay"),
        "mixHash": HexBytes(b"\x05" * 32),
        "nonce": HexBytes(b"\x00" * 8),
        "baseFeePerGas": 7,
        "withdrawalsRoot": HexBytes(b"\x06" * 32),
        "blobGasUsed": 0,
        "excessBlobGas": 0,
        "parentBeaconBlockRoot": HexBytes(b"\x07" * 32),
    }
    block.update(overrides)
    block["hash"] = HexBytes(keccak(encode_block_header(block)))
    return block


def safe_execution_log(event_name: str, safe_address: str, log_index: int = 0):
    """A receipt log of a Safe ExecutionSuccess or ExecutionFailure event."""
    return {
        "address": to_checksum_address(safe_address),
        "topics": [HexBytes(keccak(text=f"{event_name}(bytes32,uint256)"))],
        "data": HexBytes(encode(["bytes32", "uint256"], [b"\xab" * 32, 0])),
        "logIndex": log_index,
        "transactionIndex": 0,
        "transactionHash": HexBytes(b"\xcc" * 32),
        "blockHash": HexBytes(b"\xbb" * 32),
        "blockNumber": 30_000_000,
    }


class ChainState:
    """
    Source chain state holding a Peripheral whose nonce mapping has an
    entry for the main Safe, next to unrelated accounts and slots.
    """

    def __init__(self, nonce_value: int = 5, block_number: int = 30_000_000):
        self.peripheral = PERIPHERAL
        self.main_safe = MAIN_SAFE
        self.empty_account_address = EMPTY_ACCOUNT
        self.nonce_value = nonce_value
        self.storage_key = derive_storage_key(MAIN_SAFE, 0)

        self.storage_trie = HexaryTrie(db={})
        if nonce_value:
            self.storage_trie[keccak(self.storage_key)] = rlp.encode(
                to_minimal_bytes(nonce_value)
            )
        for slot in range(1, 12):
            self.storage_trie[keccak(slot.to_bytes(32, "big"))] = rlp.encode(
                to_minimal_bytes(slot * 1000)
            )

        self.peripheral_account = AccountRecord(
            nonce=1,
            balance=10**18,
            storage_root=self.storage_trie.root_hash,
            code_hash=keccak(b"peripheral runtime"),
        )
        self.empty_account = AccountRecord(
            nonce=0,
            balance=0,
            storage_root=BLANK_ROOT,
            code_hash=EMPTY_CODE_HASH,
        )

        self.state_trie = HexaryTrie(db={})
        self.state_trie[
            keccak(to_canonical_address(PERIPHERAL))
        ] = self.peripheral_account.encode()
        self.state_trie[
            keccak(to_canonical_address(EMPTY_ACCOUNT))
        ] = self.empty_account.encode()
        for i in range(1, 24):
            filler = AccountRecord(i, i * 10**15, BLANK_ROOT, EMPTY_CODE_HASH)
            self.state_trie[keccak(bytes([0xA0 + i]) * 20)] = filler.encode()

        self.state_root = self.state_trie.root_hash
        self.block = make_block(self.state_root, block_number)

    def account_proof(self, address: str) -> List[HexBytes]:
        return raw_nodes(
            self.state_trie, keccak(to_canonical_address(address))
        )

    def storage_proof(self, storage_key: bytes) -> List[HexBytes]:
        return raw_nodes(self.storage_trie, keccak(storage_key))

    def rpc_proof(self) -> Dict[str, Any]:
        """eth_getProof response for the Peripheral and the nonce slot."""
        account = self.peripheral_account
        return {
            "address": PERIPHERAL,
            "nonce": account.nonce,
            "balance": account.balance,
            "storageHash": HexBytes(account.storage_root),
            "codeHash": HexBytes(account.code_hash),
            "accountProof": self.account_proof(PERIPHERAL),
            "storageProof": [
                {
                    "key": HexBytes(self.storage_key),
                    "value": self.nonce_value,
                    "proof": self.storage_proof(self.storage_key),
                }
            ],
        }


@pytest.fixture
def chain_state():
    """Source chain state with a Peripheral nonce of 5."""
    return ChainState()


@pytest.fixture
def mock_web3_service(chain_state):
    """Mock Web3Service serving `chain_state`."""
    service = MagicMock()
    service.network = "gnosis"
    service.chain_id = 100
    service.get_block.return_value = chain_state.block
    service.get_proof.return_value = chain_state.rpc_proof()
    return service


@pytest.fixture
def chain_state_factory():
    """Build a ChainState with a custom nonce value or block number."""
    return ChainState


@pytest.fixture
def block_factory():
    """Build a block over a given state root."""
    return make_block


@pytest.fixture
def safe_log_factory():
    """Build Safe execution event logs for receipts."""
    return safe_execution_log
