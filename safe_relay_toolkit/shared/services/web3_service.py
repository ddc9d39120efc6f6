"""
Web3 Service module: one explicit chain context per network.

A relay touches two chains. Instead of switching a process-wide "current
network", every chain-facing call receives the Web3Service of the chain it
talks to. Instances hold no block or proof cache: each relay re-reads
everything from the live chain.
"""

from typing import Any, Dict, List, Optional

from eth_account import Account
from eth_account.signers.local import LocalAccount
from hexbytes import HexBytes
from web3 import Web3

from safe_relay_toolkit.shared.constants import GlobalConstants
from safe_relay_toolkit.shared.exceptions import RPCException
from safe_relay_toolkit.shared.logging import get_logger
from safe_relay_toolkit.shared.services.resource_manager import (
    resource_manager,
)

_logger = get_logger(__name__)


class Web3Service:
    """
    A chain context: Web3 connection, chain id and optional signer.

    Attributes:
        network: Network name (e.g. "gnosis")
        chain_id: Numeric chain id
        w3: Web3 instance bound to the network's RPC
        account: Local signer, if a private key was supplied
    """

    def __init__(
        self,
        network: str,
        chain_id: int,
        rpc_url: str,
        private_key: Optional[str] = None,
    ):
        """
        Initialize the Web3Service.

        Args:
            network (str): The network name.
            chain_id (int): The chain ID to use.
            rpc_url (str): The RPC URL to use.
            private_key (str, optional): Key used for signing and sending.
        """
        self.network = network
        self.chain_id = chain_id
        self.w3 = self._initialize_web3(rpc_url)
        self.account: Optional[LocalAccount] = (
            Account.from_key(private_key) if private_key else None
        )

    def _initialize_web3(self, rpc_url: str) -> Web3:
        """Initialize Web3 instance with middleware if needed"""
        w3 = Web3(Web3.HTTPProvider(rpc_url))

        # Add POA middleware for non-mainnet chains
        if self.chain_id != 1:
            from web3.middleware import geth_poa_middleware

            w3.middleware_onion.inject(geth_poa_middleware, layer=0)

        return w3

    @classmethod
    def from_network(
        cls, network: str, with_signer: bool = True
    ) -> "Web3Service":
        """Build a context for a configured network name"""
        private_key = GlobalConstants.get_private_key() if with_signer else None
        return cls(
            network,
            GlobalConstants.get_chain_id(network),
            GlobalConstants.get_rpc_url(network),
            private_key,
        )

    @property
    def address(self) -> str:
        """Checksum address of the signer"""
        if self.account is None:
            raise ValueError(f"No signer configured for {self.network}")
        return self.account.address

    def get_block(self, block_identifier: Any) -> Dict[str, Any]:
        """Get block information for a specific block number"""
        try:
            return self.w3.eth.get_block(block_identifier)
        except ValueError as e:
            raise RPCException(
                f"[{self.network}] eth_getBlockByNumber failed: {e}"
            ) from e

    def get_proof(
        self, address: str, storage_keys: List[bytes], block_number: int
    ) -> Dict[str, Any]:
        """Get the raw eth_getProof response for an account and storage keys"""
        address = Web3.to_checksum_address(address)
        keys = ["0x" + bytes(HexBytes(key)).hex() for key in storage_keys]
        try:
            return self.w3.eth.get_proof(address, keys, block_number)
        except ValueError as e:
            # JSON-RPC error responses, e.g. pruned state or a lagging node
            raise RPCException(
                f"[{self.network}] eth_getProof failed: {e}"
            ) from e

    def get_contract(self, address: str, abi_name: str) -> Any:
        """Get a contract instance for a given address and ABI name"""
        abi = resource_manager.load_abi(abi_name)
        return self.w3.eth.contract(
            address=Web3.to_checksum_address(address), abi=abi
        )

    def send_transaction(
        self, contract_function: Any, gas_limit: Optional[int] = None
    ) -> HexBytes:
        """Sign and broadcast a contract call with the local signer"""
        params: Dict[str, Any] = {
            "from": self.address,
            "nonce": self.w3.eth.get_transaction_count(self.address),
            "chainId": self.chain_id,
        }
        if gas_limit is not None:
            params["gas"] = gas_limit

        tx = contract_function.build_transaction(params)
        signed = self.account.sign_transaction(tx)
        tx_hash = self.w3.eth.send_raw_transaction(signed.rawTransaction)
        _logger.info(f"[{self.network}] sent transaction {tx_hash.hex()}")
        return tx_hash

    def wait_for_receipt(
        self, tx_hash: HexBytes, timeout: int = 180
    ) -> Dict[str, Any]:
        """Block until the transaction is included and return its receipt"""
        return self.w3.eth.wait_for_transaction_receipt(
            tx_hash, timeout=timeout
        )
