"""Wrappers for the Peripheral (source) and ControllerModule (destination) contracts"""

from typing import Optional

from eth_utils import to_checksum_address
from hexbytes import HexBytes

from safe_relay_toolkit.proofs.types import ProofStruct
from safe_relay_toolkit.relay.types import ExecutedTransaction, SafeTxParams
from safe_relay_toolkit.shared.retry import RPC_RETRY_CONFIG
from safe_relay_toolkit.shared.services.web3_service import Web3Service


class PeripheralContract:
    """Source chain contract that records Safe transactions to be proven."""

    def __init__(self, web3_service: Web3Service, address: str):
        self.web3_service = web3_service
        self.address = to_checksum_address(address)
        self.contract = web3_service.get_contract(self.address, "peripheral")

    def nonce(self) -> int:
        return RPC_RETRY_CONFIG.run(
            self.contract.functions.nonce().call,
            operation_name="peripheral_nonce",
        )

    def encode_exec_transaction(self, params: SafeTxParams) -> bytes:
        """Calldata for execTransaction, to be sent through the source Safe."""
        return bytes(
            HexBytes(
                self.contract.encodeABI(
                    fn_name="execTransaction", args=list(params)
                )
            )
        )


class ControllerModuleContract:
    """Destination chain Safe module that verifies proofs before executing."""

    def __init__(self, web3_service: Web3Service, address: str):
        self.web3_service = web3_service
        self.address = to_checksum_address(address)
        self.contract = web3_service.get_contract(
            self.address, "controller_module"
        )

    def _read(self, name: str) -> str:
        return RPC_RETRY_CONFIG.run(
            getattr(self.contract.functions, name)().call,
            operation_name=f"controller_{name.lower()}",
        )

    def peripheral(self) -> str:
        return self._read("PERIPHERAL")

    def source_safe(self) -> str:
        return self._read("SOURCE_SAFE")

    def main_safe(self) -> str:
        return self._read("MAIN_SAFE")

    def exec_transaction(
        self,
        params: SafeTxParams,
        proof: ProofStruct,
        gas_limit: Optional[int] = None,
    ) -> ExecutedTransaction:
        """
        Submit the Safe transaction and its proof.

        The call is simulated first so that a rejection (stale block, used
        nonce) raises ContractLogicError with the revert reason instead of
        burning gas.
        """
        function = self.contract.functions.execTransaction(
            tuple(params), tuple(proof)
        )
        function.call({"from": self.web3_service.address})
        tx_hash = self.web3_service.send_transaction(function, gas_limit)
        return ExecutedTransaction(tx_hash, self.web3_service)
