"""
Unit tests for the contract wrappers and the command line interface.
"""

import json
from unittest.mock import MagicMock, patch

import pytest
from hexbytes import HexBytes
from web3.exceptions import ContractLogicError

from safe_relay_toolkit import cli
from safe_relay_toolkit.proofs.types import ProofStruct
from safe_relay_toolkit.relay.contracts import (
    ControllerModuleContract,
    PeripheralContract,
)
from safe_relay_toolkit.relay.types import SafeTxParams
from safe_relay_toolkit.shared.constants import GlobalConstants
from safe_relay_toolkit.shared.results import Result

SIGNER = "0x" + "99" * 20

PARAMS = SafeTxParams(
    to="0x" + "66" * 20,
    value=1,
    data=b"",
    operation=0,
    safe_tx_gas=0,
    base_gas=0,
    gas_price=1_000_000_000,
    gas_token=GlobalConstants.ZERO_ADDRESS,
    refund_receiver=SIGNER,
    signatures=b"\x01" * 65,
)
PROOF = ProofStruct(30_000_000, 4, b"\xf9", b"\xc0", b"\xc0")


@pytest.fixture
def service():
    service = MagicMock()
    service.network = "gnosis"
    service.address = SIGNER
    service.send_transaction.return_value = HexBytes(b"\xdd" * 32)
    return service


class TestControllerModuleContract:
    """Tests for the ControllerModule wrapper."""

    def test_reads_linked_contracts(self, service):
        contract = service.get_contract.return_value
        contract.functions.PERIPHERAL.return_value.call.return_value = "0xP"
        contract.functions.MAIN_SAFE.return_value.call.return_value = "0xM"

        controller = ControllerModuleContract(service, "0x" + "55" * 20)

        assert controller.peripheral() == "0xP"
        assert controller.main_safe() == "0xM"
        service.get_contract.assert_called_once_with(
            controller.address, "controller_module"
        )

    def test_exec_transaction_simulates_then_sends(self, service):
        contract = service.get_contract.return_value
        function = contract.functions.execTransaction.return_value

        controller = ControllerModuleContract(service, "0x" + "55" * 20)
        executed = controller.exec_transaction(PARAMS, PROOF, gas_limit=750_000)

        contract.functions.execTransaction.assert_called_once_with(
            tuple(PARAMS), tuple(PROOF)
        )
        function.call.assert_called_once_with({"from": SIGNER})
        service.send_transaction.assert_called_once_with(function, 750_000)
        assert executed.tx_hash == HexBytes(b"\xdd" * 32)

    def test_rejected_simulation_sends_nothing(self, service):
        contract = service.get_contract.return_value
        function = contract.functions.execTransaction.return_value
        function.call.side_effect = ContractLogicError("Nonce already used")

        controller = ControllerModuleContract(service, "0x" + "55" * 20)
        with pytest.raises(ContractLogicError):
            controller.exec_transaction(PARAMS, PROOF)

        service.send_transaction.assert_not_called()


class TestPeripheralContract:
    """Tests for the Peripheral wrapper."""

    def test_encode_exec_transaction(self, service):
        contract = service.get_contract.return_value
        contract.encodeABI.return_value = "0xdeadbeef"

        peripheral = PeripheralContract(service, "0x" + "22" * 20)

        assert peripheral.encode_exec_transaction(PARAMS) == bytes.fromhex(
            "deadbeef"
        )
        contract.encodeABI.assert_called_once_with(
            fn_name="execTransaction", args=list(PARAMS)
        )

    def test_nonce(self, service):
        contract = service.get_contract.return_value
        contract.functions.nonce.return_value.call.return_value = 4
        assert PeripheralContract(service, "0x" + "22" * 20).nonce() == 4


class TestCli:
    """Tests for the safe-relay command line."""

    def test_block_info_writes_json(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        info = {
            "block_number": 30_000_000,
            "block_hash": "0x" + "ab" * 32,
            "block_timestamp": 1,
            "rlp_block_header": "0xf9",
        }
        proofs = MagicMock()
        proofs.get_block_info.return_value = Result.ok(info)

        with patch.object(cli.RelayProofs, "for_network", return_value=proofs):
            cli.main(
                ["block-info", "--network", "Gnosis", "--block-number", "30000000"]
            )

        saved = tmp_path / "output" / "block_info_gnosis_30000000.json"
        assert json.loads(saved.read_text()) == info

    def test_invalid_network_exits(self):
        with pytest.raises(SystemExit) as exc:
            cli.main(
                ["block-info", "--network", "moonbase", "--block-number", "1"]
            )
        assert exc.value.code == 1

    def test_failed_proof_exits(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        proofs = MagicMock()
        proofs.get_proof_bundle.return_value = Result.fail_with_message(
            source="storage_proof", message="value mismatch"
        )

        with patch.object(cli.RelayProofs, "for_network", return_value=proofs):
            with pytest.raises(SystemExit) as exc:
                cli.main(
                    [
                        "proof",
                        "--network",
                        "gnosis",
                        "--block-number",
                        "1",
                        "--account",
                        "0x" + "22" * 20,
                        "--key-address",
                        "0x" + "33" * 20,
                    ]
                )

        assert exc.value.code == 1
        assert not (tmp_path / "output").exists()
