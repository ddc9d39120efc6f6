"""
Unit tests for the Safe client: hashing, signing and execution.
"""

from unittest.mock import MagicMock

import pytest
from eth_account import Account
from eth_account.messages import encode_defunct
from eth_utils import keccak, to_canonical_address
from hexbytes import HexBytes

from safe_relay_toolkit.relay.safe import (
    ETH_SIGN_V_OFFSET,
    SafeSignature,
    SafeTransactionData,
    Web3SafeClient,
    encode_signatures,
    pre_validated_signature,
)
from safe_relay_toolkit.shared.constants import GlobalConstants
from safe_relay_toolkit.shared.services.web3_service import Web3Service

PRIVATE_KEY = "0x" + "4c" * 32
SAFE_ADDRESS = "0x" + "5a" * 20


@pytest.fixture
def account():
    return Account.from_key(PRIVATE_KEY)


@pytest.fixture
def service(account):
    service = MagicMock()
    service.network = "chiado"
    service.chain_id = 10200
    service.account = account
    service.address = account.address
    service.get_contract.return_value.functions.nonce.return_value.call.return_value = 7
    service.send_transaction.return_value = HexBytes(b"\xab" * 32)
    return service


@pytest.fixture
def transaction(account):
    return SafeTransactionData(
        to=account.address,
        value=1,
        data=b"",
        operation=0,
        safe_tx_gas=0,
        base_gas=0,
        gas_price=1_000_000_000,
        gas_token=GlobalConstants.ZERO_ADDRESS,
        refund_receiver=account.address,
        nonce=3,
    )


class TestSafeTxHash:
    """Tests for the EIP-712 Safe transaction hash."""

    def test_deterministic(self, transaction):
        assert transaction.safe_tx_hash(100, SAFE_ADDRESS) == (
            transaction.safe_tx_hash(100, SAFE_ADDRESS)
        )
        assert len(transaction.safe_tx_hash(100, SAFE_ADDRESS)) == 32

    def test_bound_to_chain_and_safe(self, transaction):
        """The same transaction hashes differently per chain and per Safe."""
        base = transaction.safe_tx_hash(100, SAFE_ADDRESS)
        assert transaction.safe_tx_hash(10200, SAFE_ADDRESS) != base
        assert transaction.safe_tx_hash(100, "0x" + "5b" * 20) != base

    def test_bound_to_nonce(self, transaction):
        replay = SafeTransactionData(
            **{**transaction.__dict__, "nonce": transaction.nonce + 1}
        )
        assert replay.safe_tx_hash(100, SAFE_ADDRESS) != (
            transaction.safe_tx_hash(100, SAFE_ADDRESS)
        )

    def test_params_carry_signatures(self, transaction):
        params = transaction.to_safe_tx_params(b"\x01\x02")
        assert params.signatures == b"\x01\x02"
        assert params.to == transaction.to
        assert params.gas_price == 1_000_000_000
        assert len(params) == 10


class TestSignatures:
    """Tests for signature encoding."""

    def test_eth_sign_signature(self, service, account):
        client = Web3SafeClient(service, SAFE_ADDRESS)
        safe_tx_hash = keccak(b"safe tx")

        signature = client.sign_transaction_hash(safe_tx_hash)

        assert signature.signer == account.address
        assert len(signature.data) == 65
        assert signature.data[64] in (27 + ETH_SIGN_V_OFFSET, 28 + ETH_SIGN_V_OFFSET)

        # The Safe recovers eth_sign signatures with v - 4 over the
        # prefixed message hash
        v = signature.data[64] - ETH_SIGN_V_OFFSET
        recovered = Account.recover_message(
            encode_defunct(primitive=safe_tx_hash),
            vrs=(
                v,
                int.from_bytes(signature.data[:32], "big"),
                int.from_bytes(signature.data[32:64], "big"),
            ),
        )
        assert recovered == account.address

    def test_signing_without_signer(self, service):
        service.account = None
        client = Web3SafeClient(service, SAFE_ADDRESS)
        with pytest.raises(ValueError, match="No signer"):
            client.sign_transaction_hash(keccak(b"safe tx"))

    def test_pre_validated_signature(self, account):
        signature = pre_validated_signature(account.address)
        assert len(signature) == 65
        assert signature[:12] == b"\x00" * 12
        assert signature[12:32] == to_canonical_address(account.address)
        assert signature[32:64] == b"\x00" * 32
        assert signature[64] == 1

    def test_signatures_sorted_by_signer(self):
        low = SafeSignature("0x" + "01" * 20, b"\x01" * 65)
        high = SafeSignature("0x" + "ff" * 20, b"\x02" * 65)
        assert encode_signatures([high, low]) == b"\x01" * 65 + b"\x02" * 65


class TestWeb3SafeClient:
    """Tests for Web3SafeClient with a mocked chain context."""

    def test_create_transaction_defaults(self, service, account):
        client = Web3SafeClient(service, SAFE_ADDRESS)

        tx = client.create_transaction(to=account.address.lower(), value=5)

        assert tx.nonce == 7
        assert tx.to == account.address
        assert tx.refund_receiver == account.address
        assert tx.gas_token == GlobalConstants.ZERO_ADDRESS
        service.get_contract.assert_called_once()

    def test_explicit_nonce_skips_read(self, service, account):
        client = Web3SafeClient(service, SAFE_ADDRESS)
        contract = service.get_contract.return_value

        tx = client.create_transaction(to=account.address, nonce=42)

        assert tx.nonce == 42
        contract.functions.nonce.return_value.call.assert_not_called()

    def test_transaction_hash_uses_chain_id(self, service, transaction):
        client = Web3SafeClient(service, SAFE_ADDRESS)
        assert client.get_transaction_hash(transaction) == (
            transaction.safe_tx_hash(10200, client.safe_address)
        )

    def test_execute_with_pre_validated_signature(
        self, service, account, transaction
    ):
        client = Web3SafeClient(service, SAFE_ADDRESS)
        contract = service.get_contract.return_value

        executed = client.execute_transaction(transaction, gas_limit=500_000)

        args = contract.functions.execTransaction.call_args[0]
        assert args[-1] == pre_validated_signature(account.address)
        service.send_transaction.assert_called_once_with(
            contract.functions.execTransaction.return_value, 500_000
        )
        assert executed.tx_hash == HexBytes(b"\xab" * 32)

    def test_execute_with_collected_signatures(
        self, service, transaction
    ):
        client = Web3SafeClient(service, SAFE_ADDRESS)
        contract = service.get_contract.return_value
        signature = SafeSignature("0x" + "01" * 20, b"\x07" * 65)

        client.execute_transaction(transaction, [signature])

        args = contract.functions.execTransaction.call_args[0]
        assert args[-1] == b"\x07" * 65


class TestExecutionEvents:
    """Tests for reading the Safe's execution outcome from a receipt."""

    @pytest.fixture
    def client(self):
        return Web3SafeClient(
            Web3Service("chiado", 10200, "http://chiado.local"), SAFE_ADDRESS
        )

    def _receipt(self, *logs):
        return {"status": 1, "logs": list(logs)}

    def test_execution_success(self, client, safe_log_factory):
        receipt = self._receipt(
            safe_log_factory("ExecutionSuccess", SAFE_ADDRESS)
        )
        assert client.execution_succeeded(receipt) is True

    def test_execution_failure(self, client, safe_log_factory):
        """Status 1 with ExecutionFailure means the inner call failed."""
        receipt = self._receipt(
            safe_log_factory("ExecutionFailure", SAFE_ADDRESS)
        )
        assert client.execution_succeeded(receipt) is False

    def test_no_execution_event(self, client):
        assert client.execution_succeeded(self._receipt()) is False

    def test_unrelated_logs_are_skipped(self, client, safe_log_factory):
        transfer = {
            **safe_log_factory("ExecutionSuccess", SAFE_ADDRESS, 0),
            "topics": [HexBytes(keccak(text="Transfer(address,address,uint256)"))],
        }
        receipt = self._receipt(
            transfer, safe_log_factory("ExecutionSuccess", SAFE_ADDRESS, 1)
        )
        assert client.execution_succeeded(receipt) is True

    def test_events_of_other_safes_ignored(self, client, safe_log_factory):
        other = "0x" + "5b" * 20
        receipt = self._receipt(
            safe_log_factory("ExecutionSuccess", other),
            safe_log_factory("ExecutionFailure", SAFE_ADDRESS, 1),
        )
        assert client.execution_succeeded(receipt) is False
