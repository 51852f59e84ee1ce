from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from typing import Any, cast

import pytest
from eth_abi import decode
from eth_account import Account
from eth_account.messages import encode_defunct
from web3 import Web3

from aa_signer.constants import PAYMASTER_AND_DATA_PLACEHOLDER, VERIFYING_PAYMASTER_DATA_SIZE
from aa_signer.erc4337.accounts import (
    GET_ACCOUNT_ADDRESS_SIGNATURE,
    GET_NONCE_SIGNATURE,
    KernelAccount,
    KernelAccountParams,
)
from aa_signer.erc4337.connections import ChainConnection
from aa_signer.types import TransactionIntent
from aa_signer.utils import calc_pre_verification_gas

OWNER = Account.from_key("0x" + "22" * 32)
FACTORY = "0x4444444444444444444444444444444444444444"
ACCOUNT_ADDRESS = "0x5555555555555555555555555555555555555555"
TARGET = "0x6666666666666666666666666666666666666666"
ENTRY_POINT = "0x5FF137D4b0FDCD49DcA30c7CF57E578a026d2789"


class FakeConnection:
    """Minimal chain double answering factory and EntryPoint reads."""

    def __init__(self, *, code: bytes = b"", on_chain_nonce: int = 0, gas: int = 70_000) -> None:
        self.code = code
        self.on_chain_nonce = on_chain_nonce
        self.gas = gas
        self.calls: list[str] = []
        self.estimates: list[dict[str, Any]] = []

    def call_function(
        self,
        address: str,
        signature: str,
        input_types: list[str],
        args: list[Any],
        output_types: list[str],
    ) -> tuple[Any, ...]:
        self.calls.append(signature)
        if signature == GET_ACCOUNT_ADDRESS_SIGNATURE:
            return (ACCOUNT_ADDRESS.lower(),)
        if signature == GET_NONCE_SIGNATURE:
            return (self.on_chain_nonce,)
        raise AssertionError(f"unexpected call {signature}")

    def get_code(self, address: str) -> bytes:
        return self.code

    def estimate_gas(self, transaction: dict[str, Any]) -> int:
        self.estimates.append(transaction)
        return self.gas

    def fee_data(self) -> tuple[int, int]:
        return 3_000_000_000, 1_000_000_000


def _account(connection: FakeConnection, *, delegate_mode: bool = False, **overrides: Any) -> KernelAccount:
    params = KernelAccountParams(
        owner=OWNER,
        connection=cast(ChainConnection, connection),
        factory_address=FACTORY,
        chain_id=5,
        entry_point_address=ENTRY_POINT,
        **overrides,
    )
    return KernelAccount(params, delegate_mode=delegate_mode)


def _decode_execute(call_data: str) -> tuple[Any, ...]:
    return decode(["address", "uint256", "bytes", "uint8"], bytes.fromhex(call_data[10:]))


class TestAccountAddress:
    def test_address_is_fetched_once(self):
        connection = FakeConnection()
        account = _account(connection)

        assert account.get_account_address() == ACCOUNT_ADDRESS
        assert account.get_account_address() == ACCOUNT_ADDRESS
        assert connection.calls.count(GET_ACCOUNT_ADDRESS_SIGNATURE) == 1

    def test_known_address_skips_factory(self):
        connection = FakeConnection()
        account = _account(connection, account_address=ACCOUNT_ADDRESS.lower())

        assert account.get_account_address() == ACCOUNT_ADDRESS
        assert connection.calls == []


class TestUserOperationConstruction:
    def test_undeployed_account_carries_init_code(self):
        connection = FakeConnection(code=b"", gas=70_000)
        account = _account(connection)

        op = account.create_unsigned_user_op(TransactionIntent(target=TARGET, data="0x1234", value=0))

        assert op.init_code == Web3.to_checksum_address(FACTORY) + account.factory_call_data()[2:]
        assert op.verification_gas_limit == 100_000 + 70_000
        assert op.call_gas_limit == 70_000
        assert len(connection.estimates) == 2
        assert op.pre_verification_gas and op.pre_verification_gas > 21_000

    def test_deployed_account_has_empty_init_code(self):
        connection = FakeConnection(code=b"\x60\x80")
        account = _account(connection)

        op = account.create_unsigned_user_op(TransactionIntent(target=TARGET, data="0x1234"))

        assert op.init_code == "0x"
        assert op.verification_gas_limit == 100_000
        assert len(connection.estimates) == 1

    def test_estimation_runs_from_entry_point_with_zero_fees(self):
        connection = FakeConnection(code=b"\x60")
        account = _account(connection)

        op = account.create_unsigned_user_op(
            TransactionIntent(target=TARGET, data="0x1234", max_fee_per_gas=0, max_priority_fee_per_gas=0)
        )

        estimate = connection.estimates[0]
        assert estimate["from"] == ENTRY_POINT
        assert estimate["to"] == ACCOUNT_ADDRESS
        assert estimate["maxFeePerGas"] == 0
        assert op.max_fee_per_gas == 3_000_000_000
        assert op.max_priority_fee_per_gas == 1_000_000_000

    def test_paymaster_placeholder_sizes_pre_verification_gas(self):
        intent = TransactionIntent(target=TARGET, data="0x1234")
        plain = _account(FakeConnection(code=b"\x60")).create_unsigned_user_op(intent)
        sponsored = _account(FakeConnection(code=b"\x60")).create_unsigned_user_op(
            intent, PAYMASTER_AND_DATA_PLACEHOLDER
        )

        merged = sponsored.with_paymaster_and_data("0x" + "7f" * VERIFYING_PAYMASTER_DATA_SIZE)

        assert sponsored.paymaster_and_data == "0x"
        assert (sponsored.pre_verification_gas or 0) > (plain.pre_verification_gas or 0)
        assert (sponsored.pre_verification_gas or 0) >= calc_pre_verification_gas(merged)

    def test_explicit_fees_are_kept_when_driven_directly(self):
        connection = FakeConnection(code=b"\x60")

        op = _account(connection).create_unsigned_user_op(
            TransactionIntent(target=TARGET, data="0x", max_fee_per_gas=50, max_priority_fee_per_gas=2)
        )

        assert (op.max_fee_per_gas, op.max_priority_fee_per_gas) == (50, 2)

    def test_gas_limit_skips_call_estimation(self):
        connection = FakeConnection(code=b"\x60")
        account = _account(connection)

        op = account.create_unsigned_user_op(TransactionIntent(target=TARGET, data="0x", gas_limit=123_456))

        assert op.call_gas_limit == 123_456
        assert connection.estimates == []

    def test_call_mode_is_encoded(self):
        connection = FakeConnection(code=b"\x60")
        call_data = _account(connection).encode_execute(TARGET, 7, "0xbeef")

        target, value, data, operation = _decode_execute(call_data)

        assert Web3.to_checksum_address(target) == TARGET
        assert value == 7
        assert data == b"\xbe\xef"
        assert operation == 0

    def test_delegate_mode_encodes_delegatecall(self):
        connection = FakeConnection(code=b"\x60")
        delegate = _account(connection).delegate_copy()

        op = delegate.create_unsigned_user_op(TransactionIntent(target=TARGET, data="0xbeef"))

        assert delegate.delegate_mode is True
        assert _decode_execute(op.call_data or "0x")[3] == 1

    def test_signature_recovers_to_owner(self):
        connection = FakeConnection(code=b"\x60")
        account = _account(connection)

        op = account.create_signed_user_op(TransactionIntent(target=TARGET, data="0x1234"))

        message = encode_defunct(primitive=account.get_user_op_hash(op))
        assert Account.recover_message(message, signature=op.signature) == OWNER.address


class TestNonces:
    def test_concurrent_reservations_are_distinct(self):
        account = _account(FakeConnection())

        with ThreadPoolExecutor(max_workers=8) as pool:
            nonces = list(pool.map(lambda _: account.reserve_nonce(), range(8)))

        assert sorted(nonces) == list(range(8))

    def test_released_nonce_is_reused(self):
        account = _account(FakeConnection())

        first = account.reserve_nonce()
        account.release_nonce(first)

        assert account.reserve_nonce() == first

    def test_released_nonce_below_other_reservations_is_reused(self):
        account = _account(FakeConnection())

        first = account.reserve_nonce()
        second = account.reserve_nonce()
        account.release_nonce(first)

        assert account.reserve_nonce() == first
        assert account.reserve_nonce() == second + 1

    def test_stale_reservations_drop_when_chain_advances(self):
        connection = FakeConnection(on_chain_nonce=0)
        account = _account(connection)
        account.reserve_nonce()
        account.reserve_nonce()

        connection.on_chain_nonce = 5

        assert account.reserve_nonce() == 5
        assert account.reserve_nonce() == 6

    def test_signing_failure_releases_nonce(self, monkeypatch: pytest.MonkeyPatch):
        account = _account(FakeConnection(code=b"\x60"))

        def fail(op: Any) -> Any:
            raise RuntimeError("signer offline")

        monkeypatch.setattr(account, "sign_user_op", fail)

        with pytest.raises(RuntimeError):
            account.create_signed_user_op(TransactionIntent(target=TARGET, data="0x"))

        assert account.reserve_nonce() == 0

    def test_delegate_copy_tracks_its_own_reservations(self):
        connection = FakeConnection()
        account = _account(connection)
        account.reserve_nonce()

        delegate = account.delegate_copy()

        assert account.delegate_mode is False
        assert delegate.reserve_nonce() == 0
        assert delegate.get_account_address() == ACCOUNT_ADDRESS
        assert connection.calls.count(GET_ACCOUNT_ADDRESS_SIGNATURE) == 1
