"""Kernel smart-account implementation of the account capability."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, replace
from typing import Any

from eth_account.messages import encode_defunct
from eth_account.signers.local import LocalAccount
from web3 import Web3

from ..base import AccountCapability
from ..constants import DEFAULT_VERIFICATION_GAS, ENTRYPOINT_ADDRESS
from ..exceptions import InvalidIntentError
from ..types import EMPTY_BYTES, CallOperation, TransactionIntent, UserOperation
from ..utils import calc_pre_verification_gas, encode_function_call, get_user_op_hash
from .connections import ChainConnection

logger = logging.getLogger(__name__)

EXECUTE_SIGNATURE = "executeAndRevert(address,uint256,bytes,uint8)"
CREATE_ACCOUNT_SIGNATURE = "createAccount(address,uint256)"
GET_ACCOUNT_ADDRESS_SIGNATURE = "getAccountAddress(address,uint256)"
GET_NONCE_SIGNATURE = "getNonce(address,uint192)"


@dataclass(frozen=True)
class KernelAccountParams:
    """Configuration shared by an account and its delegate copies."""

    owner: LocalAccount
    connection: ChainConnection
    factory_address: str
    chain_id: int
    entry_point_address: str = ENTRYPOINT_ADDRESS
    index: int = 0
    account_address: str | None = None


class KernelAccount(AccountCapability):
    """Build and sign UserOperations for a Kernel account owned by an ECDSA key."""

    def __init__(self, params: KernelAccountParams, *, delegate_mode: bool = False) -> None:
        self._params = params
        self._delegate_mode = delegate_mode
        self._nonce_lock = threading.Lock()
        self._pending_nonces: set[int] = set()
        self._account_address: str | None = (
            Web3.to_checksum_address(params.account_address) if params.account_address else None
        )
        self._deployed = False

    @property
    def params(self) -> KernelAccountParams:
        return self._params

    @property
    def delegate_mode(self) -> bool:
        return self._delegate_mode

    def delegate_copy(self) -> KernelAccount:
        params = replace(self._params, account_address=self._account_address)
        return KernelAccount(params, delegate_mode=True)

    # ------------------------------------------------------------------
    # Addresses and deployment
    # ------------------------------------------------------------------
    def get_account_address(self) -> str:
        if self._account_address is None:
            (address,) = self._params.connection.call_function(
                self._params.factory_address,
                GET_ACCOUNT_ADDRESS_SIGNATURE,
                ["address", "uint256"],
                [self._params.owner.address, self._params.index],
                ["address"],
            )
            self._account_address = Web3.to_checksum_address(address)
            logger.info("Counterfactual account address %s", self._account_address)
        return self._account_address

    def factory_call_data(self) -> str:
        return encode_function_call(
            CREATE_ACCOUNT_SIGNATURE,
            ["address", "uint256"],
            [self._params.owner.address, self._params.index],
        )

    def get_init_code(self) -> str:
        """Return factory + createAccount calldata while the account has no code."""
        if self._deployed:
            return EMPTY_BYTES

        code = self._params.connection.get_code(self.get_account_address())
        if code:
            self._deployed = True
            return EMPTY_BYTES

        factory = Web3.to_checksum_address(self._params.factory_address)
        return factory + self.factory_call_data()[2:]

    # ------------------------------------------------------------------
    # Nonces
    # ------------------------------------------------------------------
    def reserve_nonce(self) -> int:
        """Read the EntryPoint nonce and reserve it for this call."""
        sender = self.get_account_address()
        with self._nonce_lock:
            (on_chain,) = self._params.connection.call_function(
                self._params.entry_point_address,
                GET_NONCE_SIGNATURE,
                ["address", "uint192"],
                [sender, 0],
                ["uint256"],
            )
            on_chain = int(on_chain)
            self._pending_nonces = {n for n in self._pending_nonces if n >= on_chain}
            # Lowest free nonce; the EntryPoint rejects gaps.
            nonce = on_chain
            while nonce in self._pending_nonces:
                nonce += 1
            self._pending_nonces.add(nonce)

        logger.debug("Reserved nonce %s for %s (on-chain %s)", nonce, sender, on_chain)
        return nonce

    def release_nonce(self, nonce: int) -> None:
        with self._nonce_lock:
            self._pending_nonces.discard(nonce)

    # ------------------------------------------------------------------
    # UserOperation construction
    # ------------------------------------------------------------------
    def encode_execute(self, target: str, value: int, data: str) -> str:
        operation = CallOperation.DELEGATECALL if self._delegate_mode else CallOperation.CALL
        return encode_function_call(
            EXECUTE_SIGNATURE,
            ["address", "uint256", "bytes", "uint8"],
            [
                Web3.to_checksum_address(target),
                value,
                Web3.to_bytes(hexstr=data) if data and data != EMPTY_BYTES else b"",
                int(operation),
            ],
        )

    def create_unsigned_user_op(
        self, intent: TransactionIntent, paymaster_placeholder: str | None = None
    ) -> UserOperation:
        if intent.target is None:
            raise InvalidIntentError("Missing call target", field="target")

        connection = self._params.connection
        sender = self.get_account_address()
        init_code = self.get_init_code()
        call_data = self.encode_execute(intent.target, intent.value or 0, intent.data or EMPTY_BYTES)

        call_gas_limit = intent.gas_limit
        if call_gas_limit is None:
            call_gas_limit = connection.estimate_gas(self._estimation_tx(sender, call_data, intent))

        init_gas = 0
        if init_code != EMPTY_BYTES:
            init_gas = connection.estimate_gas(
                {"to": self._params.factory_address, "data": self.factory_call_data()}
            )

        max_fee, priority_fee = self._resolve_fees(intent)

        op = UserOperation(
            sender=sender,
            nonce=self.reserve_nonce(),
            init_code=init_code,
            call_data=call_data,
            call_gas_limit=call_gas_limit,
            verification_gas_limit=DEFAULT_VERIFICATION_GAS + init_gas,
            pre_verification_gas=0,
            max_fee_per_gas=max_fee,
            max_priority_fee_per_gas=priority_fee,
            paymaster_and_data=EMPTY_BYTES,
            signature=EMPTY_BYTES,
        )
        # Size the overhead for the paymaster data merged after sponsorship.
        sized = op.with_paymaster_and_data(paymaster_placeholder or EMPTY_BYTES)
        return replace(op, pre_verification_gas=calc_pre_verification_gas(sized))

    def create_signed_user_op(
        self, intent: TransactionIntent, paymaster_placeholder: str | None = None
    ) -> UserOperation:
        op = self.create_unsigned_user_op(intent, paymaster_placeholder)
        try:
            return self.sign_user_op(op)
        except Exception:
            self.release_nonce(int(op.nonce or 0))
            raise

    def sign_user_op(self, op: UserOperation) -> UserOperation:
        user_op_hash = self.get_user_op_hash(op)
        signed = self._params.owner.sign_message(encode_defunct(primitive=user_op_hash))
        return op.with_signature(Web3.to_hex(signed.signature))

    def get_user_op_hash(self, op: UserOperation) -> bytes:
        return get_user_op_hash(op, self._params.entry_point_address, self._params.chain_id)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    def _estimation_tx(self, sender: str, call_data: str, intent: TransactionIntent) -> dict[str, Any]:
        tx: dict[str, Any] = {
            "from": Web3.to_checksum_address(self._params.entry_point_address),
            "to": sender,
            "data": call_data,
        }
        if intent.max_fee_per_gas is not None or intent.max_priority_fee_per_gas is not None:
            tx["maxFeePerGas"] = intent.max_fee_per_gas or 0
            tx["maxPriorityFeePerGas"] = intent.max_priority_fee_per_gas or 0
        elif intent.gas_price is not None:
            tx["gasPrice"] = intent.gas_price
        return tx

    def _resolve_fees(self, intent: TransactionIntent) -> tuple[int, int]:
        # Non-zero fees only arrive when the account is driven directly;
        # AASigner always zeroes them.
        if intent.max_fee_per_gas and intent.max_priority_fee_per_gas:
            return intent.max_fee_per_gas, intent.max_priority_fee_per_gas
        if intent.gas_price:
            return intent.gas_price, intent.gas_price
        return self._params.connection.fee_data()


ACCOUNT_IMPLEMENTATIONS: dict[str, type[KernelAccount]] = {
    "kernel": KernelAccount,
}
