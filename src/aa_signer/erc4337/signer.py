"""Signer that routes transactions through an ERC-4337 smart account."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import replace
from typing import Any

from eth_account.messages import encode_defunct
from eth_account.signers.local import LocalAccount
from web3 import Web3

from ..base import AccountCapability, PaymasterAPI
from ..exceptions import GasChecksFailedError, InvalidIntentError, UnsupportedOperationError
from ..types import EMPTY_BYTES, TransactionInfo, TransactionIntent, UserOperation
from .bundler import HttpRpcClient
from .config import ClientConfig
from .connections import ChainConnection
from .errors import unwrap_error
from .hooks import notify
from .response import UserOpTransactionResponse

logger = logging.getLogger(__name__)


def zero_fee_intent(intent: TransactionIntent) -> TransactionIntent:
    """Zero the intent's fees so gas estimation works for an account without balance.

    Caller-supplied fees are dropped; the account prices the operation
    from current chain fee data.
    """
    if intent.max_fee_per_gas is not None or intent.max_priority_fee_per_gas is not None:
        return replace(intent, max_fee_per_gas=0, max_priority_fee_per_gas=0)
    return replace(intent, gas_price=0)


def verify_intent(intent: TransactionIntent) -> None:
    if intent.target is None:
        raise InvalidIntentError("Missing call target", field="target")
    if intent.data is None and intent.value is None:
        raise InvalidIntentError("Missing call data or value", field="data")


class AASigner:
    """Send transactions as UserOperations from a smart account.

    The owner key only signs; gas is paid by the account or its paymaster.
    """

    def __init__(
        self,
        config: ClientConfig,
        original_signer: LocalAccount,
        http_rpc_client: HttpRpcClient,
        account: AccountCapability,
        *,
        connection: ChainConnection | None = None,
    ) -> None:
        self.config = config
        self.original_signer = original_signer
        self.http_rpc_client = http_rpc_client
        self.account = account
        self._connection = connection
        self._address: str | None = None

    @property
    def paymaster(self) -> PaymasterAPI | None:
        return self.config.paymaster

    def delegate_copy(self) -> AASigner:
        """Return a signer acting on the same account in delegate mode."""
        return AASigner(
            self.config,
            self.original_signer,
            self.http_rpc_client,
            self.account.delegate_copy(),
            connection=self._connection,
        )

    # ------------------------------------------------------------------
    # Transactions
    # ------------------------------------------------------------------
    def build_user_operation(
        self, transaction: TransactionIntent | Mapping[str, Any]
    ) -> UserOperation:
        """Validate, zero-fee, build and sign an operation, merging sponsorship if configured."""
        intent = self._coerce_intent(transaction)
        verify_intent(intent)
        intent = zero_fee_intent(intent)

        if self.paymaster is None:
            return self.account.create_signed_user_op(intent)

        op = self.account.create_signed_user_op(
            intent, self.paymaster.placeholder_paymaster_and_data()
        )

        try:
            paymaster_and_data = self.paymaster.get_paymaster_and_data(op)
            if not paymaster_and_data or paymaster_and_data == EMPTY_BYTES:
                raise GasChecksFailedError(
                    "Transaction failed gas checks: no paymaster sponsorship returned",
                    details={"sender": op.sender},
                )
            op = self.account.sign_user_op(op.with_paymaster_and_data(paymaster_and_data))
        except Exception:
            self._release(op)
            raise

        return op

    def send_transaction(
        self, transaction: TransactionIntent | Mapping[str, Any]
    ) -> UserOpTransactionResponse:
        intent = self._coerce_intent(transaction)
        op = self.build_user_operation(intent)

        user_op_hash = Web3.to_hex(self.account.get_user_op_hash(op))
        response = self.construct_user_op_transaction_response(op, user_op_hash)

        notify(
            self.config.hooks,
            "transaction_started",
            TransactionInfo(
                hash=user_op_hash,
                from_address=str(op.sender),
                to=str(intent.target),
                value=intent.value or 0,
                sponsored=op.sponsored,
            ),
        )

        try:
            bundler_hash = self.http_rpc_client.send_user_op_to_bundler(op)
        except Exception as exc:
            self._release(op)
            normalized = unwrap_error(exc)
            if normalized is exc:
                raise
            raise normalized from exc

        if bundler_hash.lower() != user_op_hash.lower():
            logger.warning(
                "Bundler returned hash %s, computed %s for sender=%s",
                bundler_hash,
                user_op_hash,
                op.sender,
            )

        logger.info("UserOperation %s submitted for sender=%s", user_op_hash, op.sender)
        return response

    def construct_user_op_transaction_response(
        self, op: UserOperation, user_op_hash: str
    ) -> UserOpTransactionResponse:
        return UserOpTransactionResponse(
            user_op_hash,
            op,
            self.http_rpc_client,
            hooks=self.config.hooks,
            connection=self._connection,
            receipt_timeout=self.config.receipt_timeout,
            poll_interval=self.config.receipt_poll_interval,
        )

    # ------------------------------------------------------------------
    # Signing
    # ------------------------------------------------------------------
    def get_address(self) -> str:
        if self._address is None:
            self._address = self.account.get_account_address()
        return self._address

    def sign_message(self, message: str | bytes) -> str:
        if isinstance(message, bytes):
            signable = encode_defunct(primitive=message)
        else:
            signable = encode_defunct(text=message)
        return Web3.to_hex(self.original_signer.sign_message(signable).signature)

    def sign_user_operation(self, op: UserOperation) -> str:
        """Sign the operation hash with the owner key."""
        return self.sign_message(self.account.get_user_op_hash(op))

    def sign_transaction(self, transaction: Any) -> str:
        raise UnsupportedOperationError(
            "sign_transaction", "Raw transaction signing is not supported by a smart account"
        )

    def connect(self, provider: Any) -> AASigner:
        raise UnsupportedOperationError("connect", "Changing providers is not supported")

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    @staticmethod
    def _coerce_intent(transaction: TransactionIntent | Mapping[str, Any]) -> TransactionIntent:
        if isinstance(transaction, TransactionIntent):
            return transaction
        if isinstance(transaction, Mapping):
            return TransactionIntent.from_dict(transaction)
        raise InvalidIntentError(
            "Transaction must be a TransactionIntent or a mapping",
            field="transaction",
            value=transaction,
        )

    def _release(self, op: UserOperation) -> None:
        if op.nonce is not None:
            self.account.release_nonce(op.nonce)
