"""Caller-facing handle for a submitted UserOperation."""

from __future__ import annotations

import logging
import threading
import time

from ..constants import DEFAULT_RECEIPT_POLL_INTERVAL, DEFAULT_RECEIPT_TIMEOUT
from ..exceptions import (
    AASignerError,
    ReceiptTimeoutError,
    TransportError,
    UserOperationRevertedError,
)
from ..types import EMPTY_BYTES, ResponseStatus, UserOperation, UserOperationReceipt
from .bundler import HttpRpcClient
from .config import Hooks
from .connections import ChainConnection
from .hooks import notify

logger = logging.getLogger(__name__)


class UserOpTransactionResponse:
    """Mirror of a transaction response: ``hash`` now, receipt after ``wait()``.

    ``hash`` is the UserOperation hash. ``transaction_hash`` becomes
    available once the bundler reports the bundle transaction.
    """

    def __init__(
        self,
        user_op_hash: str,
        user_op: UserOperation,
        rpc_client: HttpRpcClient,
        *,
        hooks: Hooks | None = None,
        connection: ChainConnection | None = None,
        receipt_timeout: float = DEFAULT_RECEIPT_TIMEOUT,
        poll_interval: float = DEFAULT_RECEIPT_POLL_INTERVAL,
    ) -> None:
        self.hash = user_op_hash
        self.user_op = user_op
        self.from_address = user_op.sender
        self.nonce = user_op.nonce
        self.transaction_hash: str | None = None
        self.status = ResponseStatus.PENDING
        self._rpc_client = rpc_client
        self._hooks = hooks
        self._connection = connection
        self._receipt_timeout = receipt_timeout
        self._poll_interval = poll_interval
        self._receipt: UserOperationReceipt | None = None
        self._failure: AASignerError | None = None
        self._lock = threading.Lock()

    @property
    def receipt(self) -> UserOperationReceipt | None:
        return self._receipt

    def wait(
        self,
        timeout: float | None = None,
        *,
        poll_interval: float | None = None,
        cancel_event: threading.Event | None = None,
    ) -> UserOperationReceipt | None:
        """Block until the operation is included.

        Returns the receipt once confirmed, or ``None`` when ``cancel_event``
        is set first. Raises ``UserOperationRevertedError`` if the operation
        reverted and ``ReceiptTimeoutError`` once ``timeout`` elapses. If an
        operation carrying ``initCode`` left no code at the sender, every
        call raises ``AASignerError`` and the status is ``FAILED``. A
        cancelled or timed-out wait leaves the handle pending; the operation
        itself stays with the bundler.
        """
        with self._lock:
            if self._failure is not None:
                raise self._failure
            if self._receipt is not None:
                return self._resolve(self._receipt)

            timeout = self._receipt_timeout if timeout is None else timeout
            interval = self._poll_interval if poll_interval is None else poll_interval
            deadline = time.monotonic() + timeout
            attempt = 0

            logger.debug(
                "Waiting for UserOperation %s (timeout=%s, interval=%s)", self.hash, timeout, interval
            )

            while True:
                if cancel_event is not None and cancel_event.is_set():
                    logger.info("Stopped waiting for UserOperation %s (cancelled)", self.hash)
                    self.status = ResponseStatus.CANCELLED
                    return None

                attempt += 1
                try:
                    receipt = self._rpc_client.get_user_operation_receipt(self.hash)
                except TransportError as exc:
                    logger.warning("Receipt poll error for %s (attempt %s): %s", self.hash, attempt, exc)
                    receipt = None

                if receipt is not None:
                    self._receipt = receipt
                    self.transaction_hash = receipt.transaction_hash
                    return self._resolve(receipt, notify_hooks=True)

                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    raise ReceiptTimeoutError(self.hash, timeout)

                delay = min(interval, remaining)
                if cancel_event is not None:
                    cancel_event.wait(delay)
                else:
                    time.sleep(delay)

    def _resolve(
        self, receipt: UserOperationReceipt, *, notify_hooks: bool = False
    ) -> UserOperationReceipt:
        if not receipt.success:
            self.status = ResponseStatus.REVERTED
            if notify_hooks:
                logger.info(
                    "UserOperation %s reverted tx=%s reason=%s",
                    self.hash,
                    receipt.transaction_hash,
                    receipt.reason,
                )
                notify(self._hooks, "transaction_reverted", receipt.transaction_hash or self.hash)
            raise UserOperationRevertedError(self.hash, receipt.transaction_hash, receipt.reason)

        if notify_hooks:
            try:
                self._verify_account_deployed()
            except AASignerError as exc:
                self.status = ResponseStatus.FAILED
                self._failure = exc
                raise
            logger.info(
                "UserOperation %s confirmed tx=%s block=%s",
                self.hash,
                receipt.transaction_hash,
                receipt.block_number,
            )
            notify(self._hooks, "transaction_confirmed", receipt.transaction_hash or self.hash)

        self.status = ResponseStatus.CONFIRMED
        return receipt

    def _verify_account_deployed(self) -> None:
        if self._connection is None or self.user_op.init_code in (None, "", EMPTY_BYTES):
            return

        sender = str(self.user_op.sender)
        if not self._connection.get_code(sender):
            raise AASignerError(
                f"Account {sender} was not deployed by UserOperation {self.hash}",
                details={"transaction_hash": self.transaction_hash},
            )
