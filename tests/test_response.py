from __future__ import annotations

import threading
from types import SimpleNamespace
from typing import Any, cast

import pytest

from aa_signer.erc4337.bundler import HttpRpcClient
from aa_signer.erc4337.config import Hooks
from aa_signer.erc4337.connections import ChainConnection
from aa_signer.erc4337.response import UserOpTransactionResponse
from aa_signer.exceptions import (
    AASignerError,
    ReceiptTimeoutError,
    TransportError,
    UserOperationRevertedError,
)
from aa_signer.types import ResponseStatus, UserOperation, UserOperationReceipt

SENDER = "0x1111111111111111111111111111111111111111"


class ScriptedBundler:
    """Return queued receipt lookups; the last entry repeats."""

    def __init__(self, *results: Any) -> None:
        self._results = list(results)
        self.polls = 0

    def get_user_operation_receipt(self, user_op_hash: str) -> UserOperationReceipt | None:
        self.polls += 1
        result = self._results.pop(0) if len(self._results) > 1 else self._results[0]
        if isinstance(result, Exception):
            raise result
        return result


class RecordingHooks:
    def __init__(self) -> None:
        self.confirmed: list[str] = []
        self.reverted: list[str] = []

    def hooks(self) -> Hooks:
        return Hooks(
            transaction_confirmed=self.confirmed.append,
            transaction_reverted=self.reverted.append,
        )


def _op(init_code: str = "0x") -> UserOperation:
    return UserOperation(
        sender=SENDER,
        nonce=0,
        init_code=init_code,
        call_data="0x",
        call_gas_limit=1,
        verification_gas_limit=1,
        pre_verification_gas=1,
        max_fee_per_gas=1,
        max_priority_fee_per_gas=1,
    )


def _receipt(success: bool = True, reason: str | None = None) -> UserOperationReceipt:
    return UserOperationReceipt(
        user_op_hash="0xop", success=success, reason=reason, transaction_hash="0xtx", block_number=9
    )


def _response(
    bundler: ScriptedBundler,
    *,
    hooks: Hooks | None = None,
    op: UserOperation | None = None,
    connection: Any = None,
) -> UserOpTransactionResponse:
    return UserOpTransactionResponse(
        "0xop",
        op or _op(),
        cast(HttpRpcClient, bundler),
        hooks=hooks,
        connection=cast("ChainConnection | None", connection),
        receipt_timeout=5.0,
        poll_interval=0.0,
    )


def test_hash_is_available_before_wait() -> None:
    response = _response(ScriptedBundler(None))

    assert response.hash == "0xop"
    assert response.from_address == SENDER
    assert response.transaction_hash is None
    assert response.status == ResponseStatus.PENDING


def test_wait_polls_until_confirmed() -> None:
    recorder = RecordingHooks()
    bundler = ScriptedBundler(None, None, _receipt())
    response = _response(bundler, hooks=recorder.hooks())

    receipt = response.wait()

    assert receipt is not None
    assert receipt.transaction_hash == "0xtx"
    assert bundler.polls == 3
    assert response.transaction_hash == "0xtx"
    assert response.status == ResponseStatus.CONFIRMED
    assert recorder.confirmed == ["0xtx"]
    assert recorder.reverted == []


def test_resolved_receipt_is_cached() -> None:
    recorder = RecordingHooks()
    bundler = ScriptedBundler(_receipt())
    response = _response(bundler, hooks=recorder.hooks())

    first = response.wait()
    second = response.wait()

    assert first is second
    assert bundler.polls == 1
    assert recorder.confirmed == ["0xtx"]


def test_reverted_operation_raises_and_notifies() -> None:
    recorder = RecordingHooks()
    response = _response(ScriptedBundler(_receipt(success=False, reason="0xdead")), hooks=recorder.hooks())

    with pytest.raises(UserOperationRevertedError) as excinfo:
        response.wait()

    assert excinfo.value.transaction_hash == "0xtx"
    assert excinfo.value.reason == "0xdead"
    assert response.status == ResponseStatus.REVERTED
    assert recorder.reverted == ["0xtx"]
    assert recorder.confirmed == []


def test_timeout_leaves_handle_pending() -> None:
    response = _response(ScriptedBundler(None))

    with pytest.raises(ReceiptTimeoutError) as excinfo:
        response.wait(timeout=0)

    assert excinfo.value.user_op_hash == "0xop"
    assert response.status == ResponseStatus.PENDING
    assert response.receipt is None


def test_cancel_event_stops_wait() -> None:
    bundler = ScriptedBundler(None)
    response = _response(bundler)
    cancel = threading.Event()
    cancel.set()

    assert response.wait(cancel_event=cancel) is None
    assert response.status == ResponseStatus.CANCELLED
    assert bundler.polls == 0


def test_cancel_from_another_thread() -> None:
    bundler = ScriptedBundler(None)
    response = _response(bundler)
    cancel = threading.Event()
    timer = threading.Timer(0.05, cancel.set)
    timer.start()

    try:
        result = response.wait(timeout=5.0, poll_interval=0.01, cancel_event=cancel)
    finally:
        timer.cancel()

    assert result is None
    assert response.status == ResponseStatus.CANCELLED


def test_poll_errors_are_retried() -> None:
    bundler = ScriptedBundler(TransportError("flaky"), _receipt())
    response = _response(bundler)

    assert response.wait() is not None
    assert bundler.polls == 2


def test_failing_hook_does_not_break_wait() -> None:
    def explode(_: str) -> None:
        raise RuntimeError("hook failure")

    response = _response(ScriptedBundler(_receipt()), hooks=Hooks(transaction_confirmed=explode))

    assert response.wait() is not None
    assert response.status == ResponseStatus.CONFIRMED


def test_deployment_is_verified_for_init_code() -> None:
    connection = SimpleNamespace(get_code=lambda address: b"")
    response = _response(ScriptedBundler(_receipt()), op=_op(init_code="0x" + "22" * 24), connection=connection)

    with pytest.raises(AASignerError):
        response.wait()


def test_failed_deployment_check_is_sticky() -> None:
    recorder = RecordingHooks()
    bundler = ScriptedBundler(_receipt())
    connection = SimpleNamespace(get_code=lambda address: b"")
    response = _response(
        bundler, hooks=recorder.hooks(), op=_op(init_code="0x" + "22" * 24), connection=connection
    )

    with pytest.raises(AASignerError) as first:
        response.wait()
    with pytest.raises(AASignerError) as second:
        response.wait()

    assert second.value is first.value
    assert response.status == ResponseStatus.FAILED
    assert bundler.polls == 1
    assert recorder.confirmed == []


def test_deployed_account_passes_verification() -> None:
    connection = SimpleNamespace(get_code=lambda address: b"\x60\x80")
    response = _response(ScriptedBundler(_receipt()), op=_op(init_code="0x" + "22" * 24), connection=connection)

    assert response.wait() is not None
