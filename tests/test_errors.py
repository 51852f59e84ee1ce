"""Tests for bundler error normalization."""

import json

from aa_signer.erc4337.errors import parse_failed_op, unwrap_error
from aa_signer.exceptions import BundlerRejectedError, TransportError


def _transport_error(body: str | None) -> TransportError:
    return TransportError("Bundler RPC error", endpoint="https://bundler", body=body)


def _body(message: str) -> str:
    return json.dumps({"jsonrpc": "2.0", "id": 1, "error": {"code": -32500, "message": message}})


def test_failed_op_extracts_reason_and_paymaster() -> None:
    error = unwrap_error(_transport_error('{"error":{"message":"FailedOp(0,0xPM,reason-x)"}}'))

    assert isinstance(error, BundlerRejectedError)
    assert "reason-x" in str(error)
    assert "paymaster address: 0xPM" in str(error)
    assert error.reason == "reason-x"
    assert error.paymaster == "0xPM"


def test_failed_op_message_format() -> None:
    error = unwrap_error(_transport_error(_body("FailedOp(0, 0xPM, AA33 reverted)")))

    assert str(error) == (
        "The bundler has failed to include UserOperation in a batch: "
        "AA33 reverted (paymaster address: 0xPM)"
    )


def test_plain_message_has_no_paymaster() -> None:
    error = unwrap_error(_transport_error(_body("AA21 didn't pay prefund")))

    assert isinstance(error, BundlerRejectedError)
    assert error.reason == "AA21 didn't pay prefund"
    assert error.paymaster is None
    assert str(error).endswith("(paymaster address: )")


def test_failed_op_with_too_few_fields_keeps_raw_message() -> None:
    error = unwrap_error(_transport_error(_body("FailedOp(0,AA10 sender already constructed)")))

    assert isinstance(error, BundlerRejectedError)
    assert error.reason == "FailedOp(0,AA10 sender already constructed)"
    assert error.paymaster is None


def test_unparseable_body_passes_original_through() -> None:
    original = _transport_error("<html>502 Bad Gateway</html>")

    result = unwrap_error(original)

    assert result is original
    assert str(result) == "Bundler RPC error"


def test_error_without_body_passes_through() -> None:
    original = RuntimeError("connection reset")
    assert unwrap_error(original) is original

    no_body = _transport_error(None)
    assert unwrap_error(no_body) is no_body


def test_body_without_message_passes_through() -> None:
    original = _transport_error(json.dumps({"error": "boom"}))
    assert unwrap_error(original) is original

    original = _transport_error(json.dumps({"result": "0x1"}))
    assert unwrap_error(original) is original


def test_parse_failed_op_keeps_commas_in_reason() -> None:
    reason, paymaster = parse_failed_op("FailedOp(1,0xPM,AA31 paymaster deposit too low, retry)")
    assert reason == "AA31 paymaster deposit too low, retry"
    assert paymaster == "0xPM"
