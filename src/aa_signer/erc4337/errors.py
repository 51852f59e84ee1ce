"""Turn opaque bundler failures into readable errors."""

from __future__ import annotations

import json
import logging
import re

from ..exceptions import BundlerRejectedError

logger = logging.getLogger(__name__)

_FAILED_OP_PATTERN = re.compile(r"FailedOp\((.*)\)", re.DOTALL)

BUNDLER_REJECTION_PREFIX = "The bundler has failed to include UserOperation in a batch"


def parse_failed_op(message: str) -> tuple[str, str | None]:
    """Split a ``FailedOp(opIndex,paymaster,reason)`` message into (reason, paymaster)."""
    matched = _FAILED_OP_PATTERN.search(message)
    if matched is None:
        return message, None

    parts = matched.group(1).split(",")
    if len(parts) < 3:
        logger.debug("FailedOp message has %s fields, expected 3: %s", len(parts), message)
        return message, None

    # The reason may itself contain commas.
    reason = ",".join(parts[2:]).strip()
    return reason, parts[1].strip()


def unwrap_error(error: Exception) -> Exception:
    """Return a ``BundlerRejectedError`` for errors carrying a JSON-RPC body.

    Errors without a body, with an unparseable body or without an
    ``error.message`` field are returned unchanged.
    """
    body = getattr(error, "body", None)
    if not body:
        return error

    try:
        payload = json.loads(body)
        message = payload["error"]["message"]
    except (TypeError, ValueError, KeyError) as exc:
        logger.debug("Unable to parse bundler error body: %s", exc)
        return error

    if not isinstance(message, str):
        return error

    reason, paymaster = parse_failed_op(message)
    return BundlerRejectedError(
        f"{BUNDLER_REJECTION_PREFIX}: {reason} (paymaster address: {paymaster or ''})",
        reason=reason,
        paymaster=paymaster,
        details={"body": body},
    )
