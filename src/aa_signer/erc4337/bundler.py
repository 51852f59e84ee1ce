"""JSON-RPC client for ERC-4337 bundlers."""

from __future__ import annotations

import itertools
import logging
from typing import Any

import requests

from ..constants import DEFAULT_REQUEST_TIMEOUT
from ..exceptions import TransportError
from ..types import UserOperation, UserOperationReceipt

logger = logging.getLogger(__name__)


class HttpRpcClient:
    """Submit UserOperations to a bundler and query their receipts."""

    def __init__(
        self,
        bundler_url: str,
        entry_point_address: str,
        chain_id: int,
        *,
        session: requests.Session | None = None,
        request_timeout: float = DEFAULT_REQUEST_TIMEOUT,
    ) -> None:
        self.bundler_url = bundler_url
        self.entry_point_address = entry_point_address
        self.chain_id = chain_id
        self._session = session or requests.Session()
        self._request_timeout = request_timeout
        self._ids = itertools.count(1)
        self._chain_validated = False

    # ------------------------------------------------------------------
    # Bundler methods
    # ------------------------------------------------------------------
    def validate_chain_id(self) -> None:
        """Ensure the bundler serves the configured chain."""
        if self._chain_validated:
            return

        raw = self._rpc("eth_chainId", [])
        bundler_chain = int(raw, 16) if isinstance(raw, str) else int(raw)
        if bundler_chain != self.chain_id:
            raise TransportError(
                f"Bundler {self.bundler_url} is on chain {bundler_chain}, "
                f"expected {self.chain_id}",
                endpoint=self.bundler_url,
            )
        self._chain_validated = True

    def supported_entry_points(self) -> list[str]:
        result = self._rpc("eth_supportedEntryPoints", [])
        return list(result or [])

    def send_user_op_to_bundler(self, op: UserOperation) -> str:
        """Submit a signed operation; returns the bundler-assigned operation hash."""
        self.validate_chain_id()
        hexified = op.to_rpc_dict()
        logger.debug("Sending UserOperation to bundler: %s", hexified)

        result = self._rpc("eth_sendUserOperation", [hexified, self.entry_point_address])
        if not isinstance(result, str):
            raise TransportError(
                "Invalid bundler response for eth_sendUserOperation",
                endpoint=self.bundler_url,
                details={"result": result},
            )

        logger.info("UserOperation accepted by bundler hash=%s", result)
        return result

    def estimate_user_op_gas(self, op: UserOperation) -> dict[str, Any]:
        self.validate_chain_id()
        result = self._rpc(
            "eth_estimateUserOperationGas", [op.to_rpc_dict(), self.entry_point_address]
        )
        if not isinstance(result, dict):
            raise TransportError(
                "Invalid bundler response for eth_estimateUserOperationGas",
                endpoint=self.bundler_url,
                details={"result": result},
            )
        return result

    def get_user_operation_receipt(self, user_op_hash: str) -> UserOperationReceipt | None:
        """Return the receipt, or ``None`` while the operation is still pending."""
        result = self._rpc("eth_getUserOperationReceipt", [user_op_hash])
        if not result:
            return None
        if not isinstance(result, dict):
            raise TransportError(
                "Invalid bundler response for eth_getUserOperationReceipt",
                endpoint=self.bundler_url,
                details={"result": result},
            )
        return UserOperationReceipt.from_rpc(user_op_hash, result)

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------
    def _rpc(self, method: str, params: list[Any]) -> Any:
        payload = {"jsonrpc": "2.0", "id": next(self._ids), "method": method, "params": params}

        try:
            response = self._session.post(
                self.bundler_url, json=payload, timeout=self._request_timeout
            )
        except requests.RequestException as exc:
            raise TransportError(
                f"Bundler request {method} failed",
                endpoint=self.bundler_url,
                details={"error": str(exc)},
            ) from exc

        body = response.text
        if not (200 <= response.status_code < 300):
            raise TransportError(
                f"Bundler returned HTTP {response.status_code} for {method}",
                endpoint=self.bundler_url,
                status_code=response.status_code,
                body=body,
            )

        try:
            data = response.json()
        except ValueError as exc:
            raise TransportError(
                f"Bundler returned a non-JSON response for {method}",
                endpoint=self.bundler_url,
                status_code=response.status_code,
                body=body,
            ) from exc

        if isinstance(data, dict) and data.get("error"):
            error = data["error"]
            message = error.get("message") if isinstance(error, dict) else str(error)
            logger.warning("Bundler RPC error (%s): %s", method, message)
            raise TransportError(
                f"Bundler RPC error ({method}): {message}",
                endpoint=self.bundler_url,
                status_code=response.status_code,
                body=body,
                details={"error": error},
            )

        return data.get("result") if isinstance(data, dict) else None
