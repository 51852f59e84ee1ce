"""Chain RPC access used by account implementations."""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from typing import Any

from eth_abi import decode as abi_decode
from eth_abi import encode as abi_encode
from web3 import HTTPProvider, Web3

from ..constants import DEFAULT_REQUEST_TIMEOUT
from ..exceptions import TransportError
from ..utils import function_selector

logger = logging.getLogger(__name__)


class ChainConnection:
    """Manage the Web3 provider and the handful of calls accounts need."""

    def __init__(self, rpc_url: str, *, request_timeout: float = DEFAULT_REQUEST_TIMEOUT):
        self.rpc_url = rpc_url
        self._request_timeout = request_timeout
        self._provider: HTTPProvider | None = None
        self._web3: Web3 | None = None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    def connect(self) -> None:
        provider = HTTPProvider(self.rpc_url, request_kwargs={"timeout": self._request_timeout})
        web3 = Web3(provider)
        if not web3.is_connected():
            raise TransportError("Unable to connect to chain RPC", endpoint=self.rpc_url)

        self._provider = provider
        self._web3 = web3
        logger.info("Connected to chain RPC at %s", self.rpc_url)

    def disconnect(self) -> None:
        self._provider = None
        self._web3 = None

    def is_connected(self) -> bool:
        return self._web3 is not None

    def ensure_connected(self) -> None:
        if not self.is_connected():
            self.connect()

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------
    @property
    def web3(self) -> Web3:
        self.ensure_connected()
        if self._web3 is None:  # pragma: no cover - connect() raises first
            raise TransportError("Chain RPC provider not connected", endpoint=self.rpc_url)
        return self._web3

    # ------------------------------------------------------------------
    # Calls
    # ------------------------------------------------------------------
    def call_function(
        self,
        address: str,
        signature: str,
        input_types: Sequence[str],
        args: Sequence[Any],
        output_types: Sequence[str],
    ) -> tuple[Any, ...]:
        """Run a read-only ``eth_call`` and decode its result."""
        call_data = function_selector(signature) + abi_encode(list(input_types), list(args))
        destination = Web3.to_checksum_address(address)

        try:
            result = self.web3.eth.call({"to": destination, "data": Web3.to_hex(call_data)})
        except Exception as exc:
            raise TransportError(
                f"eth_call {signature} failed",
                endpoint=self.rpc_url,
                details={"to": destination, "error": str(exc)},
            ) from exc

        if not output_types:
            return tuple()

        try:
            decoded = abi_decode(list(output_types), bytes(result))
        except Exception as exc:
            raise TransportError(
                f"Failed to decode {signature} response",
                endpoint=self.rpc_url,
                details={"to": destination, "error": str(exc)},
            ) from exc

        return tuple(decoded)

    def estimate_gas(self, transaction: Mapping[str, Any]) -> int:
        try:
            return int(self.web3.eth.estimate_gas(dict(transaction)))  # type: ignore[arg-type]
        except Exception as exc:
            raise TransportError(
                "eth_estimateGas failed",
                endpoint=self.rpc_url,
                details={"transaction": dict(transaction), "error": str(exc)},
            ) from exc

    def get_code(self, address: str) -> bytes:
        try:
            return bytes(self.web3.eth.get_code(Web3.to_checksum_address(address)))
        except Exception as exc:
            raise TransportError(
                "eth_getCode failed",
                endpoint=self.rpc_url,
                details={"address": address, "error": str(exc)},
            ) from exc

    def fee_data(self) -> tuple[int, int]:
        """Return ``(max_fee_per_gas, max_priority_fee_per_gas)`` from the latest block."""
        web3 = self.web3
        try:
            priority_fee = int(web3.eth.max_priority_fee)
            block = web3.eth.get_block("latest")
        except Exception as exc:
            raise TransportError(
                "Failed to fetch fee data", endpoint=self.rpc_url, details={"error": str(exc)}
            ) from exc

        base_fee = block.get("baseFeePerGas")
        if base_fee is None:
            gas_price = int(web3.eth.gas_price)
            return gas_price, gas_price
        return int(base_fee) * 2 + priority_fee, priority_fee
