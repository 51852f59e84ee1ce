"""Verifying-paymaster sponsorship client."""

from __future__ import annotations

import logging
from typing import Any

import requests

from ..base import PaymasterAPI
from ..constants import DEFAULT_REQUEST_TIMEOUT
from ..exceptions import GasChecksFailedError, TransportError
from ..types import UserOperation

logger = logging.getLogger(__name__)


class VerifyingPaymasterAPI(PaymasterAPI):
    """Request ``paymasterAndData`` from a verifying-paymaster signing service."""

    def __init__(
        self,
        project_id: str,
        paymaster_url: str,
        chain_id: int,
        entry_point_address: str,
        token_address: str | None = None,
        *,
        session: requests.Session | None = None,
        request_timeout: float = DEFAULT_REQUEST_TIMEOUT,
    ) -> None:
        self.project_id = project_id
        self.paymaster_url = paymaster_url.rstrip("/")
        self.chain_id = chain_id
        self.entry_point_address = entry_point_address
        self.token_address = token_address
        self._session = session or requests.Session()
        self._request_timeout = request_timeout

    def get_paymaster_and_data(self, op: UserOperation) -> str:
        op.ensure_resolved()

        request: dict[str, Any] = {
            "projectId": self.project_id,
            "chainId": self.chain_id,
            "userOp": op.to_rpc_dict(),
            "entryPointAddress": self.entry_point_address,
        }
        if self.token_address is not None:
            request["tokenAddress"] = self.token_address

        url = f"{self.paymaster_url}/sign"
        logger.debug("Requesting sponsorship from %s for sender=%s", url, op.sender)

        try:
            response = self._session.post(url, json=request, timeout=self._request_timeout)
            response.raise_for_status()
            payload = response.json()
        except requests.RequestException as exc:
            raise TransportError(
                "Paymaster request failed",
                endpoint=url,
                status_code=getattr(getattr(exc, "response", None), "status_code", None),
                details={"error": str(exc)},
            ) from exc
        except ValueError as exc:
            raise TransportError(
                "Paymaster returned a non-JSON response",
                endpoint=url,
                details={"error": str(exc)},
            ) from exc

        paymaster_and_data = payload.get("paymasterAndData") if isinstance(payload, dict) else None
        if not paymaster_and_data or paymaster_and_data == "0x":
            raise GasChecksFailedError(
                "Transaction failed gas checks: paymaster declined to sponsor the operation",
                details={"sender": op.sender, "response": payload},
            )

        logger.info("UserOperation sponsored for sender=%s", op.sender)
        return paymaster_and_data
