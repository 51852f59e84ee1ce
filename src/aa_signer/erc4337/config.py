"""Configuration containers for the ERC-4337 signer."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field

from eth_typing import ChecksumAddress

from ..base import AccountCapability, PaymasterAPI
from ..constants import (
    DEFAULT_RECEIPT_POLL_INTERVAL,
    DEFAULT_RECEIPT_TIMEOUT,
    DEFAULT_REQUEST_TIMEOUT,
    ENTRYPOINT_ADDRESS,
)
from ..types import TransactionInfo


@dataclass(frozen=True)
class Hooks:
    """Callbacks invoked during the lifecycle of a transaction."""

    transaction_started: Callable[[TransactionInfo], None] | None = None
    transaction_confirmed: Callable[[str], None] | None = None
    transaction_reverted: Callable[[str], None] | None = None


@dataclass(frozen=True)
class ClientConfig:
    """Everything a signer needs to build and relay UserOperations."""

    project_id: str
    chain_id: int
    bundler_url: str
    entry_point_address: ChecksumAddress | str = ENTRYPOINT_ADDRESS
    # Registered implementation name or a ready-made account instance.
    implementation: str | AccountCapability = "kernel"
    wallet_address: str | None = None
    index: int = 0
    paymaster: PaymasterAPI | None = None
    hooks: Hooks = field(default_factory=Hooks)
    request_timeout: float = DEFAULT_REQUEST_TIMEOUT
    receipt_timeout: float = DEFAULT_RECEIPT_TIMEOUT
    receipt_poll_interval: float = DEFAULT_RECEIPT_POLL_INTERVAL
