"""Entry points wiring an owner key to a smart-account signer."""

from __future__ import annotations

import logging
from typing import Any, cast

import requests
from eth_account import Account
from eth_account.signers.local import LocalAccount
from web3 import Web3

from .base import AccountCapability
from .constants import (
    DEFAULT_RECEIPT_POLL_INTERVAL,
    DEFAULT_RECEIPT_TIMEOUT,
    DEFAULT_REQUEST_TIMEOUT,
    ENTRYPOINT_ADDRESS,
)
from .erc4337.accounts import ACCOUNT_IMPLEMENTATIONS, KernelAccountParams
from .erc4337.bundler import HttpRpcClient
from .erc4337.config import ClientConfig, Hooks
from .erc4337.connections import ChainConnection
from .erc4337.paymaster import VerifyingPaymasterAPI
from .erc4337.signer import AASigner
from .exceptions import InvalidIntentError, UnsupportedOperationError

logger = logging.getLogger(__name__)


def get_signer(
    project_id: str,
    owner: LocalAccount | str,
    *,
    chain_id: int,
    rpc_provider_url: str,
    bundler_url: str,
    factory_address: str | None = None,
    paymaster_url: str | None = None,
    token_address: str | None = None,
    hooks: Hooks | None = None,
    address: str | None = None,
    index: int = 0,
    implementation: str | AccountCapability = "kernel",
    entry_point_address: str = ENTRYPOINT_ADDRESS,
    request_timeout: float = DEFAULT_REQUEST_TIMEOUT,
    receipt_timeout: float = DEFAULT_RECEIPT_TIMEOUT,
    receipt_poll_interval: float = DEFAULT_RECEIPT_POLL_INTERVAL,
) -> AASigner:
    """Build an ``AASigner`` for ``owner``'s smart account.

    ``owner`` may be a ``LocalAccount`` or a hex private key. A paymaster is
    attached only when ``paymaster_url`` is given.
    """
    signer = owner if isinstance(owner, LocalAccount) else cast(LocalAccount, Account.from_key(owner))
    entry_point = Web3.to_checksum_address(entry_point_address)
    session = requests.Session()

    paymaster = None
    if paymaster_url:
        paymaster = VerifyingPaymasterAPI(
            project_id,
            paymaster_url,
            chain_id,
            entry_point,
            token_address,
            session=session,
            request_timeout=request_timeout,
        )

    config = ClientConfig(
        project_id=project_id,
        chain_id=chain_id,
        bundler_url=bundler_url,
        entry_point_address=entry_point,
        implementation=implementation,
        wallet_address=address,
        index=index,
        paymaster=paymaster,
        hooks=hooks or Hooks(),
        request_timeout=request_timeout,
        receipt_timeout=receipt_timeout,
        receipt_poll_interval=receipt_poll_interval,
    )

    connection = ChainConnection(rpc_provider_url, request_timeout=request_timeout)
    rpc_client = HttpRpcClient(
        bundler_url,
        entry_point,
        chain_id,
        session=session,
        request_timeout=request_timeout,
    )
    account = _build_account(config, signer, connection, factory_address)

    logger.info(
        "Created smart-account signer for owner=%s chain=%s implementation=%s",
        signer.address,
        chain_id,
        type(account).__name__,
    )
    return AASigner(config, signer, rpc_client, account, connection=connection)


def _build_account(
    config: ClientConfig,
    owner: LocalAccount,
    connection: ChainConnection,
    factory_address: str | None,
) -> AccountCapability:
    if isinstance(config.implementation, AccountCapability):
        return config.implementation

    account_cls = ACCOUNT_IMPLEMENTATIONS.get(config.implementation)
    if account_cls is None:
        raise UnsupportedOperationError(
            config.implementation,
            f"Unknown account implementation '{config.implementation}'",
        )
    if factory_address is None:
        raise InvalidIntentError(
            "factory_address is required to derive the account", field="factory_address"
        )

    params = KernelAccountParams(
        owner=owner,
        connection=connection,
        factory_address=Web3.to_checksum_address(factory_address),
        chain_id=config.chain_id,
        entry_point_address=str(config.entry_point_address),
        index=config.index,
        account_address=config.wallet_address,
    )
    return account_cls(params)


def is_aa_signer(signer: Any) -> bool:
    return isinstance(signer, AASigner)


def as_aa_signer(signer: Any) -> AASigner:
    """Return ``signer`` typed as ``AASigner`` or raise."""
    if not isinstance(signer, AASigner):
        raise UnsupportedOperationError("as_aa_signer", "Not an AASigner")
    return signer
