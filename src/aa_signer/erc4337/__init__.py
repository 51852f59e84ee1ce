"""ERC-4337 pipeline: accounts, paymaster, bundler and the signer tying them together."""

from .accounts import ACCOUNT_IMPLEMENTATIONS, KernelAccount, KernelAccountParams
from .bundler import HttpRpcClient
from .config import ClientConfig, Hooks
from .connections import ChainConnection
from .errors import unwrap_error
from .paymaster import VerifyingPaymasterAPI
from .response import UserOpTransactionResponse
from .signer import AASigner

__all__ = [
    "ACCOUNT_IMPLEMENTATIONS",
    "AASigner",
    "ChainConnection",
    "ClientConfig",
    "Hooks",
    "HttpRpcClient",
    "KernelAccount",
    "KernelAccountParams",
    "UserOpTransactionResponse",
    "VerifyingPaymasterAPI",
    "unwrap_error",
]
