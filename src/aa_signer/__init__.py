"""ERC-4337 smart-account signer.

Turns ordinary transactions into signed UserOperations, optionally
sponsored by a paymaster, relays them through a bundler and exposes the
result as a familiar transaction response.
"""

from .base import AccountCapability, PaymasterAPI
from .client import as_aa_signer, get_signer, is_aa_signer
from .constants import ENTRYPOINT_ADDRESS
from .erc4337 import (
    AASigner,
    ChainConnection,
    ClientConfig,
    Hooks,
    HttpRpcClient,
    KernelAccount,
    KernelAccountParams,
    UserOpTransactionResponse,
    VerifyingPaymasterAPI,
    unwrap_error,
)
from .exceptions import (
    AASignerError,
    BundlerRejectedError,
    GasChecksFailedError,
    InvalidIntentError,
    InvalidUserOperationError,
    ReceiptTimeoutError,
    TransportError,
    UnsupportedOperationError,
    UserOperationRevertedError,
)
from .types import (
    ResponseStatus,
    TransactionInfo,
    TransactionIntent,
    UserOperation,
    UserOperationReceipt,
)
from .utils import calc_pre_verification_gas, get_user_op_hash

__version__ = "0.1.0"

__all__ = [
    # Signer and wiring
    "AASigner",
    "get_signer",
    "is_aa_signer",
    "as_aa_signer",
    "ClientConfig",
    "Hooks",
    # Collaborators
    "AccountCapability",
    "PaymasterAPI",
    "KernelAccount",
    "KernelAccountParams",
    "VerifyingPaymasterAPI",
    "HttpRpcClient",
    "ChainConnection",
    "UserOpTransactionResponse",
    # Types
    "TransactionIntent",
    "TransactionInfo",
    "UserOperation",
    "UserOperationReceipt",
    "ResponseStatus",
    "ENTRYPOINT_ADDRESS",
    # Exceptions
    "AASignerError",
    "InvalidIntentError",
    "InvalidUserOperationError",
    "GasChecksFailedError",
    "BundlerRejectedError",
    "UnsupportedOperationError",
    "TransportError",
    "ReceiptTimeoutError",
    "UserOperationRevertedError",
    # Utility functions
    "get_user_op_hash",
    "calc_pre_verification_gas",
    "unwrap_error",
]
