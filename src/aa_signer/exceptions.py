"""Exception hierarchy for the ERC-4337 signer."""

from typing import Any


class AASignerError(Exception):
    """Base exception for all account-abstraction signer errors."""

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class InvalidIntentError(AASignerError):
    """Raised when a transaction intent is malformed."""

    def __init__(
        self,
        message: str,
        field: str | None = None,
        value: Any | None = None,
        details: dict | None = None,
    ):
        super().__init__(message, details)
        self.field = field
        self.value = value


class InvalidUserOperationError(AASignerError):
    """Raised when a UserOperation still has unresolved fields."""

    def __init__(self, message: str, field: str | None = None, details: dict | None = None):
        super().__init__(message, details)
        self.field = field


class GasChecksFailedError(AASignerError):
    """Raised when the paymaster declines to sponsor an operation."""

    pass


class BundlerRejectedError(AASignerError):
    """Raised when the bundler refused to include an operation in a batch."""

    def __init__(
        self,
        message: str,
        reason: str | None = None,
        paymaster: str | None = None,
        details: dict | None = None,
    ):
        super().__init__(message, details)
        self.reason = reason
        self.paymaster = paymaster


class UnsupportedOperationError(AASignerError):
    """Raised when the signer is asked for something it cannot do."""

    def __init__(self, operation: str, message: str | None = None):
        super().__init__(message or f"Operation '{operation}' is not supported")
        self.operation = operation


class TransportError(AASignerError):
    """Raised when a bundler, paymaster or RPC request fails."""

    def __init__(
        self,
        message: str,
        endpoint: str | None = None,
        status_code: int | None = None,
        body: str | None = None,
        details: dict | None = None,
    ):
        super().__init__(message, details)
        self.endpoint = endpoint
        self.status_code = status_code
        self.body = body


class ReceiptTimeoutError(AASignerError):
    """Raised when no receipt shows up before the caller's deadline."""

    def __init__(self, user_op_hash: str, timeout: float):
        super().__init__(
            f"UserOperation {user_op_hash} was not included within {timeout:.0f} seconds"
        )
        self.user_op_hash = user_op_hash
        self.timeout = timeout


class UserOperationRevertedError(AASignerError):
    """Raised when an included operation reverted on-chain."""

    def __init__(
        self,
        user_op_hash: str,
        transaction_hash: str | None = None,
        reason: str | None = None,
    ):
        message = f"UserOperation {user_op_hash} reverted"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)
        self.user_op_hash = user_op_hash
        self.transaction_hash = transaction_hash
        self.reason = reason
