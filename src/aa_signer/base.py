"""Interfaces the signer depends on."""

from abc import ABC, abstractmethod

from .constants import PAYMASTER_AND_DATA_PLACEHOLDER
from .types import TransactionIntent, UserOperation


class AccountCapability(ABC):
    """Encodes and signs UserOperations for one smart-account standard.

    The signer only talks to an account through this interface and never
    inspects which implementation it was given.
    """

    @property
    @abstractmethod
    def delegate_mode(self) -> bool:
        pass

    @abstractmethod
    def get_account_address(self) -> str:
        pass

    @abstractmethod
    def create_signed_user_op(
        self, intent: TransactionIntent, paymaster_placeholder: str | None = None
    ) -> UserOperation:
        """Build and sign an operation for ``intent``.

        ``paymaster_placeholder`` stands in for the ``paymasterAndData`` that
        will be merged later, so pre-verification gas covers its size.
        """
        pass

    @abstractmethod
    def sign_user_op(self, op: UserOperation) -> UserOperation:
        pass

    @abstractmethod
    def get_user_op_hash(self, op: UserOperation) -> bytes:
        pass

    @abstractmethod
    def delegate_copy(self) -> "AccountCapability":
        """Return an independent instance with ``delegate_mode`` enabled."""
        pass

    def release_nonce(self, nonce: int) -> None:
        """Give back a nonce reserved for an operation that was never submitted."""
        return None


class PaymasterAPI(ABC):
    """Asks a sponsor service to pay for a UserOperation."""

    @abstractmethod
    def get_paymaster_and_data(self, op: UserOperation) -> str | None:
        pass

    def placeholder_paymaster_and_data(self) -> str:
        """Return a value as long as the ``paymasterAndData`` this sponsor returns."""
        return PAYMASTER_AND_DATA_PLACEHOLDER
