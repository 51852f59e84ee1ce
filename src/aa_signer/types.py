"""Type definitions and data models for the ERC-4337 signer."""

from collections.abc import Mapping
from dataclasses import dataclass, field, fields, replace
from enum import Enum
from typing import Any

from .exceptions import InvalidUserOperationError

EMPTY_BYTES = "0x"


class ResponseStatus(str, Enum):
    """Lifecycle states of a submitted UserOperation."""

    PENDING = "pending"
    CONFIRMED = "confirmed"
    REVERTED = "reverted"
    CANCELLED = "cancelled"
    FAILED = "failed"


class CallOperation(int, Enum):
    """Kernel execution modes."""

    CALL = 0
    DELEGATECALL = 1


@dataclass(frozen=True)
class TransactionIntent:
    """What the caller wants the smart account to do."""

    target: str | None = None
    data: str | None = None
    value: int | None = None
    gas_limit: int | None = None
    max_fee_per_gas: int | None = None
    max_priority_fee_per_gas: int | None = None
    gas_price: int | None = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "TransactionIntent":
        """Construct an intent from a web3-style transaction dictionary."""

        return cls(
            target=data.get("to") or data.get("target"),
            data=_optional_hex(data.get("data")),
            value=_optional_int(data.get("value")),
            gas_limit=_optional_int(data.get("gas") or data.get("gasLimit") or data.get("gas_limit")),
            max_fee_per_gas=_optional_int(_first(data, "maxFeePerGas", "max_fee_per_gas")),
            max_priority_fee_per_gas=_optional_int(
                _first(data, "maxPriorityFeePerGas", "max_priority_fee_per_gas")
            ),
            gas_price=_optional_int(_first(data, "gasPrice", "gas_price")),
        )


@dataclass(frozen=True)
class UserOperation:
    """ERC-4337 UserOperation in the EntryPoint v0.6 layout.

    Byte fields hold 0x-prefixed hex strings, numeric fields hold ints.
    """

    sender: str | None
    nonce: int | None
    init_code: str | None = EMPTY_BYTES
    call_data: str | None = EMPTY_BYTES
    call_gas_limit: int | None = None
    verification_gas_limit: int | None = None
    pre_verification_gas: int | None = None
    max_fee_per_gas: int | None = None
    max_priority_fee_per_gas: int | None = None
    paymaster_and_data: str | None = EMPTY_BYTES
    signature: str | None = EMPTY_BYTES

    def ensure_resolved(self) -> None:
        """Raise if any field is still missing."""

        for item in fields(self):
            if getattr(self, item.name) is None:
                raise InvalidUserOperationError(
                    f"UserOperation field '{item.name}' is unresolved", field=item.name
                )

    def with_paymaster_and_data(self, paymaster_and_data: str) -> "UserOperation":
        return replace(self, paymaster_and_data=paymaster_and_data)

    def with_signature(self, signature: str) -> "UserOperation":
        return replace(self, signature=signature)

    @property
    def sponsored(self) -> bool:
        return bool(self.paymaster_and_data) and self.paymaster_and_data != EMPTY_BYTES

    def to_rpc_dict(self) -> dict[str, str]:
        """Return the hexified JSON-RPC representation."""

        self.ensure_resolved()
        return {
            "sender": str(self.sender),
            "nonce": hex(int(self.nonce)),  # type: ignore[arg-type]
            "initCode": str(self.init_code),
            "callData": str(self.call_data),
            "callGasLimit": hex(int(self.call_gas_limit)),  # type: ignore[arg-type]
            "verificationGasLimit": hex(int(self.verification_gas_limit)),  # type: ignore[arg-type]
            "preVerificationGas": hex(int(self.pre_verification_gas)),  # type: ignore[arg-type]
            "maxFeePerGas": hex(int(self.max_fee_per_gas)),  # type: ignore[arg-type]
            "maxPriorityFeePerGas": hex(int(self.max_priority_fee_per_gas)),  # type: ignore[arg-type]
            "paymasterAndData": str(self.paymaster_and_data),
            "signature": str(self.signature),
        }

    @classmethod
    def from_rpc_dict(cls, data: Mapping[str, Any]) -> "UserOperation":
        return cls(
            sender=data.get("sender"),
            nonce=_optional_int(data.get("nonce")),
            init_code=_optional_hex(data.get("initCode")) or EMPTY_BYTES,
            call_data=_optional_hex(data.get("callData")) or EMPTY_BYTES,
            call_gas_limit=_optional_int(data.get("callGasLimit")),
            verification_gas_limit=_optional_int(data.get("verificationGasLimit")),
            pre_verification_gas=_optional_int(data.get("preVerificationGas")),
            max_fee_per_gas=_optional_int(data.get("maxFeePerGas")),
            max_priority_fee_per_gas=_optional_int(data.get("maxPriorityFeePerGas")),
            paymaster_and_data=_optional_hex(data.get("paymasterAndData")) or EMPTY_BYTES,
            signature=_optional_hex(data.get("signature")) or EMPTY_BYTES,
        )


@dataclass(frozen=True)
class TransactionInfo:
    """Payload handed to the ``transaction_started`` hook."""

    hash: str
    from_address: str
    to: str
    value: int = 0
    sponsored: bool = False


@dataclass
class UserOperationReceipt:
    """Parsed result of ``eth_getUserOperationReceipt``."""

    user_op_hash: str
    success: bool
    sender: str | None = None
    nonce: int | None = None
    actual_gas_cost: int | None = None
    actual_gas_used: int | None = None
    reason: str | None = None
    transaction_hash: str | None = None
    block_number: int | None = None
    logs: list[Any] = field(default_factory=list)
    raw: dict[str, Any] | None = None

    @classmethod
    def from_rpc(cls, user_op_hash: str, data: Mapping[str, Any]) -> "UserOperationReceipt":
        receipt = data.get("receipt") or {}
        success = data.get("success")
        if isinstance(success, str):
            success = success.lower() in ("true", "0x1", "1")

        return cls(
            user_op_hash=data.get("userOpHash") or user_op_hash,
            success=bool(success),
            sender=data.get("sender"),
            nonce=_optional_int(data.get("nonce")),
            actual_gas_cost=_optional_int(data.get("actualGasCost")),
            actual_gas_used=_optional_int(data.get("actualGasUsed")),
            reason=data.get("reason") or None,
            transaction_hash=receipt.get("transactionHash"),
            block_number=_optional_int(receipt.get("blockNumber")),
            logs=list(data.get("logs") or []),
            raw=dict(data),
        )


def _first(data: Mapping[str, Any], *keys: str) -> Any:
    for key in keys:
        if data.get(key) is not None:
            return data[key]
    return None


def _optional_int(value: Any) -> int | None:
    if value is None:
        return None
    if isinstance(value, str):
        return int(value, 16) if value.lower().startswith("0x") else int(value)
    return int(value)


def _optional_hex(value: Any) -> str | None:
    if value is None:
        return None
    if isinstance(value, bytes | bytearray):
        return "0x" + bytes(value).hex()
    return str(value)
