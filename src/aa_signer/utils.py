"""Encoding and hashing helpers for UserOperations."""

from collections.abc import Sequence
from dataclasses import replace
from typing import Any

from eth_abi import encode as abi_encode
from hexbytes import HexBytes
from web3 import Web3

from .constants import (
    PRE_VERIFICATION_BUNDLE_SIZE,
    PRE_VERIFICATION_FIXED,
    PRE_VERIFICATION_NON_ZERO_BYTE,
    PRE_VERIFICATION_PER_USER_OP,
    PRE_VERIFICATION_PER_USER_OP_WORD,
    PRE_VERIFICATION_SIG_SIZE,
    PRE_VERIFICATION_ZERO_BYTE,
)
from .exceptions import InvalidUserOperationError
from .types import UserOperation

_USER_OP_TUPLE = "(address,uint256,bytes,bytes,uint256,uint256,uint256,uint256,uint256,bytes,bytes)"


def hex_to_bytes(value: str | bytes | None) -> bytes:
    """Decode a 0x-prefixed hex string, treating ``None`` and ``"0x"`` as empty."""
    if value is None:
        return b""
    if isinstance(value, bytes | bytearray):
        return bytes(value)
    if value in ("", "0x"):
        return b""
    try:
        return bytes(HexBytes(value))
    except (ValueError, TypeError) as exc:
        raise InvalidUserOperationError(f"Invalid hex value: {value!r}") from exc


def function_selector(signature: str) -> bytes:
    """Return the 4-byte selector for a canonical function signature."""
    return bytes(Web3.keccak(text=signature)[:4])


def encode_function_call(signature: str, arg_types: Sequence[str], args: Sequence[Any]) -> str:
    """ABI-encode a call, returning 0x-prefixed calldata."""
    encoded = function_selector(signature) + abi_encode(list(arg_types), list(args))
    return Web3.to_hex(encoded)


def pack_user_op(op: UserOperation) -> bytes:
    """Encode the signed-over portion of a UserOperation.

    Dynamic fields are replaced by their keccak digest and the signature is
    left out, matching ``UserOperationLib.pack`` in EntryPoint v0.6.
    """
    op.ensure_resolved()
    return abi_encode(
        [
            "address",
            "uint256",
            "bytes32",
            "bytes32",
            "uint256",
            "uint256",
            "uint256",
            "uint256",
            "uint256",
            "bytes32",
        ],
        [
            Web3.to_checksum_address(str(op.sender)),
            op.nonce,
            Web3.keccak(hex_to_bytes(op.init_code)),
            Web3.keccak(hex_to_bytes(op.call_data)),
            op.call_gas_limit,
            op.verification_gas_limit,
            op.pre_verification_gas,
            op.max_fee_per_gas,
            op.max_priority_fee_per_gas,
            Web3.keccak(hex_to_bytes(op.paymaster_and_data)),
        ],
    )


def get_user_op_hash(op: UserOperation, entry_point_address: str, chain_id: int) -> bytes:
    """Compute the operation hash the EntryPoint, paymaster and account all agree on."""
    inner = Web3.keccak(pack_user_op(op))
    return bytes(
        Web3.keccak(
            abi_encode(
                ["bytes32", "address", "uint256"],
                [inner, Web3.to_checksum_address(entry_point_address), chain_id],
            )
        )
    )


def calc_pre_verification_gas(op: UserOperation) -> int:
    """Estimate the calldata overhead the bundler charges for one operation."""
    probe = replace(
        op,
        pre_verification_gas=PRE_VERIFICATION_FIXED,
        signature=Web3.to_hex(b"\x01" * PRE_VERIFICATION_SIG_SIZE),
    )
    probe.ensure_resolved()
    encoded = abi_encode(
        [_USER_OP_TUPLE],
        [
            (
                Web3.to_checksum_address(str(probe.sender)),
                probe.nonce,
                hex_to_bytes(probe.init_code),
                hex_to_bytes(probe.call_data),
                probe.call_gas_limit,
                probe.verification_gas_limit,
                probe.pre_verification_gas,
                probe.max_fee_per_gas,
                probe.max_priority_fee_per_gas,
                hex_to_bytes(probe.paymaster_and_data),
                hex_to_bytes(probe.signature),
            )
        ],
    )
    # Drop the leading tuple offset and the trailing word, as the bundler does.
    packed = encoded[32:-32]
    length_in_words = (len(packed) + 31) // 32
    call_data_cost = sum(
        PRE_VERIFICATION_ZERO_BYTE if byte == 0 else PRE_VERIFICATION_NON_ZERO_BYTE
        for byte in packed
    )
    return round(
        call_data_cost
        + PRE_VERIFICATION_FIXED / PRE_VERIFICATION_BUNDLE_SIZE
        + PRE_VERIFICATION_PER_USER_OP
        + PRE_VERIFICATION_PER_USER_OP_WORD * length_in_words
    )

