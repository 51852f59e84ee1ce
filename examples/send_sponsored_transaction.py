"""Sponsored smart-account transaction example.

This example demonstrates:
- Deriving a smart-account signer from an owner private key
- Sending a transaction as a paymaster-sponsored UserOperation
- Waiting for the bundler to include it
- Handling bundler rejections and sponsorship denials
"""

import logging
import os

from dotenv import load_dotenv

from aa_signer import (
    BundlerRejectedError,
    GasChecksFailedError,
    Hooks,
    ReceiptTimeoutError,
    get_signer,
)

load_dotenv()
logging.basicConfig(level=logging.INFO)


def example_sponsored_transaction():
    """Send a zero-value call from the smart account."""

    private_key = os.getenv("PRIVATE_KEY")
    if not private_key:
        raise ValueError("PRIVATE_KEY not found in environment variables")

    signer = get_signer(
        project_id=os.environ["PROJECT_ID"],
        owner=private_key,
        chain_id=int(os.getenv("CHAIN_ID", "11155111")),
        rpc_provider_url=os.environ["RPC_URL"],
        bundler_url=os.environ["BUNDLER_URL"],
        factory_address=os.environ["KERNEL_FACTORY_ADDRESS"],
        paymaster_url=os.getenv("PAYMASTER_URL"),
        hooks=Hooks(
            transaction_started=lambda tx: print(f"🚀 Started {tx.hash} (sponsored={tx.sponsored})"),
            transaction_confirmed=lambda tx_hash: print(f"✅ Confirmed in {tx_hash}"),
            transaction_reverted=lambda tx_hash: print(f"❌ Reverted in {tx_hash}"),
        ),
    )

    print(f"Smart account: {signer.get_address()}")

    try:
        response = signer.send_transaction(
            {
                "to": os.getenv("TARGET_ADDRESS", signer.get_address()),
                "data": "0x",
                "value": 0,
            }
        )
    except GasChecksFailedError as exc:
        print(f"❌ Paymaster declined sponsorship: {exc}")
        return
    except BundlerRejectedError as exc:
        print(f"❌ Bundler rejected the operation: {exc.reason}")
        print(f"   Paymaster: {exc.paymaster}")
        return

    print(f"   UserOperation hash: {response.hash}")

    try:
        receipt = response.wait(timeout=120)
    except ReceiptTimeoutError:
        print("⏳ Still pending after 120 seconds")
        return

    if receipt is not None:
        print(f"   Transaction hash: {receipt.transaction_hash}")
        print(f"   Gas cost: {receipt.actual_gas_cost}")


if __name__ == "__main__":
    example_sponsored_transaction()
