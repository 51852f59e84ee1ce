"""Constants shared by the ERC-4337 signer."""

# EntryPoint v0.6 singleton, same address on every supported chain.
ENTRYPOINT_ADDRESS = "0x5FF137D4b0FDCD49DcA30c7CF57E578a026d2789"

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"

DEFAULT_REQUEST_TIMEOUT = 10.0
DEFAULT_RECEIPT_TIMEOUT = 120.0
DEFAULT_RECEIPT_POLL_INTERVAL = 2.0

# Verification gas reserved for the account's validateUserOp.
DEFAULT_VERIFICATION_GAS = 100_000

# Inputs of the bundler's pre-verification gas overhead formula.
PRE_VERIFICATION_FIXED = 21_000
PRE_VERIFICATION_PER_USER_OP = 18_300
PRE_VERIFICATION_PER_USER_OP_WORD = 4
PRE_VERIFICATION_ZERO_BYTE = 4
PRE_VERIFICATION_NON_ZERO_BYTE = 16
PRE_VERIFICATION_BUNDLE_SIZE = 1
PRE_VERIFICATION_SIG_SIZE = 65

# Verifying paymaster v0.6 layout: address (20) + abi(validUntil, validAfter) (64) + signature (65).
VERIFYING_PAYMASTER_DATA_SIZE = 149
# Non-zero filler so calldata cost is never underestimated.
PAYMASTER_AND_DATA_PLACEHOLDER = "0x" + "01" * VERIFYING_PAYMASTER_DATA_SIZE
