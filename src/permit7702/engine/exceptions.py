"""
Exception and Error Definitions Module

Defines the exception hierarchy for permit signing, paymaster checks,
bundler interaction and configuration loading. Every exception raised by
this package inherits from ``Permit7702Error`` so callers can catch the
whole family in one place. Errors coming from web3.py or httpx (network
failures, reverted calls) are not wrapped and propagate as-is.

Exception Hierarchy:
    Permit7702Error (root)
    ├── ConfigurationError
    ├── PaymentSignatureError
    │   └── SignatureVerificationError
    │       └── InvalidSignature
    ├── PaymasterError
    │   └── PaymasterNotDeployedError
    ├── BlockchainInteractionError
    └── BundlerError
        └── UserOperationReceiptTimeoutError
"""

from typing import Any, Optional, Sequence, Union


class Permit7702Error(Exception):
    """
    Root exception class for all project-specific exceptions.
    """
    pass


class ConfigurationError(Permit7702Error):
    """
    Raised when configuration is missing or invalid.

    This includes scenarios such as:
    - Missing required environment variables
    - Malformed addresses or private keys
    - Unsupported chain id

    Attributes:
        missing: Names of the required settings that were absent.
    """

    def __init__(self, message: str, missing: Optional[Sequence[str]] = None):
        super().__init__(message)
        self.missing = list(missing or [])


class PaymentSignatureError(Permit7702Error):
    """
    Raised when signature generation or processing fails.
    """
    pass


class SignatureVerificationError(PaymentSignatureError):
    """
    Raised when a freshly produced signature does not verify.
    """
    pass


class InvalidSignature(SignatureVerificationError):
    """
    Raised when a permit signature does not verify against the signing
    account and the typed data it was produced for.

    Attributes:
        address: Account address the signature was expected to belong to.
        signature: The rejected signature (0x-prefixed hex).
    """

    def __init__(self, address: str, signature: Union[str, bytes]):
        if isinstance(signature, (bytes, bytearray)):
            signature = "0x" + bytes(signature).hex()
        self.address = address
        self.signature = signature
        super().__init__(f"Invalid permit signature for {address}: {signature}")


class PaymasterError(Permit7702Error):
    """
    Base exception for paymaster related failures.
    """
    pass


class PaymasterNotDeployedError(PaymasterError):
    """
    Raised when no contract code exists at the configured paymaster address.

    Attributes:
        address: The paymaster address that was checked.
    """

    def __init__(self, address: str):
        self.address = address
        super().__init__(f"Paymaster contract is not deployed at address: {address}")


class BlockchainInteractionError(Permit7702Error):
    """
    Raised when a node or bundler returns a payload this package cannot
    interpret, such as a receipt or gas estimate missing required fields.
    """
    pass


class BundlerError(Permit7702Error):
    """
    Raised when the bundler RPC returns an error.

    Attributes:
        code: JSON-RPC error code or HTTP status code.
        data: Raw ``error.data`` payload, when present.
        is_simulation_error: True when the bundler rejected the operation
            during validation/simulation (e.g. ``AA3x`` paymaster reverts).
    """

    def __init__(
        self,
        message: str,
        *,
        code: Optional[int] = None,
        data: Any = None,
        simulation: bool = False,
    ):
        super().__init__(message)
        self.code = code
        self.data = data
        self.is_simulation_error = simulation


class UserOperationReceiptTimeoutError(BundlerError):
    """
    Raised when no receipt shows up for a user operation within the
    polling timeout.

    Attributes:
        user_op_hash: Hash of the user operation that was awaited.
    """

    def __init__(self, user_op_hash: str, timeout: float):
        self.user_op_hash = user_op_hash
        super().__init__(
            f"Timed out after {timeout}s waiting for user operation receipt {user_op_hash}"
        )
