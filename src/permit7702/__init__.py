"""
permit7702

Send ERC-4337 user operations from an EIP-7702 Simple7702 smart account
through a bundler, with gas paid in USDC via an EIP-2612 permit paymaster.
"""

from .accounts import Simple7702SmartAccount
from .adapters.evm import PublicClient, sign_permit, build_eip2612_permit
from .clients import BundlerClient
from .config import Settings
from .paymaster import PermitPaymaster, check_paymaster
from .user_operation import Call, UserOperation, get_user_operation_hash

__version__ = "0.1.0"

__all__ = [
    "Simple7702SmartAccount",
    "PublicClient",
    "sign_permit",
    "build_eip2612_permit",
    "BundlerClient",
    "Settings",
    "PermitPaymaster",
    "check_paymaster",
    "Call",
    "UserOperation",
    "get_user_operation_hash",
]
