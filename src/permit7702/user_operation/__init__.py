from .models import (
    Call,
    Eip7702Authorization,
    UserOperation,
    UserOperationGasEstimate,
    UserOperationReceipt,
    encode_function_call,
)
from .hashing import get_user_operation_hash, build_domain_separator

__all__ = [
    "Call",
    "Eip7702Authorization",
    "UserOperation",
    "UserOperationGasEstimate",
    "UserOperationReceipt",
    "encode_function_call",
    "get_user_operation_hash",
    "build_domain_separator",
]
