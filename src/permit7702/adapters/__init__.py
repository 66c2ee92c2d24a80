from .evm import (
    PublicClient,
    ERC20PermitToken,
    build_eip2612_permit,
    sign_permit,
)

__all__ = [
    "PublicClient",
    "ERC20PermitToken",
    "build_eip2612_permit",
    "sign_permit",
]
