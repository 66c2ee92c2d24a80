from .client import PublicClient
from .permit import TypedDataSigner, build_eip2612_permit, sign_permit
from .signatures import (
    is_erc6492_signature,
    parse_erc6492_signature,
    serialize_erc6492_signature,
    recover_typed_data_address,
    typed_data_hash,
)
from .standards import (
    EIP712Domain,
    PermitMessage,
    EIP2612TypedData,
    ERC1271ABI,
    ERC6492Signature,
)
from .token import ReadableToken, ERC20PermitToken

__all__ = [
    "PublicClient",
    "TypedDataSigner",
    "build_eip2612_permit",
    "sign_permit",
    "is_erc6492_signature",
    "parse_erc6492_signature",
    "serialize_erc6492_signature",
    "recover_typed_data_address",
    "typed_data_hash",
    "EIP712Domain",
    "PermitMessage",
    "EIP2612TypedData",
    "ERC1271ABI",
    "ERC6492Signature",
    "ReadableToken",
    "ERC20PermitToken",
]
