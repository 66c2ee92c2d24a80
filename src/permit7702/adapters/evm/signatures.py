"""
EVM Signature Helpers

Local helpers for handling EIP-712 signatures produced by smart accounts:

parse_erc6492_signature
    Split an ERC-6492 wrapped signature into factory address, factory
    calldata and the canonical inner signature.  Plain signatures are
    returned unchanged.

serialize_erc6492_signature
    Build the wrapped form (inverse of ``parse_erc6492_signature``).

typed_data_hash / recover_typed_data_address
    EIP-712 digest and ECDSA signer recovery for a typed-data dict.

All operations are performed in-process using ``eth_account`` and
``eth_abi``; no RPC calls are made.
"""

from typing import Any, Dict, Optional, Union

from eth_abi import decode, encode
from eth_account import Account
from eth_account.messages import encode_typed_data
from eth_keys.exceptions import BadSignature, ValidationError
from eth_utils import keccak, to_checksum_address

from .constants import ERC6492_MAGIC_SUFFIX
from .standards import ERC6492Signature
from ...utils import hex_to_bytes

SignatureLike = Union[str, bytes]


def to_signature_bytes(signature: SignatureLike) -> bytes:
    """Normalise a hex string or bytes-like signature to ``bytes``."""
    return hex_to_bytes(signature)


def is_erc6492_signature(signature: SignatureLike) -> bool:
    sig = to_signature_bytes(signature)
    return len(sig) > len(ERC6492_MAGIC_SUFFIX) and sig.endswith(ERC6492_MAGIC_SUFFIX)


def parse_erc6492_signature(signature: SignatureLike) -> ERC6492Signature:
    """
    Unwrap an ERC-6492 signature into its components.

    A wrapped signature has the layout
    ``abi.encode(address factory, bytes factoryCalldata, bytes signature) ++ 0x6492…6492``.
    Anything without the magic suffix is treated as already canonical.

    Args:
        signature: Hex string or bytes, wrapped or not.

    Returns:
        ``ERC6492Signature``; ``.signature`` is always the canonical bytes.

    Example::

        parsed = parse_erc6492_signature(wrapped)
        parsed.address    # factory address
        parsed.signature  # 65-byte ECDSA signature
    """
    sig = to_signature_bytes(signature)
    if not is_erc6492_signature(sig):
        return ERC6492Signature(signature=sig)

    factory, factory_data, inner = decode(
        ["address", "bytes", "bytes"], sig[: -len(ERC6492_MAGIC_SUFFIX)]
    )
    return ERC6492Signature(
        address=to_checksum_address(factory),
        data=bytes(factory_data),
        signature=bytes(inner),
    )


def serialize_erc6492_signature(
    *, address: str, data: SignatureLike, signature: SignatureLike
) -> bytes:
    """
    Wrap ``signature`` with factory deployment info per ERC-6492.
    """
    return (
        encode(
            ["address", "bytes", "bytes"],
            [to_checksum_address(address), hex_to_bytes(data), to_signature_bytes(signature)],
        )
        + ERC6492_MAGIC_SUFFIX
    )


def typed_data_hash(typed_data: Dict[str, Any]) -> bytes:
    """
    Compute the EIP-712 digest (``keccak(0x1901 ‖ domainSeparator ‖ structHash)``)
    of a ``{types, primaryType, domain, message}`` dict.
    """
    signable = encode_typed_data(full_message=typed_data)
    return keccak(b"\x19" + signable.version + signable.header + signable.body)


def recover_typed_data_address(
    typed_data: Dict[str, Any], signature: SignatureLike
) -> Optional[str]:
    """
    Recover the EOA that produced ``signature`` over ``typed_data``.

    Returns:
        Checksum address, or ``None`` when the signature is not a
        recoverable 65-byte ECDSA signature.
    """
    sig = to_signature_bytes(signature)
    if len(sig) != 65:
        return None
    signable = encode_typed_data(full_message=typed_data)
    try:
        return Account.recover_message(signable, signature=sig)
    except (BadSignature, ValidationError, ValueError):
        return None
