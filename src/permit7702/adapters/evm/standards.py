"""
Typed structures of the token and signature standards the permit flow
touches: EIP-712 domains, EIP-2612 permits, ERC-1271 and ERC-6492.
"""

from dataclasses import asdict, dataclass
from typing import Any, Dict, List, Optional


EIP712_DOMAIN_FIELDS: List[Dict[str, str]] = [
    {"name": "name", "type": "string"},
    {"name": "version", "type": "string"},
    {"name": "chainId", "type": "uint256"},
    {"name": "verifyingContract", "type": "address"},
]

PERMIT_FIELDS: List[Dict[str, str]] = [
    {"name": "owner", "type": "address"},
    {"name": "spender", "type": "address"},
    {"name": "value", "type": "uint256"},
    {"name": "nonce", "type": "uint256"},
    {"name": "deadline", "type": "uint256"},
]


@dataclass(frozen=True)
class EIP712Domain:
    """
    Domain of a permit. Must match the token's own ``DOMAIN_SEPARATOR``
    or the permit is rejected on-chain.
    """

    name: str
    version: str
    chainId: int
    verifyingContract: str

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class PermitMessage:
    """EIP-2612 ``Permit(owner, spender, value, nonce, deadline)``."""

    owner: str
    spender: str
    value: int
    nonce: int
    deadline: int

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class EIP2612TypedData:
    """
    A signable EIP-2612 permit.

    ``to_dict()`` gives the ``{types, primaryType, domain, message}``
    layout accepted by ``eth_account`` (``full_message=``) and by
    ``eth_signTypedData_v4``.
    """

    domain: EIP712Domain
    message: PermitMessage

    def to_dict(self) -> Dict[str, Any]:
        return {
            "types": {"EIP712Domain": EIP712_DOMAIN_FIELDS, "Permit": PERMIT_FIELDS},
            "primaryType": "Permit",
            "domain": self.domain.to_dict(),
            "message": self.message.to_dict(),
        }


@dataclass(frozen=True)
class ERC1271ABI:
    """``isValidSignature(bytes32,bytes) -> bytes4`` for ``web3.eth.contract``."""

    def to_list(self) -> List[Dict[str, Any]]:
        return [
            {
                "type": "function",
                "name": "isValidSignature",
                "stateMutability": "view",
                "inputs": [
                    {"name": "hash", "type": "bytes32"},
                    {"name": "signature", "type": "bytes"},
                ],
                "outputs": [{"name": "magicValue", "type": "bytes4"}],
            }
        ]


@dataclass(frozen=True)
class ERC6492Signature:
    """
    Decomposition of a possibly ERC-6492 wrapped signature.

    Smart accounts that are not yet deployed wrap their signature as
    ``abi.encode(factory, factoryCalldata, innerSignature) ++ magicSuffix``.
    For plain signatures ``address`` and ``data`` are ``None`` and
    ``signature`` is the input unchanged.
    """

    signature: bytes
    address: Optional[str] = None
    data: Optional[bytes] = None

    @property
    def is_wrapped(self) -> bool:
        return self.address is not None
