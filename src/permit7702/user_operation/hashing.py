"""
EntryPoint v0.8 user operation hashing.

From v0.8 on, the user operation hash is the EIP-712 digest of the
``PackedUserOperation`` struct under the domain
``("ERC4337", "1", chainId, entryPoint)``. For operations that carry the
EIP-7702 ``0x7702`` factory marker, the delegate (implementation) address
replaces the marker in ``initCode`` before hashing.
"""

from typing import Optional

from eth_abi import encode
from eth_utils import keccak, to_checksum_address

from .models import UserOperation
from ..adapters.evm.constants import EIP7702_FACTORY_MARKER
from ..utils import hex_to_bytes

EIP712_DOMAIN_TYPEHASH: bytes = keccak(
    text="EIP712Domain(string name,string version,uint256 chainId,address verifyingContract)"
)

PACKED_USEROP_TYPEHASH: bytes = keccak(
    text=(
        "PackedUserOperation(address sender,uint256 nonce,bytes initCode,bytes callData,"
        "bytes32 accountGasLimits,uint256 preVerificationGas,bytes32 gasFees,"
        "bytes paymasterAndData)"
    )
)

ENTRY_POINT_DOMAIN_NAME = "ERC4337"
ENTRY_POINT_DOMAIN_VERSION = "1"


def build_domain_separator(chain_id: int, entry_point: str) -> bytes:
    return keccak(
        encode(
            ["bytes32", "bytes32", "bytes32", "uint256", "address"],
            [
                EIP712_DOMAIN_TYPEHASH,
                keccak(text=ENTRY_POINT_DOMAIN_NAME),
                keccak(text=ENTRY_POINT_DOMAIN_VERSION),
                chain_id,
                to_checksum_address(entry_point),
            ],
        )
    )


def _init_code_for_hashing(user_op: UserOperation, delegate: Optional[str]) -> bytes:
    if user_op.factory == EIP7702_FACTORY_MARKER:
        if delegate is None:
            raise ValueError("EIP-7702 user operation requires the delegate address for hashing")
        return hex_to_bytes(delegate) + hex_to_bytes(user_op.factoryData)
    return user_op.init_code()


def pack_user_operation_for_hashing(
    user_op: UserOperation, delegate: Optional[str] = None
) -> bytes:
    """
    ABI-encode the ``PackedUserOperation`` struct hash preimage (signature excluded).
    """
    return encode(
        [
            "bytes32",
            "address",
            "uint256",
            "bytes32",
            "bytes32",
            "bytes32",
            "uint256",
            "bytes32",
            "bytes32",
        ],
        [
            PACKED_USEROP_TYPEHASH,
            to_checksum_address(user_op.sender),
            user_op.nonce,
            keccak(_init_code_for_hashing(user_op, delegate)),
            keccak(hex_to_bytes(user_op.callData)),
            user_op.account_gas_limits(),
            user_op.preVerificationGas,
            user_op.gas_fees(),
            keccak(user_op.paymaster_and_data()),
        ],
    )


def get_user_operation_hash(
    user_op: UserOperation,
    *,
    entry_point: str,
    chain_id: int,
    delegate: Optional[str] = None,
) -> bytes:
    """
    Compute the v0.8 user operation hash the account must sign.

    Args:
        user_op: Operation to hash; ``signature`` is ignored.
        entry_point: EntryPoint v0.8 address.
        chain_id: Chain the operation targets.
        delegate: Implementation address for 0x7702 operations; defaults to
            ``user_op.eip7702Auth.address``.

    Returns:
        32-byte hash.
    """
    if delegate is None and user_op.eip7702Auth is not None:
        delegate = user_op.eip7702Auth.address
    struct_hash = keccak(pack_user_operation_for_hashing(user_op, delegate))
    return keccak(b"\x19\x01" + build_domain_separator(chain_id, entry_point) + struct_hash)
