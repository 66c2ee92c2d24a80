"""
Simple7702 Smart Account

An EOA that delegates its code to the ``Simple7702Account`` implementation
via EIP-7702. The smart account address is the owner's own address; the
owner key signs user operations, EIP-712 payloads (permits) and the
EIP-7702 authorization.

Core Class:
    - Simple7702SmartAccount: Account object consumed by ``sign_permit``,
      ``PermitPaymaster`` and ``BundlerClient``.

Dependencies:
    - eth_account: Local key signing
    - rlp / eth_utils: EIP-7702 authorization digest
"""

from typing import Any, Dict, Optional, Sequence, Tuple

from eth_account.signers.local import LocalAccount
from eth_utils import keccak, to_checksum_address
from rlp import encode as rlp_encode

from ..adapters.evm.abis import get_entry_point_abi, get_simple7702_account_abi, get_function_abi
from ..adapters.evm.client import PublicClient
from ..adapters.evm.constants import (
    EIP7702_AUTH_MAGIC,
    EIP7702_FACTORY_MARKER,
    ENTRY_POINT_V08,
    SIMPLE_7702_ACCOUNT_V08,
    SIMPLE_7702_STUB_SIGNATURE,
)
from ..user_operation.hashing import get_user_operation_hash
from ..user_operation.models import (
    Call,
    Eip7702Authorization,
    UserOperation,
    encode_function_call,
)
from ..utils import bytes_to_hex, hex_to_bytes, logger


class Simple7702SmartAccount:
    """
    EIP-7702 delegated EOA running ``Simple7702Account`` for EntryPoint v0.8.

    Attributes:
        client: Chain client for nonce and code reads.
        owner: Local key controlling the EOA.
        implementation: Delegation target.
        entry_point: EntryPoint the account is used with.

    Example:
        account = Simple7702SmartAccount(client=client, owner=Account.from_key(key))
        authorization = await account.sign_authorization()
    """

    def __init__(
        self,
        *,
        client: PublicClient,
        owner: LocalAccount,
        implementation: str = SIMPLE_7702_ACCOUNT_V08,
        entry_point: str = ENTRY_POINT_V08,
    ):
        self.client = client
        self.owner = owner
        self.implementation = to_checksum_address(implementation)
        self.entry_point = to_checksum_address(entry_point)

    @property
    def address(self) -> str:
        return self.owner.address

    @property
    def chain_id(self) -> int:
        return self.client.chain_id

    def sign_typed_data(self, typed_data: Dict[str, Any]) -> bytes:
        """Sign an EIP-712 payload with the owner key (65-byte r||s||v)."""
        signed = self.owner.sign_typed_data(full_message=typed_data)
        return bytes(signed.signature)

    def sign_user_operation(self, user_op: UserOperation) -> str:
        """
        Sign the v0.8 hash of ``user_op``.

        Returns:
            0x-prefixed 65-byte signature for ``user_op.signature``.
        """
        user_op_hash = get_user_operation_hash(
            user_op,
            entry_point=self.entry_point,
            chain_id=self.chain_id,
            delegate=self.implementation,
        )
        signed = self.owner.unsafe_sign_hash(user_op_hash)
        return bytes_to_hex(bytes(signed.signature))

    async def sign_authorization(self, nonce: Optional[int] = None) -> Eip7702Authorization:
        """
        Sign the EIP-7702 delegation to ``implementation``.

        The signed payload is ``keccak(0x05 || rlp([chain_id, address, nonce]))``.
        ``nonce`` defaults to the owner's current transaction count.
        """
        if nonce is None:
            nonce = await self.client.get_transaction_count(self.address)

        digest = keccak(
            EIP7702_AUTH_MAGIC
            + rlp_encode([self.chain_id, hex_to_bytes(self.implementation), nonce])
        )
        signed = self.owner.unsafe_sign_hash(digest)
        y_parity = signed.v - 27 if signed.v >= 27 else signed.v

        logger.debug(f"EIP-7702 authorization signed: delegate={self.implementation} nonce={nonce}")
        return Eip7702Authorization(
            chainId=self.chain_id,
            address=self.implementation,
            nonce=nonce,
            yParity=y_parity,
            r=signed.r,
            s=signed.s,
        )

    def encode_calls(self, calls: Sequence[Call]) -> str:
        """
        Encode calls as account calldata.

        A single call uses ``execute(target, value, data)``; several calls use
        ``executeBatch((target, value, data)[])``.
        """
        if not calls:
            raise ValueError("At least one call is required")

        abi = get_simple7702_account_abi()
        if len(calls) == 1:
            call = calls[0]
            return encode_function_call(
                get_function_abi(abi, "execute"),
                [to_checksum_address(call.to), call.value, hex_to_bytes(call.data)],
            )

        batch: Sequence[Tuple[str, int, bytes]] = [
            (to_checksum_address(call.to), call.value, hex_to_bytes(call.data))
            for call in calls
        ]
        return encode_function_call(get_function_abi(abi, "executeBatch"), [batch])

    async def get_nonce(self, key: int = 0) -> int:
        """EntryPoint nonce for ``key`` (``key << 64 | sequence``)."""
        entry_point = self.client.w3.eth.contract(
            address=self.entry_point,
            abi=get_entry_point_abi(),
        )
        return await entry_point.functions.getNonce(self.address, key).call()

    def get_stub_signature(self) -> str:
        return SIMPLE_7702_STUB_SIGNATURE

    def get_factory_args(self) -> Dict[str, str]:
        return {"factory": EIP7702_FACTORY_MARKER, "factoryData": "0x"}
