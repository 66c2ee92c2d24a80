"""
User Operation Models

Pydantic models for the ERC-4337 (EntryPoint v0.8) payloads exchanged with
bundlers.

    - Call: One contract call executed by the smart account.
    - Eip7702Authorization: Signed EIP-7702 delegation tuple.
    - UserOperation: Unpacked v0.8 user operation with JSON-RPC and
      packed (on-chain) representations.
    - UserOperationGasEstimate / UserOperationReceipt: Bundler responses.

Byte fields are held as 0x-prefixed hex strings, integers as ``int``;
``to_rpc()`` converts integers to JSON-RPC quantities.
"""

from typing import Any, Dict, List, Optional, Sequence

from eth_abi import encode
from eth_utils import function_abi_to_4byte_selector
from eth_utils.abi import collapse_if_tuple
from pydantic import Field, field_validator

from ..adapters.evm.abis import get_function_abi
from ..adapters.evm.constants import EIP7702_FACTORY_ADDRESS, EIP7702_FACTORY_MARKER
from ..schemas.bases import CanonicalModel, RpcModel
from ..utils import bytes_to_hex, from_quantity, hex_to_bytes, to_quantity


def encode_function_call(abi_entry: Dict[str, Any], args: Sequence[Any]) -> str:
    """
    ABI-encode a call to ``abi_entry`` with positional ``args``.

    Tuple parameters take Python tuples/lists in component order.

    Returns:
        0x-prefixed calldata (4-byte selector followed by the arguments).
    """
    types = [collapse_if_tuple(param) for param in abi_entry.get("inputs", [])]
    selector = function_abi_to_4byte_selector(abi_entry)
    return bytes_to_hex(selector + encode(types, list(args)))


class Call(CanonicalModel):
    """
    A single call executed by the smart account.

    Attributes:
        to: Target contract address.
        value: Native value sent with the call, in wei.
        data: Calldata (0x-prefixed hex).
    """

    to: str = Field(..., description="Target contract address")
    value: int = Field(default=0, ge=0, description="Native value in wei")
    data: str = Field(default="0x", description="Calldata (hex)")

    @classmethod
    def from_abi(
        cls,
        *,
        to: str,
        abi: List[Dict[str, Any]],
        function_name: str,
        args: Sequence[Any] = (),
        value: int = 0,
    ) -> "Call":
        """Build a call from an ABI list, a function name and its arguments."""
        data = encode_function_call(get_function_abi(abi, function_name), args)
        return cls(to=to, value=value, data=data)


class Eip7702Authorization(CanonicalModel):
    """
    Signed EIP-7702 authorization tuple ``(chainId, address, nonce, yParity, r, s)``.

    ``address`` is the implementation contract the EOA delegates to.
    """

    chainId: int = Field(..., ge=0)
    address: str
    nonce: int = Field(..., ge=0)
    yParity: int = Field(..., ge=0, le=1)
    r: int
    s: int

    def to_rpc(self) -> Dict[str, str]:
        return {
            "chainId": to_quantity(self.chainId),
            "address": self.address,
            "nonce": to_quantity(self.nonce),
            "yParity": to_quantity(self.yParity),
            "r": to_quantity(self.r),
            "s": to_quantity(self.s),
        }


class UserOperation(CanonicalModel):
    """
    EntryPoint v0.8 user operation (unpacked form).

    Gas and fee fields start at zero and are filled in by
    ``BundlerClient.prepare_user_operation``.
    """

    sender: str = Field(..., description="Smart account address")
    nonce: int = Field(..., ge=0, description="EntryPoint nonce (key << 64 | seq)")
    factory: Optional[str] = Field(None, description="Factory address or '0x7702' marker")
    factoryData: Optional[str] = Field(None, description="Factory calldata (hex)")
    callData: str = Field(..., description="Account calldata (hex)")
    callGasLimit: int = Field(default=0, ge=0)
    verificationGasLimit: int = Field(default=0, ge=0)
    preVerificationGas: int = Field(default=0, ge=0)
    maxFeePerGas: int = Field(default=0, ge=0)
    maxPriorityFeePerGas: int = Field(default=0, ge=0)
    paymaster: Optional[str] = Field(None, description="Paymaster address")
    paymasterVerificationGasLimit: Optional[int] = Field(None, ge=0)
    paymasterPostOpGasLimit: Optional[int] = Field(None, ge=0)
    paymasterData: Optional[str] = Field(None, description="Paymaster-specific data (hex)")
    signature: str = Field(default="0x", description="Account signature (hex)")
    eip7702Auth: Optional[Eip7702Authorization] = Field(None, description="EIP-7702 delegation")

    def to_rpc(self) -> Dict[str, Any]:
        """
        JSON-RPC representation for ``eth_sendUserOperation`` and
        ``eth_estimateUserOperationGas``. Unset optional fields are omitted.
        """
        payload: Dict[str, Any] = {
            "sender": self.sender,
            "nonce": to_quantity(self.nonce),
            "callData": self.callData,
            "callGasLimit": to_quantity(self.callGasLimit),
            "verificationGasLimit": to_quantity(self.verificationGasLimit),
            "preVerificationGas": to_quantity(self.preVerificationGas),
            "maxFeePerGas": to_quantity(self.maxFeePerGas),
            "maxPriorityFeePerGas": to_quantity(self.maxPriorityFeePerGas),
            "signature": self.signature,
        }
        if self.factory is not None:
            payload["factory"] = self.factory
            payload["factoryData"] = self.factoryData or "0x"
        if self.paymaster is not None:
            payload["paymaster"] = self.paymaster
            payload["paymasterVerificationGasLimit"] = to_quantity(self.paymasterVerificationGasLimit or 0)
            payload["paymasterPostOpGasLimit"] = to_quantity(self.paymasterPostOpGasLimit or 0)
            payload["paymasterData"] = self.paymasterData or "0x"
        if self.eip7702Auth is not None:
            payload["eip7702Auth"] = self.eip7702Auth.to_rpc()
        return payload

    def init_code(self) -> bytes:
        if self.factory is None:
            return b""
        factory = EIP7702_FACTORY_ADDRESS if self.factory == EIP7702_FACTORY_MARKER else self.factory
        return hex_to_bytes(factory) + hex_to_bytes(self.factoryData)

    def paymaster_and_data(self) -> bytes:
        if self.paymaster is None:
            return b""
        return (
            hex_to_bytes(self.paymaster)
            + (self.paymasterVerificationGasLimit or 0).to_bytes(16, "big")
            + (self.paymasterPostOpGasLimit or 0).to_bytes(16, "big")
            + hex_to_bytes(self.paymasterData)
        )

    def account_gas_limits(self) -> bytes:
        return self.verificationGasLimit.to_bytes(16, "big") + self.callGasLimit.to_bytes(16, "big")

    def gas_fees(self) -> bytes:
        return self.maxPriorityFeePerGas.to_bytes(16, "big") + self.maxFeePerGas.to_bytes(16, "big")

    def pack(self) -> List[Any]:
        """
        ``PackedUserOperation`` tuple as the EntryPoint sees it:
        ``(sender, nonce, initCode, callData, accountGasLimits,
        preVerificationGas, gasFees, paymasterAndData, signature)``.
        """
        return [
            self.sender,
            self.nonce,
            self.init_code(),
            hex_to_bytes(self.callData),
            self.account_gas_limits(),
            self.preVerificationGas,
            self.gas_fees(),
            self.paymaster_and_data(),
            hex_to_bytes(self.signature),
        ]

    def get_max_cost(self) -> int:
        """Upper bound of the gas fee charged for this operation, in wei."""
        gas = self.preVerificationGas + self.verificationGasLimit + self.callGasLimit
        gas += (self.paymasterVerificationGasLimit or 0) + (self.paymasterPostOpGasLimit or 0)
        return gas * self.maxFeePerGas


class UserOperationGasEstimate(RpcModel):
    """Result of ``eth_estimateUserOperationGas``."""

    preVerificationGas: int
    verificationGasLimit: int
    callGasLimit: int
    paymasterVerificationGasLimit: Optional[int] = None
    paymasterPostOpGasLimit: Optional[int] = None

    @field_validator(
        "preVerificationGas",
        "verificationGasLimit",
        "callGasLimit",
        "paymasterVerificationGasLimit",
        "paymasterPostOpGasLimit",
        mode="before",
    )
    @classmethod
    def _parse_quantity(cls, value):
        return from_quantity(value)


class UserOperationReceipt(RpcModel):
    """
    Result of ``eth_getUserOperationReceipt``.

    ``receipt`` is the receipt of the bundle transaction that included the
    operation.
    """

    userOpHash: str
    entryPoint: Optional[str] = None
    sender: Optional[str] = None
    nonce: Optional[int] = None
    paymaster: Optional[str] = None
    actualGasCost: Optional[int] = None
    actualGasUsed: Optional[int] = None
    success: bool
    reason: Optional[str] = None
    logs: List[Dict[str, Any]] = Field(default_factory=list)
    receipt: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("nonce", "actualGasCost", "actualGasUsed", mode="before")
    @classmethod
    def _parse_quantity(cls, value):
        return from_quantity(value)

    @property
    def transaction_hash(self) -> Optional[str]:
        return self.receipt.get("transactionHash")
