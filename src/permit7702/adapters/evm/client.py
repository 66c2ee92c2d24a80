"""
EVM Public Client

Thin read-only wrapper around ``web3.AsyncWeb3`` bound to one chain.
Provides the contract reads and the signature verification used by the
permit signer, the smart account and the paymaster checks.

Dependencies:
    - web3.py: For blockchain RPC interaction
    - eth_account: For signature recovery
"""

from typing import Any, Dict, Optional

from web3 import AsyncWeb3
from web3.exceptions import BadFunctionCallOutput, ContractLogicError

from .constants import ERC1271_MAGIC_VALUE, EvmChainConfig, get_chain_config
from .signatures import (
    SignatureLike,
    parse_erc6492_signature,
    recover_typed_data_address,
    typed_data_hash,
)
from .standards import ERC1271ABI
from .token import ERC20PermitToken
from ...utils import logger


class PublicClient:
    """
    Read access to a single EVM chain.

    Attributes:
        w3: Underlying ``AsyncWeb3`` instance.
        chain: Static configuration of the connected chain.

    Example:
        client = PublicClient.for_chain(11155111)
        code = await client.get_code("0x...")
        ok = await client.verify_typed_data(
            address=account.address, typed_data=data, signature=sig
        )
    """

    def __init__(self, w3: AsyncWeb3, chain: EvmChainConfig):
        self.w3 = w3
        self.chain = chain

    @classmethod
    def for_chain(
        cls,
        chain_id: int,
        rpc_url: Optional[str] = None,
        request_timeout: int = 60,
    ) -> "PublicClient":
        """
        Create a client for ``chain_id``.

        Uses ``rpc_url`` when given, otherwise the chain's public endpoint.

        Raises:
            ValueError: If the chain is not supported.
        """
        chain = get_chain_config(chain_id)
        url = rpc_url or chain.public_rpc_url
        w3 = AsyncWeb3(AsyncWeb3.AsyncHTTPProvider(
            url,
            request_kwargs={"timeout": request_timeout},
        ))
        return cls(w3, chain)

    @property
    def chain_id(self) -> int:
        return self.chain.chain_id

    def token(self, address: str) -> ERC20PermitToken:
        return ERC20PermitToken(self.w3, address)

    async def get_code(self, address: str) -> bytes:
        code = await self.w3.eth.get_code(AsyncWeb3.to_checksum_address(address))
        return bytes(code)

    async def get_transaction_count(self, address: str) -> int:
        return await self.w3.eth.get_transaction_count(AsyncWeb3.to_checksum_address(address))

    async def verify_typed_data(
        self,
        *,
        address: str,
        typed_data: Dict[str, Any],
        signature: SignatureLike,
    ) -> bool:
        """
        Check that ``signature`` over ``typed_data`` is valid for ``address``.

        ERC-6492 wrapping is removed first. ECDSA recovery is tried next;
        if the recovered signer differs and ``address`` holds code (an
        EIP-7702 delegated EOA or a contract wallet), the account's ERC-1271
        ``isValidSignature`` is consulted.

        The ERC-6492 factory call is not simulated, so a wrapped signature
        from an account that is not deployed yet verifies only when its
        inner signature recovers to ``address``. A Simple7702 account is
        the owner EOA itself, so this never applies to it.

        Returns:
            ``True`` if the signature is valid for ``address``, ``False``
            otherwise. RPC failures propagate.
        """
        inner = parse_erc6492_signature(signature).signature

        recovered = recover_typed_data_address(typed_data, inner)
        if recovered is not None and recovered.lower() == address.lower():
            return True

        code = await self.get_code(address)
        if not code:
            logger.debug(f"Signature recovered to {recovered}, expected {address}; no code at address")
            return False

        contract = self.w3.eth.contract(
            address=AsyncWeb3.to_checksum_address(address),
            abi=ERC1271ABI().to_list(),
        )
        try:
            result = await contract.functions.isValidSignature(
                typed_data_hash(typed_data), inner
            ).call()
        except (ContractLogicError, BadFunctionCallOutput) as e:
            logger.debug(f"isValidSignature reverted for {address}: {e}")
            return False
        return bytes(result) == ERC1271_MAGIC_VALUE
