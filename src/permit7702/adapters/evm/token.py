"""
ERC-20 / EIP-2612 token access.

``ReadableToken`` is the read surface the permit signer depends on;
``ERC20PermitToken`` implements it on top of a web3.py ``AsyncWeb3``
contract object.
"""

from typing import Protocol, runtime_checkable

from web3 import AsyncWeb3

from .abis import get_eip2612_abi


@runtime_checkable
class ReadableToken(Protocol):
    """Token state needed to build an EIP-2612 permit."""

    address: str

    async def name(self) -> str: ...

    async def version(self) -> str: ...

    async def nonces(self, owner: str) -> int: ...


class ERC20PermitToken:
    """
    EIP-2612 token bound to an ``AsyncWeb3`` connection.

    Example:
        token = ERC20PermitToken(w3, "0x1c7D4B196Cb0C7B01d743Fbc6116a902379C7238")
        nonce = await token.nonces(owner)
    """

    def __init__(self, w3: AsyncWeb3, address: str):
        self.address = AsyncWeb3.to_checksum_address(address)
        self._contract = w3.eth.contract(address=self.address, abi=get_eip2612_abi())

    async def name(self) -> str:
        return await self._contract.functions.name().call()

    async def version(self) -> str:
        return await self._contract.functions.version().call()

    async def nonces(self, owner: str) -> int:
        return await self._contract.functions.nonces(
            AsyncWeb3.to_checksum_address(owner)
        ).call()

    async def balance_of(self, owner: str) -> int:
        return await self._contract.functions.balanceOf(
            AsyncWeb3.to_checksum_address(owner)
        ).call()

    def __repr__(self) -> str:
        return f"ERC20PermitToken({self.address})"
