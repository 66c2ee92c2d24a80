"""
EIP-2612 Permit Signing

Builds the EIP-712 permit payload for a token, has an account sign it,
verifies the result against the same payload and returns the canonical
signature bytes for embedding in paymaster data.

Exported helpers
----------------
build_eip2612_permit
    Read ``name``, ``version`` and ``nonces(owner)`` from the token and
    assemble an ``EIP2612TypedData`` with an open-ended deadline.

sign_permit
    Sign, verify and unwrap a permit in one call.  Raises
    ``InvalidSignature`` rather than ever returning an unverified signature.
"""

from typing import Any, Dict, Optional, Protocol, Union

from web3 import AsyncWeb3

from .client import PublicClient
from .constants import MAX_UINT256
from .signatures import parse_erc6492_signature
from .standards import EIP712Domain, EIP2612TypedData, PermitMessage
from .token import ReadableToken
from ...engine.exceptions import InvalidSignature
from ...utils import logger


class TypedDataSigner(Protocol):
    """Anything that owns an address and can sign EIP-712 payloads."""

    @property
    def address(self) -> str: ...

    def sign_typed_data(self, typed_data: Dict[str, Any]) -> Union[str, bytes]: ...


async def build_eip2612_permit(
    *,
    token: ReadableToken,
    chain_id: int,
    owner: str,
    spender: str,
    value: int,
) -> EIP2612TypedData:
    """
    Assemble the EIP-2612 typed data for ``owner`` approving ``spender``.

    The paymaster validates the permit inside ``validatePaymasterUserOp``
    where ERC-4337 forbids reading ``block.timestamp``, so the deadline is
    always ``MAX_UINT256`` and the token nonce is the only replay guard.

    Args:
        token:    Token read surface (``name``, ``version``, ``nonces``).
        chain_id: EVM chain id for the domain.
        owner:    Address granting the allowance.
        spender:  Address allowed to pull tokens.
        value:    Allowance in the token's smallest unit.

    Returns:
        ``EIP2612TypedData`` whose ``to_dict()`` can be signed directly.
    """
    name = await token.name()
    version = await token.version()
    nonce = await token.nonces(owner)

    domain = EIP712Domain(
        name=name,
        version=version,
        chainId=chain_id,
        verifyingContract=token.address,
    )
    message = PermitMessage(
        owner=owner,
        spender=spender,
        value=value,
        nonce=nonce,
        deadline=MAX_UINT256,
    )
    return EIP2612TypedData(domain=domain, message=message)


async def sign_permit(
    *,
    token_address: str,
    client: PublicClient,
    account: TypedDataSigner,
    spender_address: str,
    amount: int,
    token: Optional[ReadableToken] = None,
) -> bytes:
    """
    Sign an EIP-2612 permit and return the verified, canonical signature.

    Steps:
        1. Read token ``name``, ``version`` and ``nonces(account.address)``.
        2. Build the permit typed data (deadline ``MAX_UINT256``).
        3. Sign it with ``account``.
        4. Verify the signature through ``client.verify_typed_data``.
        5. Unwrap ERC-6492 framing, if any.

    Args:
        token_address:   EIP-2612 token contract address.
        client:          Chain client used for reads and verification.
        account:         Signing account (e.g. ``Simple7702SmartAccount``).
        spender_address: Address allowed to pull ``amount`` tokens.
        amount:          Allowance in the token's smallest unit (> 0).
        token:           Optional pre-built token reader; defaults to
                         ``client.token(token_address)``.

    Returns:
        Canonical signature bytes, ready for ``encode_packed``.

    Raises:
        ValueError: If ``token_address`` is empty or ``amount`` is not positive.
        InvalidSignature: If the signature does not verify.

    Example::

        signature = await sign_permit(
            token_address=usdc,
            client=client,
            account=account,
            spender_address=paymaster,
            amount=10_000_000,
        )
    """
    if not token_address:
        raise ValueError("token_address is required")
    if amount <= 0:
        raise ValueError(f"amount must be positive, got {amount}")

    token = token or client.token(token_address)
    permit = await build_eip2612_permit(
        token=token,
        chain_id=client.chain_id,
        owner=account.address,
        spender=AsyncWeb3.to_checksum_address(spender_address),
        value=amount,
    )
    typed_data = permit.to_dict()

    wrapped_signature = account.sign_typed_data(typed_data)

    is_valid = await client.verify_typed_data(
        address=account.address,
        typed_data=typed_data,
        signature=wrapped_signature,
    )
    if not is_valid:
        raise InvalidSignature(account.address, wrapped_signature)

    logger.debug(
        f"Permit signed: owner={account.address} spender={spender_address} "
        f"value={amount} nonce={permit.message.nonce}"
    )
    return parse_erc6492_signature(wrapped_signature).signature
