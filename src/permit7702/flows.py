"""
Command flows.

Each flow takes an explicit ``Settings`` and returns a result model; the
CLI only renders results. ``transfer`` and ``swap`` share one pipeline:

    check paymaster -> sign EIP-7702 authorization -> build calls
    -> send user operation (permit paymaster pays gas in USDC)
    -> wait for the receipt
"""

import time
from dataclasses import dataclass
from decimal import Decimal
from typing import List, Optional, Sequence

from eth_account import Account
from eth_utils import is_address, to_checksum_address
from pydantic import Field

from .accounts.simple7702 import Simple7702SmartAccount
from .adapters.evm.abis import get_erc20_abi, get_swap_router_abi
from .adapters.evm.client import PublicClient
from .adapters.evm.constants import (
    CIRCLE_FAUCET_URL,
    DYNAMIC_FEE_FLAG,
    MAX_UINT256,
    value_to_amount,
)
from .clients.bundler_client import BundlerClient
from .config import Settings
from .engine.exceptions import ConfigurationError
from .paymaster import PermitPaymaster, check_paymaster
from .schemas.bases import CanonicalModel
from .user_operation.models import Call
from .utils import logger

#: Below 1 USDC the account is asked to visit the faucet.
MIN_USDC_BALANCE: int = 1_000_000

#: 0.01 USDC
DEFAULT_TRANSFER_AMOUNT: int = 10_000

#: 1 token with 18 decimals.
DEFAULT_SWAP_AMOUNT_IN: int = 10**18

DEFAULT_TICK_SPACING: int = 10

SWAP_DEADLINE_SECONDS: int = 3600


class PoolKey(CanonicalModel):
    """Uniswap v4 style pool identifier ``(currency0, currency1, fee, tickSpacing, hooks)``."""

    currency0: str
    currency1: str
    fee: int = DYNAMIC_FEE_FLAG
    tickSpacing: int = DEFAULT_TICK_SPACING
    hooks: str

    def as_tuple(self) -> tuple:
        return (self.currency0, self.currency1, self.fee, self.tickSpacing, self.hooks)


class BalanceReport(CanonicalModel):
    address: str
    chain_name: str
    balance: int = Field(..., ge=0, description="USDC balance in smallest units")
    decimals: int = Field(..., ge=0, description="USDC decimals on the chain")

    @property
    def amount(self) -> Decimal:
        return value_to_amount(value=self.balance, decimals=self.decimals)

    @property
    def funded(self) -> bool:
        return self.balance >= MIN_USDC_BALANCE

    @property
    def message(self) -> str:
        if not self.funded:
            return (
                f"Fund {self.address} with USDC on {self.chain_name} using "
                f"{CIRCLE_FAUCET_URL}, then run this again."
            )
        return "You have enough funds!"


class UserOperationResult(CanonicalModel):
    user_op_hash: str
    transaction_hash: Optional[str] = None
    success: bool = True
    reason: Optional[str] = None


@dataclass
class SmartAccountContext:
    """Client, account and bundler wired together for one chain."""

    client: PublicClient
    account: Simple7702SmartAccount
    bundler: BundlerClient


def create_account(settings: Settings, client: Optional[PublicClient] = None) -> Simple7702SmartAccount:
    settings.require("owner_private_key")
    client = client or PublicClient.for_chain(settings.chain_id, settings.rpc_url)
    try:
        owner = Account.from_key(settings.owner_private_key)
    except ValueError as e:
        raise ConfigurationError("OWNER_PRIVATE_KEY is not a valid private key") from e
    return Simple7702SmartAccount(client=client, owner=owner)


def create_context(settings: Settings, client: Optional[PublicClient] = None) -> SmartAccountContext:
    """
    Build the smart account, the permit paymaster and the bundler client.

    Raises:
        ConfigurationError: If the owner key, USDC or paymaster address is missing.
    """
    settings.require("owner_private_key", "usdc_address", "paymaster_address")
    account = create_account(settings, client)
    paymaster = PermitPaymaster(
        address=settings.paymaster_address,
        token_address=settings.usdc_address,
        client=account.client,
        account=account,
        verification_gas_limit=settings.paymaster_verification_gas_limit,
        post_op_gas_limit=settings.paymaster_post_op_gas_limit,
    )
    bundler = BundlerClient(
        settings.resolved_bundler_url,
        client=account.client,
        account=account,
        paymaster=paymaster,
    )
    return SmartAccountContext(client=account.client, account=account, bundler=bundler)


async def check_balance(settings: Settings, client: Optional[PublicClient] = None) -> BalanceReport:
    """Read the account's USDC balance and decide whether it needs funding."""
    settings.require("owner_private_key", "usdc_address")
    account = create_account(settings, client)
    balance = await account.client.token(settings.usdc_address).balance_of(account.address)
    report = BalanceReport(
        address=account.address,
        chain_name=account.client.chain.name,
        balance=balance,
        decimals=settings.usdc_decimals,
    )
    logger.debug(f"USDC balance of {account.address}: {report.amount}")
    return report


def build_transfer_calls(*, usdc_address: str, recipient: str, amount: int) -> List[Call]:
    if amount <= 0:
        raise ValueError(f"amount must be positive, got {amount}")
    return [
        Call.from_abi(
            to=usdc_address,
            abi=get_erc20_abi(),
            function_name="transfer",
            args=[recipient, amount],
        )
    ]


def build_swap_calls(
    *,
    router: str,
    pool_key: PoolKey,
    recipient: str,
    amount_in: int = DEFAULT_SWAP_AMOUNT_IN,
    deadline: Optional[int] = None,
    approve: bool = False,
) -> List[Call]:
    """
    Calls for an exact-input swap of ``currency0`` into ``currency1``.

    With ``approve`` the router is first granted unlimited allowance on
    both pool currencies.
    """
    if deadline is None:
        deadline = int(time.time()) + SWAP_DEADLINE_SECONDS

    calls: List[Call] = []
    if approve:
        for token in (pool_key.currency0, pool_key.currency1):
            calls.append(
                Call.from_abi(
                    to=token,
                    abi=get_erc20_abi(),
                    function_name="approve",
                    args=[router, MAX_UINT256],
                )
            )
    calls.append(
        Call.from_abi(
            to=router,
            abi=get_swap_router_abi(),
            function_name="swapExactTokensForTokens",
            args=[amount_in, 0, True, pool_key.as_tuple(), b"", recipient, deadline],
        )
    )
    return calls


async def send_calls(context: SmartAccountContext, calls: Sequence[Call]) -> UserOperationResult:
    """
    Run the sponsored user operation pipeline for ``calls``.

    Raises:
        PaymasterNotDeployedError: If the paymaster has no code.
        InvalidSignature: If the permit does not verify.
        BundlerError: If the bundler rejects the operation or times out.
    """
    paymaster = context.bundler.paymaster
    if paymaster is not None:
        await check_paymaster(context.client, paymaster.address)

    authorization = await context.account.sign_authorization()
    user_op_hash = await context.bundler.send_user_operation(calls, authorization=authorization)
    receipt = await context.bundler.wait_for_user_operation_receipt(user_op_hash)

    logger.info(f"Transaction hash {receipt.transaction_hash}")
    return UserOperationResult(
        user_op_hash=user_op_hash,
        transaction_hash=receipt.transaction_hash,
        success=receipt.success,
        reason=receipt.reason,
    )


async def send_transfer(
    settings: Settings,
    *,
    amount: int = DEFAULT_TRANSFER_AMOUNT,
    recipient: Optional[str] = None,
    context: Optional[SmartAccountContext] = None,
) -> UserOperationResult:
    """
    Transfer ``amount`` USDC units to ``recipient`` (default ``RECIPIENT_ADDRESS``).

    Raises:
        ValueError: If ``recipient`` is not an EVM address.
    """
    if recipient is None:
        settings.require("recipient_address")
        recipient = settings.recipient_address
    if not is_address(recipient):
        raise ValueError(f"Recipient is not an EVM address: {recipient}")
    recipient = to_checksum_address(recipient)
    context = context or create_context(settings)
    calls = build_transfer_calls(
        usdc_address=settings.usdc_address,
        recipient=recipient,
        amount=amount,
    )
    logger.info(f"Transferring {value_to_amount(value=amount, decimals=settings.usdc_decimals)} USDC to {recipient}")
    return await send_calls(context, calls)


async def send_swap(
    settings: Settings,
    *,
    amount_in: int = DEFAULT_SWAP_AMOUNT_IN,
    approve: bool = False,
    deadline: Optional[int] = None,
    context: Optional[SmartAccountContext] = None,
) -> UserOperationResult:
    """Swap ``amount_in`` MXNB for USDC through the hook pool, output to ``RECIPIENT_ADDRESS``."""
    settings.require("mxnb_address", "usdc_address", "swap_router_address", "recipient_address")
    context = context or create_context(settings)
    pool_key = PoolKey(
        currency0=settings.mxnb_address,
        currency1=settings.usdc_address,
        hooks=settings.hook_address,
    )
    logger.info("Starting swap operation...")
    logger.info(f"Token0 (MXNB): {pool_key.currency0}")
    logger.info(f"Token1 (USDC): {pool_key.currency1}")
    logger.info(f"Swap Router: {settings.swap_router_address}")
    logger.info(f"Pool Key: {pool_key.to_canonical_json()}")

    calls = build_swap_calls(
        router=settings.swap_router_address,
        pool_key=pool_key,
        recipient=settings.recipient_address,
        amount_in=amount_in,
        deadline=deadline,
        approve=approve,
    )
    return await send_calls(context, calls)
