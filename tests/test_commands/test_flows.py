"""
Command Flows Test Suite

Tests for the balance, transfer and swap flows with a mocked bundler and
a mocked chain.

Usage:
    pytest tests/test_commands/test_flows.py -v
"""

import pytest
from unittest.mock import AsyncMock, patch
from eth_abi import decode

from command_mocks import (
    MOCK_MXNB_ADDRESS,
    MOCK_OWNER_ADDRESS,
    MOCK_PAYMASTER_ADDRESS,
    MOCK_RECIPIENT_ADDRESS,
    MOCK_ROUTER_ADDRESS,
    MOCK_TX_COUNT,
    MOCK_TX_HASH,
    MOCK_USDC_SEPOLIA,
    MOCK_USER_OP_HASH,
    create_client,
    create_context,
    create_receipt,
    create_settings,
)

from permit7702.adapters.evm.constants import DEFAULT_HOOK_ADDRESS, MAX_UINT256
from permit7702.engine.exceptions import ConfigurationError, PaymasterNotDeployedError
from permit7702.flows import (
    BalanceReport,
    PoolKey,
    build_swap_calls,
    build_transfer_calls,
    check_balance,
    create_context as create_flow_context,
    send_swap,
    send_transfer,
)
from permit7702.utils import hex_to_bytes

SWAP_ARG_TYPES = [
    "uint256",
    "uint256",
    "bool",
    "(address,address,uint24,int24,address)",
    "bytes",
    "address",
    "uint256",
]


class TestCheckBalance:

    @pytest.mark.asyncio
    async def test_low_balance_asks_for_funding(self):
        report = await check_balance(create_settings(), client=create_client(balance=999_999))

        assert report.address == MOCK_OWNER_ADDRESS
        assert not report.funded
        assert report.message == (
            f"Fund {MOCK_OWNER_ADDRESS} with USDC on Sepolia using "
            "https://faucet.circle.com, then run this again."
        )

    @pytest.mark.asyncio
    async def test_enough_funds(self):
        client = create_client(balance=1_000_000)
        report = await check_balance(create_settings(), client=client)

        assert report.funded
        assert report.message == "You have enough funds!"
        assert report.decimals == 6
        assert str(report.amount) == "1"
        client.token.assert_called_once_with(MOCK_USDC_SEPOLIA)
        client.token.return_value.balance_of.assert_awaited_once_with(MOCK_OWNER_ADDRESS)

    @pytest.mark.asyncio
    async def test_requires_owner_key(self):
        with pytest.raises(ConfigurationError) as exc_info:
            await check_balance(create_settings(owner_private_key=None), client=create_client())
        assert exc_info.value.missing == ["OWNER_PRIVATE_KEY"]

    def test_balance_report_threshold(self):
        assert BalanceReport(address=MOCK_OWNER_ADDRESS, chain_name="Sepolia", balance=1_000_000, decimals=6).funded


class TestCallBuilders:

    def test_transfer_call(self):
        (call,) = build_transfer_calls(
            usdc_address=MOCK_USDC_SEPOLIA, recipient=MOCK_RECIPIENT_ADDRESS, amount=10_000
        )
        data = hex_to_bytes(call.data)

        assert call.to == MOCK_USDC_SEPOLIA
        assert data[:4] == bytes.fromhex("a9059cbb")
        recipient, amount = decode(["address", "uint256"], data[4:])
        assert recipient.lower() == MOCK_RECIPIENT_ADDRESS.lower()
        assert amount == 10_000

    def test_transfer_rejects_zero(self):
        with pytest.raises(ValueError):
            build_transfer_calls(usdc_address=MOCK_USDC_SEPOLIA, recipient=MOCK_RECIPIENT_ADDRESS, amount=0)

    def test_swap_call(self):
        pool_key = PoolKey(currency0=MOCK_MXNB_ADDRESS, currency1=MOCK_USDC_SEPOLIA, hooks=DEFAULT_HOOK_ADDRESS)

        (call,) = build_swap_calls(
            router=MOCK_ROUTER_ADDRESS,
            pool_key=pool_key,
            recipient=MOCK_RECIPIENT_ADDRESS,
            deadline=1_700_003_600,
        )
        args = decode(SWAP_ARG_TYPES, hex_to_bytes(call.data)[4:])

        assert call.to == MOCK_ROUTER_ADDRESS
        assert args[0] == 10**18
        assert args[1] == 0
        assert args[2] is True
        currency0, currency1, fee, tick_spacing, hooks = args[3]
        assert (currency0.lower(), currency1.lower()) == (MOCK_MXNB_ADDRESS.lower(), MOCK_USDC_SEPOLIA.lower())
        assert fee == 0x800000
        assert tick_spacing == 10
        assert hooks.lower() == DEFAULT_HOOK_ADDRESS.lower()
        assert args[4] == b""
        assert args[5].lower() == MOCK_RECIPIENT_ADDRESS.lower()
        assert args[6] == 1_700_003_600

    def test_swap_deadline_defaults_to_one_hour(self):
        pool_key = PoolKey(currency0=MOCK_MXNB_ADDRESS, currency1=MOCK_USDC_SEPOLIA, hooks=DEFAULT_HOOK_ADDRESS)

        with patch("permit7702.flows.time.time", return_value=1_700_000_000.5):
            (call,) = build_swap_calls(
                router=MOCK_ROUTER_ADDRESS, pool_key=pool_key, recipient=MOCK_RECIPIENT_ADDRESS
            )

        assert decode(SWAP_ARG_TYPES, hex_to_bytes(call.data)[4:])[6] == 1_700_003_600

    def test_swap_with_approvals(self):
        pool_key = PoolKey(currency0=MOCK_MXNB_ADDRESS, currency1=MOCK_USDC_SEPOLIA, hooks=DEFAULT_HOOK_ADDRESS)

        calls = build_swap_calls(
            router=MOCK_ROUTER_ADDRESS,
            pool_key=pool_key,
            recipient=MOCK_RECIPIENT_ADDRESS,
            approve=True,
        )

        assert [c.to for c in calls] == [MOCK_MXNB_ADDRESS, MOCK_USDC_SEPOLIA, MOCK_ROUTER_ADDRESS]
        for approval in calls[:2]:
            data = hex_to_bytes(approval.data)
            assert data[:4] == bytes.fromhex("095ea7b3")
            spender, amount = decode(["address", "uint256"], data[4:])
            assert spender.lower() == MOCK_ROUTER_ADDRESS.lower()
            assert amount == MAX_UINT256


class TestSendFlows:
    """Test the sponsored user operation pipeline."""

    @pytest.mark.asyncio
    async def test_transfer(self):
        context = create_context()

        with patch("permit7702.flows.check_paymaster", new=AsyncMock()) as check:
            result = await send_transfer(create_settings(), context=context)

        check.assert_awaited_once_with(context.client, MOCK_PAYMASTER_ADDRESS)
        assert result.user_op_hash == MOCK_USER_OP_HASH
        assert result.transaction_hash == MOCK_TX_HASH
        assert result.success

        call_args = context.bundler.send_user_operation.call_args
        (calls,) = call_args.args
        authorization = call_args.kwargs["authorization"]
        assert calls[0].to == MOCK_USDC_SEPOLIA
        assert decode(["address", "uint256"], hex_to_bytes(calls[0].data)[4:])[1] == 10_000
        assert authorization.nonce == MOCK_TX_COUNT
        context.bundler.wait_for_user_operation_receipt.assert_awaited_once_with(MOCK_USER_OP_HASH)

    @pytest.mark.asyncio
    async def test_transfer_to_explicit_recipient(self):
        context = create_context()

        with patch("permit7702.flows.check_paymaster", new=AsyncMock()):
            await send_transfer(
                create_settings(recipient_address=None),
                amount=5,
                recipient=MOCK_OWNER_ADDRESS,
                context=context,
            )

        (calls,) = context.bundler.send_user_operation.call_args.args
        recipient, amount = decode(["address", "uint256"], hex_to_bytes(calls[0].data)[4:])
        assert recipient.lower() == MOCK_OWNER_ADDRESS.lower()
        assert amount == 5

    @pytest.mark.asyncio
    async def test_transfer_rejects_invalid_recipient(self):
        context = create_context()

        with pytest.raises(ValueError, match="not an EVM address"):
            await send_transfer(create_settings(), recipient="not-an-address", context=context)

        context.bundler.send_user_operation.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_transfer_checksums_recipient(self):
        context = create_context()

        with patch("permit7702.flows.check_paymaster", new=AsyncMock()):
            await send_transfer(create_settings(), recipient=MOCK_OWNER_ADDRESS.lower(), context=context)

        (calls,) = context.bundler.send_user_operation.call_args.args
        recipient, _ = decode(["address", "uint256"], hex_to_bytes(calls[0].data)[4:])
        assert recipient.lower() == MOCK_OWNER_ADDRESS.lower()

    @pytest.mark.asyncio
    async def test_paymaster_not_deployed_stops_pipeline(self):
        context = create_context()

        with pytest.raises(PaymasterNotDeployedError):
            await send_transfer(create_settings(), context=context)

        context.bundler.send_user_operation.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_reverted_operation_is_reported(self):
        context = create_context(receipt=create_receipt(success=False, reason="AA50 postOp reverted"))

        with patch("permit7702.flows.check_paymaster", new=AsyncMock()):
            result = await send_transfer(create_settings(), context=context)

        assert not result.success
        assert result.reason == "AA50 postOp reverted"

    @pytest.mark.asyncio
    async def test_swap(self):
        context = create_context()

        with patch("permit7702.flows.check_paymaster", new=AsyncMock()):
            result = await send_swap(create_settings(), approve=True, deadline=1_700_003_600, context=context)

        assert result.user_op_hash == MOCK_USER_OP_HASH
        (calls,) = context.bundler.send_user_operation.call_args.args
        assert len(calls) == 3
        assert calls[-1].to == MOCK_ROUTER_ADDRESS

    @pytest.mark.asyncio
    async def test_swap_requires_router(self):
        with pytest.raises(ConfigurationError) as exc_info:
            await send_swap(create_settings(swap_router_address=None), context=create_context())
        assert exc_info.value.missing == ["SWAP_ROUTER_ADDRESS"]


class TestCreateContext:

    def test_wires_paymaster_and_bundler(self):
        settings = create_settings(paymaster_post_op_gas_limit=200_000)

        context = create_flow_context(settings, client=create_client())

        assert context.account.address == MOCK_OWNER_ADDRESS
        assert context.bundler.url == "https://public.pimlico.io/v2/11155111/rpc"
        assert context.bundler.paymaster.address == MOCK_PAYMASTER_ADDRESS
        assert context.bundler.paymaster.token_address == MOCK_USDC_SEPOLIA
        assert context.bundler.paymaster.post_op_gas_limit == 200_000
        assert context.bundler.paymaster.account is context.account

    def test_missing_paymaster(self):
        with pytest.raises(ConfigurationError) as exc_info:
            create_flow_context(create_settings(paymaster_address=None), client=create_client())
        assert exc_info.value.missing == ["PAYMASTER_V08_ADDRESS"]

    def test_invalid_private_key(self):
        with pytest.raises(ConfigurationError):
            create_flow_context(create_settings(owner_private_key="0x1234"), client=create_client())
