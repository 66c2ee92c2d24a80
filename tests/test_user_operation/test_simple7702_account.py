"""
Simple7702 Smart Account Test Suite

Tests for the EIP-7702 delegated account: authorization signing, call
encoding, EntryPoint nonce lookup and user operation signing.

Usage:
    pytest tests/test_user_operation/test_simple7702_account.py -v
"""

import pytest
import rlp
from unittest.mock import AsyncMock, Mock, patch
from eth_abi import decode
from eth_keys import keys
from eth_utils import function_abi_to_4byte_selector, keccak

from bundler_mocks import (
    MOCK_CHAIN_ID_SEPOLIA,
    MOCK_OWNER_ADDRESS,
    MOCK_RECIPIENT_ADDRESS,
    MOCK_TARGET_ADDRESS,
    MOCK_TX_COUNT,
    create_account,
    create_client,
    create_user_operation,
)

from permit7702.adapters.evm.abis import get_function_abi, get_simple7702_account_abi
from permit7702.adapters.evm.constants import (
    ENTRY_POINT_V08,
    SIMPLE_7702_ACCOUNT_V08,
    SIMPLE_7702_STUB_SIGNATURE,
)
from permit7702.user_operation import Call, get_user_operation_hash
from permit7702.utils import hex_to_bytes


def _recover(digest: bytes, y_parity: int, r: int, s: int) -> str:
    signature = keys.Signature(vrs=(y_parity, r, s))
    return signature.recover_public_key_from_msg_hash(digest).to_checksum_address()


def _selector(name: str) -> bytes:
    return function_abi_to_4byte_selector(get_function_abi(get_simple7702_account_abi(), name))


@pytest.fixture
def account():
    return create_account()


class TestAccountIdentity:

    def test_address_is_owner_eoa(self, account):
        assert account.address == MOCK_OWNER_ADDRESS
        assert account.implementation == SIMPLE_7702_ACCOUNT_V08
        assert account.entry_point == ENTRY_POINT_V08
        assert account.chain_id == MOCK_CHAIN_ID_SEPOLIA

    def test_factory_args_and_stub(self, account):
        assert account.get_factory_args() == {"factory": "0x7702", "factoryData": "0x"}
        assert account.get_stub_signature() == SIMPLE_7702_STUB_SIGNATURE
        assert len(hex_to_bytes(SIMPLE_7702_STUB_SIGNATURE)) == 65


class TestSignAuthorization:
    """Test EIP-7702 authorization signing."""

    @pytest.mark.asyncio
    async def test_nonce_defaults_to_transaction_count(self, account):
        authorization = await account.sign_authorization()

        assert authorization.nonce == MOCK_TX_COUNT
        assert authorization.chainId == MOCK_CHAIN_ID_SEPOLIA
        assert authorization.address == SIMPLE_7702_ACCOUNT_V08
        account.client.w3.eth.get_transaction_count.assert_awaited_once_with(MOCK_OWNER_ADDRESS)

    @pytest.mark.asyncio
    async def test_signature_recovers_owner(self, account):
        authorization = await account.sign_authorization(nonce=3)

        digest = keccak(
            b"\x05" + rlp.encode([MOCK_CHAIN_ID_SEPOLIA, hex_to_bytes(SIMPLE_7702_ACCOUNT_V08), 3])
        )
        assert authorization.yParity in (0, 1)
        assert _recover(digest, authorization.yParity, authorization.r, authorization.s) == MOCK_OWNER_ADDRESS

    @pytest.mark.asyncio
    async def test_explicit_nonce_skips_rpc(self, account):
        await account.sign_authorization(nonce=0)
        account.client.w3.eth.get_transaction_count.assert_not_awaited()


class TestEncodeCalls:
    """Test execute / executeBatch calldata."""

    def test_single_call_uses_execute(self, account):
        data = hex_to_bytes(
            account.encode_calls([Call(to=MOCK_TARGET_ADDRESS, value=5, data="0xdeadbeef")])
        )

        assert data[:4] == _selector("execute")
        target, value, inner = decode(["address", "uint256", "bytes"], data[4:])
        assert target.lower() == MOCK_TARGET_ADDRESS.lower()
        assert value == 5
        assert inner == b"\xde\xad\xbe\xef"

    def test_several_calls_use_execute_batch(self, account):
        calls = [
            Call(to=MOCK_TARGET_ADDRESS, data="0x01"),
            Call(to=MOCK_RECIPIENT_ADDRESS, value=1, data="0x"),
        ]
        data = hex_to_bytes(account.encode_calls(calls))

        assert data[:4] == _selector("executeBatch")
        (batch,) = decode(["(address,uint256,bytes)[]"], data[4:])
        assert [(t.lower(), v, d) for t, v, d in batch] == [
            (MOCK_TARGET_ADDRESS.lower(), 0, b"\x01"),
            (MOCK_RECIPIENT_ADDRESS.lower(), 1, b""),
        ]

    def test_no_calls_raises(self, account):
        with pytest.raises(ValueError):
            account.encode_calls([])


class TestNonceAndSigning:

    @pytest.mark.asyncio
    async def test_get_nonce_reads_entry_point(self):
        client = create_client()
        contract = Mock()
        contract.functions.getNonce.return_value.call = AsyncMock(return_value=42)
        account = create_account(client)

        with patch.object(client.w3.eth, "contract", return_value=contract) as factory:
            nonce = await account.get_nonce()

        assert nonce == 42
        assert factory.call_args.kwargs["address"] == ENTRY_POINT_V08
        contract.functions.getNonce.assert_called_once_with(MOCK_OWNER_ADDRESS, 0)

    def test_sign_user_operation_recovers_owner(self, account):
        user_op = create_user_operation(factory="0x7702", factoryData="0x")

        signature = hex_to_bytes(account.sign_user_operation(user_op))
        digest = get_user_operation_hash(
            user_op,
            entry_point=ENTRY_POINT_V08,
            chain_id=MOCK_CHAIN_ID_SEPOLIA,
            delegate=SIMPLE_7702_ACCOUNT_V08,
        )

        assert len(signature) == 65
        r = int.from_bytes(signature[:32], "big")
        s = int.from_bytes(signature[32:64], "big")
        assert _recover(digest, signature[64] - 27, r, s) == MOCK_OWNER_ADDRESS

    def test_sign_typed_data_returns_bytes(self, account):
        typed_data = {
            "types": {
                "EIP712Domain": [{"name": "name", "type": "string"}],
                "Mail": [{"name": "contents", "type": "string"}],
            },
            "primaryType": "Mail",
            "domain": {"name": "test"},
            "message": {"contents": "hello"},
        }
        signature = account.sign_typed_data(typed_data)
        assert isinstance(signature, bytes)
        assert len(signature) == 65
