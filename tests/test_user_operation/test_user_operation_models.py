"""
User Operation Models Test Suite

Tests for calls, authorizations, the v0.8 user operation wire formats and
bundler response parsing.

Usage:
    pytest tests/test_user_operation/test_user_operation_models.py -v
"""

import pytest
from eth_abi import decode
from eth_utils import function_abi_to_4byte_selector

from bundler_mocks import (
    MOCK_GAS_ESTIMATE,
    MOCK_PAYMASTER_ADDRESS,
    MOCK_RECEIPT,
    MOCK_RECIPIENT_ADDRESS,
    MOCK_TARGET_ADDRESS,
    MOCK_TX_HASH,
    create_authorization,
    create_user_operation,
)

from permit7702.adapters.evm.abis import get_erc20_abi, get_function_abi
from permit7702.adapters.evm.constants import EIP7702_FACTORY_ADDRESS
from permit7702.user_operation import (
    Call,
    Eip7702Authorization,
    UserOperationGasEstimate,
    UserOperationReceipt,
)
from permit7702.utils import hex_to_bytes


class TestCall:

    def test_from_abi_encodes_transfer(self):
        call = Call.from_abi(
            to=MOCK_TARGET_ADDRESS,
            abi=get_erc20_abi(),
            function_name="transfer",
            args=[MOCK_RECIPIENT_ADDRESS, 10_000],
        )

        data = hex_to_bytes(call.data)
        selector = function_abi_to_4byte_selector(get_function_abi(get_erc20_abi(), "transfer"))
        assert data[:4] == selector == bytes.fromhex("a9059cbb")
        recipient, amount = decode(["address", "uint256"], data[4:])
        assert recipient.lower() == MOCK_RECIPIENT_ADDRESS.lower()
        assert amount == 10_000
        assert call.value == 0
        assert call.to == MOCK_TARGET_ADDRESS

    def test_unknown_function_raises(self):
        with pytest.raises(KeyError):
            Call.from_abi(to=MOCK_TARGET_ADDRESS, abi=get_erc20_abi(), function_name="mint")


class TestEip7702Authorization:

    def test_to_rpc_uses_quantities(self):
        auth = create_authorization(nonce=7)
        assert auth.to_rpc() == {
            "chainId": "0xaa36a7",
            "address": auth.address,
            "nonce": "0x7",
            "yParity": "0x1",
            "r": "0x1234",
            "s": "0x5678",
        }

    def test_y_parity_bounds(self):
        with pytest.raises(ValueError):
            Eip7702Authorization(**{**create_authorization().model_dump(), "yParity": 2})


class TestUserOperation:

    def test_to_rpc_omits_unset_optionals(self):
        user_op = create_user_operation(paymaster=None, paymasterData=None)
        payload = user_op.to_rpc()

        assert "factory" not in payload
        assert "paymaster" not in payload
        assert "eip7702Auth" not in payload
        assert payload["nonce"] == "0x0"
        assert payload["callGasLimit"] == hex(200_000)

    def test_to_rpc_includes_7702_fields(self):
        user_op = create_user_operation(
            factory="0x7702",
            factoryData="0x",
            eip7702Auth=create_authorization(),
        )
        payload = user_op.to_rpc()

        assert payload["factory"] == "0x7702"
        assert payload["factoryData"] == "0x"
        assert payload["eip7702Auth"]["nonce"] == "0x7"
        assert payload["paymaster"] == MOCK_PAYMASTER_ADDRESS
        assert payload["paymasterVerificationGasLimit"] == hex(2_000_000)
        assert payload["paymasterPostOpGasLimit"] == hex(150_000)

    def test_packed_fields(self):
        user_op = create_user_operation(factory="0x7702", factoryData="0x")

        assert user_op.init_code() == hex_to_bytes(EIP7702_FACTORY_ADDRESS)
        assert user_op.account_gas_limits() == (100_000).to_bytes(16, "big") + (200_000).to_bytes(16, "big")
        assert user_op.gas_fees() == (1_500_000_000).to_bytes(16, "big") + (2_000_000_000).to_bytes(16, "big")

        paymaster_and_data = user_op.paymaster_and_data()
        assert paymaster_and_data[:20] == hex_to_bytes(MOCK_PAYMASTER_ADDRESS)
        assert int.from_bytes(paymaster_and_data[20:36], "big") == 2_000_000
        assert int.from_bytes(paymaster_and_data[36:52], "big") == 150_000
        assert paymaster_and_data[52:] == hex_to_bytes(user_op.paymasterData)

        packed = user_op.pack()
        assert len(packed) == 9
        assert packed[2] == user_op.init_code()

    def test_max_cost(self):
        user_op = create_user_operation()
        gas = 200_000 + 100_000 + 50_000 + 2_000_000 + 150_000
        assert user_op.get_max_cost() == gas * 2_000_000_000


class TestBundlerResponses:

    def test_gas_estimate_parses_quantities(self):
        estimate = UserOperationGasEstimate.model_validate(MOCK_GAS_ESTIMATE)

        assert estimate.preVerificationGas == 50_000
        assert estimate.verificationGasLimit == 100_000
        assert estimate.callGasLimit == 200_000
        assert estimate.paymasterVerificationGasLimit == 30_000
        assert estimate.paymasterPostOpGasLimit == 10_000

    def test_receipt(self):
        receipt = UserOperationReceipt.model_validate(MOCK_RECEIPT)

        assert receipt.success
        assert receipt.transaction_hash == MOCK_TX_HASH
        assert receipt.actualGasUsed == 0x2DC6C
        assert receipt.nonce == 0

    def test_receipt_keeps_vendor_fields(self):
        receipt = UserOperationReceipt.model_validate({**MOCK_RECEIPT, "bundler": "test"})
        assert receipt.model_extra["bundler"] == "test"
