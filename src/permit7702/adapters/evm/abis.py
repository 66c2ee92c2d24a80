"""
Contract ABI Module

Minimal ABI definitions for the contracts this package touches: ERC-20 /
EIP-2612 tokens, the EntryPoint v0.8, the Simple7702Account implementation,
the paymaster and the swap router.

Usage:
    from .abis import get_eip2612_abi, get_function_abi

    contract = w3.eth.contract(address=token, abi=get_eip2612_abi())
    nonce = await contract.functions.nonces(owner).call()

    transfer = get_function_abi(get_erc20_abi(), "transfer")
"""

from typing import Dict, Any, List


def get_erc20_abi() -> List[Dict[str, Any]]:
    """
    Get ABI for the ERC-20 functions used by the commands.

    Returns:
        List[Dict[str, Any]]: ``balanceOf``, ``transfer`` and ``approve`` entries.
    """
    return [
        {
            "name": "balanceOf",
            "type": "function",
            "stateMutability": "view",
            "inputs": [{"name": "account", "type": "address"}],
            "outputs": [{"name": "", "type": "uint256"}],
        },
        {
            "name": "transfer",
            "type": "function",
            "stateMutability": "nonpayable",
            "inputs": [
                {"name": "to", "type": "address"},
                {"name": "amount", "type": "uint256"},
            ],
            "outputs": [{"name": "", "type": "bool"}],
        },
        {
            "name": "approve",
            "type": "function",
            "stateMutability": "nonpayable",
            "inputs": [
                {"name": "spender", "type": "address"},
                {"name": "amount", "type": "uint256"},
            ],
            "outputs": [{"name": "", "type": "bool"}],
        },
    ]


def get_eip2612_abi() -> List[Dict[str, Any]]:
    """
    Get ABI for an EIP-2612 permit token.

    ERC-20 entries plus the read surface the permit signer needs:
    ``name()``, ``version()`` and ``nonces(owner)``.
    """
    return get_erc20_abi() + [
        {
            "name": "name",
            "type": "function",
            "stateMutability": "view",
            "inputs": [],
            "outputs": [{"name": "", "type": "string"}],
        },
        {
            "name": "version",
            "type": "function",
            "stateMutability": "view",
            "inputs": [],
            "outputs": [{"name": "", "type": "string"}],
        },
        {
            "name": "nonces",
            "type": "function",
            "stateMutability": "view",
            "inputs": [{"name": "owner", "type": "address"}],
            "outputs": [{"name": "", "type": "uint256"}],
        },
    ]


def get_entry_point_abi() -> List[Dict[str, Any]]:
    """
    Get ABI for EntryPoint ``getNonce(sender, key)``.
    """
    return [
        {
            "name": "getNonce",
            "type": "function",
            "stateMutability": "view",
            "inputs": [
                {"name": "sender", "type": "address"},
                {"name": "key", "type": "uint192"},
            ],
            "outputs": [{"name": "nonce", "type": "uint256"}],
        }
    ]


def get_simple7702_account_abi() -> List[Dict[str, Any]]:
    """
    Get ABI for the Simple7702Account ``execute`` / ``executeBatch`` entries.
    """
    return [
        {
            "name": "execute",
            "type": "function",
            "stateMutability": "nonpayable",
            "inputs": [
                {"name": "target", "type": "address"},
                {"name": "value", "type": "uint256"},
                {"name": "data", "type": "bytes"},
            ],
            "outputs": [],
        },
        {
            "name": "executeBatch",
            "type": "function",
            "stateMutability": "nonpayable",
            "inputs": [
                {
                    "name": "calls",
                    "type": "tuple[]",
                    "components": [
                        {"name": "target", "type": "address"},
                        {"name": "value", "type": "uint256"},
                        {"name": "data", "type": "bytes"},
                    ],
                }
            ],
            "outputs": [],
        },
    ]


def get_paymaster_abi() -> List[Dict[str, Any]]:
    """
    Get ABI for the v0.7/v0.8 ``validatePaymasterUserOp`` entry.

    Only used to derive the function selector when sanity-checking the
    deployed paymaster bytecode.
    """
    return [
        {
            "name": "validatePaymasterUserOp",
            "type": "function",
            "stateMutability": "nonpayable",
            "inputs": [
                {
                    "name": "userOp",
                    "type": "tuple",
                    "components": [
                        {"name": "sender", "type": "address"},
                        {"name": "nonce", "type": "uint256"},
                        {"name": "initCode", "type": "bytes"},
                        {"name": "callData", "type": "bytes"},
                        {"name": "accountGasLimits", "type": "bytes32"},
                        {"name": "preVerificationGas", "type": "uint256"},
                        {"name": "gasFees", "type": "bytes32"},
                        {"name": "paymasterAndData", "type": "bytes"},
                        {"name": "signature", "type": "bytes"},
                    ],
                },
                {"name": "userOpHash", "type": "bytes32"},
                {"name": "maxCost", "type": "uint256"},
            ],
            "outputs": [
                {"name": "context", "type": "bytes"},
                {"name": "validationData", "type": "uint256"},
            ],
        }
    ]


def get_swap_router_abi() -> List[Dict[str, Any]]:
    """
    Get ABI for the hook-aware router ``swapExactTokensForTokens``.

    The pool key follows the Uniswap v4 layout
    ``(currency0, currency1, fee, tickSpacing, hooks)``.
    """
    return [
        {
            "name": "swapExactTokensForTokens",
            "type": "function",
            "stateMutability": "nonpayable",
            "inputs": [
                {"name": "amountIn", "type": "uint256"},
                {"name": "amountOutMin", "type": "uint256"},
                {"name": "zeroForOne", "type": "bool"},
                {
                    "name": "poolKey",
                    "type": "tuple",
                    "components": [
                        {"name": "currency0", "type": "address"},
                        {"name": "currency1", "type": "address"},
                        {"name": "fee", "type": "uint24"},
                        {"name": "tickSpacing", "type": "int24"},
                        {"name": "hooks", "type": "address"},
                    ],
                },
                {"name": "hookData", "type": "bytes"},
                {"name": "receiver", "type": "address"},
                {"name": "deadline", "type": "uint256"},
            ],
            "outputs": [{"name": "amountOut", "type": "uint256"}],
        }
    ]


def get_function_abi(abi: List[Dict[str, Any]], name: str) -> Dict[str, Any]:
    """
    Pick a single function entry out of an ABI list.

    Raises:
        KeyError: If ``name`` is not a function of ``abi``.
    """
    for entry in abi:
        if entry.get("type") == "function" and entry.get("name") == name:
            return entry
    raise KeyError(f"Function {name!r} not found in ABI")
