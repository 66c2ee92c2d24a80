"""
EVM Chain Configuration and Protocol Constants

Provides unified access to the supported chain configurations (RPC endpoints,
USDC deployment), the well-known ERC-4337 / EIP-7702 contract
addresses, and amount conversion helpers shared by the commands.
"""

from decimal import Decimal, InvalidOperation
from typing import Dict, Optional

from pydantic import BaseModel, Field


#: Maximum uint256, used as the open-ended permit deadline.
MAX_UINT256: int = 2**256 - 1

#: EntryPoint v0.8 singleton (same address on every chain).
ENTRY_POINT_V08: str = "0x4337084D9E255Ff0702461CF8895CE9E3b5Ff108"

#: Simple7702Account implementation the EOA delegates to (EntryPoint v0.8).
SIMPLE_7702_ACCOUNT_V08: str = "0xe6Cae83BdE06E4c305530e199D7217f42808555B"

#: Factory marker telling the EntryPoint that ``sender`` is a 7702-delegated EOA.
EIP7702_FACTORY_MARKER: str = "0x7702"
EIP7702_FACTORY_ADDRESS: str = "0x7702000000000000000000000000000000000000"

#: Prefix byte of the EIP-7702 authorization signing payload.
EIP7702_AUTH_MAGIC: bytes = b"\x05"

#: Magic value returned by a valid ERC-1271 ``isValidSignature`` call.
ERC1271_MAGIC_VALUE: bytes = b"\x16\x26\xba\x7e"

#: Suffix appended to ERC-6492 wrapped signatures.
ERC6492_MAGIC_SUFFIX: bytes = bytes.fromhex(
    "6492649264926492649264926492649264926492649264926492649264926492"
)

#: Dummy signature for gas estimation; passes length checks of Simple7702Account.
SIMPLE_7702_STUB_SIGNATURE: str = "0x" + "f" * 31 + "0" * 33 + "7" + "a" * 63 + "1c"

#: Public Pimlico bundler endpoint; ``{chain_id}`` is substituted.
DEFAULT_BUNDLER_URL: str = "https://public.pimlico.io/v2/{chain_id}/rpc"

#: Hook contract of the MXNB/USDC pool used by the swap command.
DEFAULT_HOOK_ADDRESS: str = "0x0515E5b569611Db2eC5C6E0CD6cFc79bf9aca080"

#: Dynamic-fee flag for Uniswap v4 pool keys.
DYNAMIC_FEE_FLAG: int = 0x800000

CIRCLE_FAUCET_URL: str = "https://faucet.circle.com"


class EvmAssetConfig(BaseModel):
    """Token asset configuration."""
    symbol: str
    address: str = Field(..., description="Token contract address")
    decimals: int = Field(..., description="Token decimals")


class EvmChainConfig(BaseModel):
    """EVM blockchain network configuration."""
    name: str
    chain_id: int
    public_rpc_url: str = Field(..., description="Public RPC endpoint")
    assets: Dict[str, EvmAssetConfig] = Field(default_factory=dict, description="Supported assets")

    def get_asset(self, symbol: str) -> Optional[EvmAssetConfig]:
        return self.assets.get(symbol.upper())


_EVM_CHAINS_DATA: Dict[int, Dict] = {
    11155111: {
        "name": "Sepolia",
        "public_rpc_url": "https://ethereum-sepolia-rpc.publicnode.com",
        "assets": {
            "USDC": {
                "address": "0x1c7D4B196Cb0C7B01d743Fbc6116a902379C7238",
                "decimals": 6,
            },
        },
    },
    421614: {
        "name": "Arbitrum Sepolia",
        "public_rpc_url": "https://sepolia-rollup.arbitrum.io/rpc",
        "assets": {
            "USDC": {
                "address": "0x75faf114eafb1BDbe2F0316DF893fd58CE46AA4d",
                "decimals": 6,
            },
        },
    },
    84532: {
        "name": "Base Sepolia",
        "public_rpc_url": "https://sepolia.base.org",
        "assets": {
            "USDC": {
                "address": "0x036CbD53842c5426634e7929541eC2318f3dCF7e",
                "decimals": 6,
            },
        },
    },
}


def get_chain_config(chain_id: int) -> EvmChainConfig:
    """
    Build the configuration object for a supported chain.

    Args:
        chain_id: EVM chain id (e.g. 11155111 for Sepolia).

    Returns:
        EvmChainConfig populated from the built-in chain table.

    Raises:
        ValueError: If the chain is not in the table.
    """
    data = _EVM_CHAINS_DATA.get(int(chain_id))
    if data is None:
        supported = ", ".join(str(c) for c in sorted(_EVM_CHAINS_DATA))
        raise ValueError(f"Unsupported chain_id: {chain_id}. Supported chains: {supported}")

    assets = {
        symbol: EvmAssetConfig(symbol=symbol, **asset)
        for symbol, asset in data["assets"].items()
    }
    return EvmChainConfig(
        name=data["name"],
        chain_id=int(chain_id),
        public_rpc_url=data["public_rpc_url"],
        assets=assets,
    )


def get_bundler_url(chain_id: int) -> str:
    return DEFAULT_BUNDLER_URL.format(chain_id=chain_id)


def amount_to_value(*, amount: float | int | str | Decimal, decimals: int) -> int:
    """Convert a human-readable token `amount` into smallest-unit integer `value`.

    Args:
        amount: Human-readable amount (e.g. 1.23 for USDC). Accepts float/int/str/Decimal.
        decimals: Token decimals (e.g. 6 for USDC).

    Returns:
        int: Smallest-unit integer value.

    Raises:
        ValueError: If inputs are invalid or the amount cannot be represented in smallest units.
    """
    if not isinstance(decimals, int) or decimals < 0:
        raise ValueError("decimals must be a non-negative int")

    try:
        # str() avoids binary-float surprises (0.1 -> 0.100000000000000005...)
        dec_amount = amount if isinstance(amount, Decimal) else Decimal(str(amount))
    except (InvalidOperation, ValueError, TypeError) as e:
        raise ValueError(f"Invalid amount: {amount!r}") from e

    if dec_amount < 0:
        raise ValueError("amount must be non-negative")

    scaled = dec_amount * (Decimal(10) ** decimals)
    if scaled != scaled.to_integral_value():
        raise ValueError(
            f"amount {amount!r} is not representable with decimals={decimals} "
            f"(would create fractional smallest units)"
        )

    return int(scaled)


def value_to_amount(*, value: int | str | Decimal, decimals: int) -> Decimal:
    """Convert a smallest-unit integer `value` into a human-readable `Decimal` amount.

    Raises:
        ValueError: If inputs are invalid.
    """
    if not isinstance(decimals, int) or decimals < 0:
        raise ValueError("decimals must be a non-negative int")

    try:
        dec_value = value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError) as e:
        raise ValueError(f"Invalid value: {value!r}") from e

    if dec_value < 0:
        raise ValueError("value must be non-negative")
    if dec_value != dec_value.to_integral_value():
        raise ValueError("value must be an integer in smallest units")

    return dec_value / (Decimal(10) ** decimals)
