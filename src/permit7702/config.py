"""
Runtime configuration.

``Settings`` collects everything the commands need from the environment
(optionally seeded from a ``.env`` file via python-dotenv). Only
``OWNER_PRIVATE_KEY`` and the per-command addresses are mandatory; the
chain table fills in RPC endpoint and USDC address when they are absent.

Environment variables:
    CHAIN_ID                          EVM chain id (default 11155111, Sepolia)
    RPC_URL                           JSON-RPC endpoint of the chain
    BUNDLER_URL                       ERC-4337 bundler endpoint
    OWNER_PRIVATE_KEY                 Key of the EOA behind the smart account
    USDC_ADDRESS                      USDC token (permit + fee token)
    PAYMASTER_V08_ADDRESS             Permit paymaster for EntryPoint v0.8
    RECIPIENT_ADDRESS                 Transfer / swap recipient
    MXNB_ADDRESS                      Swap input token (currency0)
    SWAP_ROUTER_ADDRESS               Hook-aware swap router
    HOOK_ADDRESS                      Pool hook contract
    PAYMASTER_VERIFICATION_GAS_LIMIT  Paymaster validation gas
    PAYMASTER_POST_OP_GAS_LIMIT       Paymaster postOp gas
"""

import os
from typing import Dict, Optional

import dotenv
from eth_utils import is_address, to_checksum_address
from pydantic import BaseModel, Field, ValidationError, field_validator

from .adapters.evm.constants import DEFAULT_HOOK_ADDRESS, get_bundler_url, get_chain_config
from .engine.exceptions import ConfigurationError
from .paymaster import (
    DEFAULT_PAYMASTER_POST_OP_GAS_LIMIT,
    DEFAULT_PAYMASTER_VERIFICATION_GAS_LIMIT,
)

#: Settings field -> environment variable.
ENV_VARS: Dict[str, str] = {
    "chain_id": "CHAIN_ID",
    "rpc_url": "RPC_URL",
    "bundler_url": "BUNDLER_URL",
    "owner_private_key": "OWNER_PRIVATE_KEY",
    "usdc_address": "USDC_ADDRESS",
    "paymaster_address": "PAYMASTER_V08_ADDRESS",
    "recipient_address": "RECIPIENT_ADDRESS",
    "mxnb_address": "MXNB_ADDRESS",
    "swap_router_address": "SWAP_ROUTER_ADDRESS",
    "hook_address": "HOOK_ADDRESS",
    "paymaster_verification_gas_limit": "PAYMASTER_VERIFICATION_GAS_LIMIT",
    "paymaster_post_op_gas_limit": "PAYMASTER_POST_OP_GAS_LIMIT",
}

_ADDRESS_FIELDS = (
    "usdc_address",
    "paymaster_address",
    "recipient_address",
    "mxnb_address",
    "swap_router_address",
    "hook_address",
)


class Settings(BaseModel):
    """
    Explicit configuration passed to every command.

    Example:
        settings = Settings.from_env(".env")
        settings.require("owner_private_key", "paymaster_address")
    """

    chain_id: int = Field(default=11155111, description="EVM chain id")
    rpc_url: Optional[str] = Field(None, description="Chain JSON-RPC endpoint")
    bundler_url: Optional[str] = Field(None, description="Bundler JSON-RPC endpoint")
    owner_private_key: Optional[str] = Field(None, repr=False, description="Owner EOA private key")
    usdc_address: Optional[str] = None
    paymaster_address: Optional[str] = None
    recipient_address: Optional[str] = None
    mxnb_address: Optional[str] = None
    swap_router_address: Optional[str] = None
    hook_address: str = DEFAULT_HOOK_ADDRESS
    paymaster_verification_gas_limit: int = Field(default=DEFAULT_PAYMASTER_VERIFICATION_GAS_LIMIT, ge=0)
    paymaster_post_op_gas_limit: int = Field(default=DEFAULT_PAYMASTER_POST_OP_GAS_LIMIT, ge=0)

    @field_validator(*_ADDRESS_FIELDS)
    @classmethod
    def _checksum(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        if not is_address(value):
            raise ValueError(f"not an EVM address: {value}")
        return to_checksum_address(value)

    @classmethod
    def from_env(cls, env_file: Optional[str] = None) -> "Settings":
        """
        Build settings from the process environment.

        ``env_file`` (or ``.env`` in the working directory when omitted) is
        loaded first; variables already set in the environment win.
        USDC defaults to the chain table entry for ``CHAIN_ID``.

        Raises:
            ConfigurationError: If a value is malformed or the chain is unsupported.
        """
        dotenv.load_dotenv(env_file or dotenv.find_dotenv(usecwd=True), override=False)

        values = {}
        for field, env_var in ENV_VARS.items():
            raw = os.getenv(env_var)
            if raw is not None and raw.strip() != "":
                values[field] = raw.strip()

        try:
            settings = cls(**values)
        except ValidationError as e:
            raise ConfigurationError(f"Invalid configuration: {e}") from e

        try:
            chain = get_chain_config(settings.chain_id)
        except ValueError as e:
            raise ConfigurationError(str(e)) from e

        if settings.usdc_address is None:
            usdc = chain.get_asset("USDC")
            if usdc is not None:
                settings.usdc_address = usdc.address
        return settings

    @property
    def resolved_bundler_url(self) -> str:
        return self.bundler_url or get_bundler_url(self.chain_id)

    @property
    def usdc_decimals(self) -> int:
        """Decimals of USDC on ``chain_id``, from the chain table."""
        usdc = get_chain_config(self.chain_id).get_asset("USDC")
        if usdc is None:
            raise ConfigurationError(f"No USDC listed for chain {self.chain_id}")
        return usdc.decimals

    def require(self, *fields: str) -> "Settings":
        """
        Ensure ``fields`` are set.

        Raises:
            ConfigurationError: Listing the environment variables of every
                missing field.
        """
        missing = [ENV_VARS.get(field, field) for field in fields if getattr(self, field) in (None, "")]
        if missing:
            raise ConfigurationError(
                f"Missing required configuration: {', '.join(missing)}",
                missing=missing,
            )
        return self
