"""
Permit Paymaster

Gas sponsorship by a token paymaster that pulls its fee in USDC. Each user
operation carries a fresh EIP-2612 permit authorising the paymaster to
spend up to ``permit_amount`` of the account's tokens; the paymaster
redeems it during ``validatePaymasterUserOp``.

Paymaster data layout (``abi.encodePacked``)::

    uint8   mode      (0 = permit)
    address token
    uint256 permitAmount
    bytes   permitSignature

Core components:
    - check_paymaster: Confirms a contract is deployed at the paymaster address
    - encode_paymaster_data: Packs the permit into paymaster data
    - PermitPaymaster: Produces ``PaymasterData`` for each user operation
"""

from typing import Optional

from eth_abi.packed import encode_packed
from eth_utils import function_abi_to_4byte_selector, to_checksum_address
from pydantic import Field

from .adapters.evm.abis import get_function_abi, get_paymaster_abi
from .adapters.evm.client import PublicClient
from .adapters.evm.permit import TypedDataSigner, sign_permit
from .engine.exceptions import PaymasterNotDeployedError
from .schemas.bases import CanonicalModel
from .user_operation.models import UserOperation
from .utils import bytes_to_hex, logger


#: Permit mode discriminator in paymaster data.
PERMIT_MODE: int = 0

#: 10 USDC (6 decimals); the most the paymaster may pull per operation.
DEFAULT_PERMIT_AMOUNT: int = 10_000_000

DEFAULT_PAYMASTER_VERIFICATION_GAS_LIMIT: int = 2_000_000
DEFAULT_PAYMASTER_POST_OP_GAS_LIMIT: int = 150_000


class PaymasterData(CanonicalModel):
    """
    Paymaster fields merged into a user operation.

    ``isFinal`` tells the bundler client not to ask the paymaster again
    after gas estimation.
    """

    paymaster: str
    paymasterData: str
    paymasterVerificationGasLimit: int = Field(..., ge=0)
    paymasterPostOpGasLimit: int = Field(..., ge=0)
    isFinal: bool = True


async def check_paymaster(client: PublicClient, address: str) -> None:
    """
    Make sure a paymaster contract is deployed at ``address``.

    Missing code is fatal. Bytecode that does not contain the
    ``validatePaymasterUserOp`` selector is only reported as a warning,
    since proxies keep their logic elsewhere.

    Raises:
        PaymasterNotDeployedError: If ``address`` holds no code.
    """
    code = await client.get_code(address)
    if not code:
        raise PaymasterNotDeployedError(address)
    logger.info(f"Paymaster contract found at address: {address}")

    selector = function_abi_to_4byte_selector(
        get_function_abi(get_paymaster_abi(), "validatePaymasterUserOp")
    )
    if selector not in code:
        logger.warning(
            f"Contract at {address} may not be a valid paymaster: "
            f"validatePaymasterUserOp selector 0x{selector.hex()} not found in bytecode"
        )


def encode_paymaster_data(*, token_address: str, permit_amount: int, signature: bytes) -> str:
    """Pack ``(mode, token, amount, signature)`` as paymaster data hex."""
    packed = encode_packed(
        ["uint8", "address", "uint256", "bytes"],
        [PERMIT_MODE, to_checksum_address(token_address), permit_amount, signature],
    )
    return bytes_to_hex(packed)


class PermitPaymaster:
    """
    Paymaster that is paid through an EIP-2612 permit signed by the account.

    Attributes:
        address: Paymaster contract (permit spender).
        token_address: Fee token (USDC).
        permit_amount: Allowance granted per operation.
        verification_gas_limit / post_op_gas_limit: Gas limits reported to
            the bundler; they take precedence over bundler estimates.

    Example:
        paymaster = PermitPaymaster(
            address=settings.paymaster_address,
            token_address=settings.usdc_address,
            client=client,
            account=account,
        )
        data = await paymaster.get_paymaster_data()
    """

    def __init__(
        self,
        *,
        address: str,
        token_address: str,
        client: PublicClient,
        account: TypedDataSigner,
        permit_amount: int = DEFAULT_PERMIT_AMOUNT,
        verification_gas_limit: int = DEFAULT_PAYMASTER_VERIFICATION_GAS_LIMIT,
        post_op_gas_limit: int = DEFAULT_PAYMASTER_POST_OP_GAS_LIMIT,
    ):
        self.address = to_checksum_address(address)
        self.token_address = to_checksum_address(token_address)
        self.client = client
        self.account = account
        self.permit_amount = permit_amount
        self.verification_gas_limit = verification_gas_limit
        self.post_op_gas_limit = post_op_gas_limit

    async def get_paymaster_data(self, user_op: Optional[UserOperation] = None) -> PaymasterData:
        """
        Sign a permit for this paymaster and build the paymaster fields.

        ``user_op`` is accepted for interface parity with sponsoring
        paymasters; the permit does not depend on it.

        Raises:
            InvalidSignature: If the permit signature does not verify.
        """
        signature = await sign_permit(
            token_address=self.token_address,
            client=self.client,
            account=self.account,
            spender_address=self.address,
            amount=self.permit_amount,
        )
        return PaymasterData(
            paymaster=self.address,
            paymasterData=encode_paymaster_data(
                token_address=self.token_address,
                permit_amount=self.permit_amount,
                signature=signature,
            ),
            paymasterVerificationGasLimit=self.verification_gas_limit,
            paymasterPostOpGasLimit=self.post_op_gas_limit,
            isFinal=True,
        )
