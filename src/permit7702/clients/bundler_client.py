"""
Bundler Client

Async JSON-RPC client for an ERC-4337 bundler (Pimlico-compatible) bound to
one smart account and, optionally, one paymaster.

Workflow:
    1. prepare_user_operation: encode calls, fetch the EntryPoint nonce and
       gas prices, attach the EIP-7702 authorization and paymaster fields,
       then estimate gas with a stub signature.
    2. send_user_operation: sign the prepared operation with the account and
       submit it via ``eth_sendUserOperation``.
    3. wait_for_user_operation_receipt: poll ``eth_getUserOperationReceipt``
       until the operation is included or the timeout elapses.

Dependencies:
    - httpx: HTTP transport for the bundler RPC
"""

import asyncio
import itertools
import json
import re
import time
from typing import Any, Dict, List, Optional, Sequence, Tuple

import httpx
from pydantic import ValidationError

from ..accounts.simple7702 import Simple7702SmartAccount
from ..adapters.evm.client import PublicClient
from ..adapters.evm.constants import ENTRY_POINT_V08
from ..engine.exceptions import (
    BlockchainInteractionError,
    BundlerError,
    UserOperationReceiptTimeoutError,
)
from ..paymaster import PaymasterData, PermitPaymaster
from ..user_operation.models import (
    Call,
    Eip7702Authorization,
    UserOperation,
    UserOperationGasEstimate,
    UserOperationReceipt,
)
from ..utils import from_quantity, logger

#: Pimlico gas price tier used for ``maxFeePerGas`` / ``maxPriorityFeePerGas``.
GAS_PRICE_TIER = "standard"

_SIMULATION_ERROR_CODES = {-32500, -32501, -32502, -32503, -32504, -32505, -32506, -32507}
_ENTRY_POINT_ERROR = re.compile(r"\bAA[1-9]\d\b")


def _detect_simulation_error(error: Dict[str, Any]) -> bool:
    """Best-effort detection of validation/simulation failures in a bundler error."""
    code = error.get("code")
    if isinstance(code, int) and code in _SIMULATION_ERROR_CODES:
        return True
    message = str(error.get("message") or "").lower()
    if "simulation" in message or "failedop" in message:
        return True
    if _ENTRY_POINT_ERROR.search(str(error.get("message") or "")):
        return True
    data = error.get("data")
    if data is not None and "failedop" in json.dumps(data).lower():
        return True
    return False


class BundlerClient:
    """
    ERC-4337 bundler client for a ``Simple7702SmartAccount``.

    Attributes:
        url: Bundler JSON-RPC endpoint.
        client: Public client of the chain the bundler serves.
        account: Smart account whose operations are sent.
        paymaster: Optional paymaster supplying ``paymaster*`` fields.
        entry_point: EntryPoint address passed with every request.

    Example:
        bundler = BundlerClient(
            get_bundler_url(client.chain_id),
            client=client,
            account=account,
            paymaster=paymaster,
        )
        user_op_hash = await bundler.send_user_operation(calls, authorization=authorization)
        receipt = await bundler.wait_for_user_operation_receipt(user_op_hash)
    """

    def __init__(
        self,
        url: str,
        *,
        client: PublicClient,
        account: Simple7702SmartAccount,
        paymaster: Optional[PermitPaymaster] = None,
        entry_point: str = ENTRY_POINT_V08,
        timeout: float = 30.0,
        poll_interval: float = 2.0,
        receipt_timeout: float = 120.0,
        headers: Optional[Dict[str, str]] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.url = url
        self.client = client
        self.account = account
        self.paymaster = paymaster
        self.entry_point = entry_point
        self.timeout = timeout
        self.poll_interval = poll_interval
        self.receipt_timeout = receipt_timeout
        self._headers = headers or {}
        self._transport = transport
        self._ids = itertools.count(1)

    async def _rpc(self, method: str, params: List[Any]) -> Any:
        payload = {"jsonrpc": "2.0", "id": next(self._ids), "method": method, "params": params}
        async with httpx.AsyncClient(
            timeout=self.timeout,
            headers=self._headers,
            transport=self._transport,
        ) as http:
            response = await http.post(self.url, json=payload)

        try:
            data = response.json()
        except ValueError:
            data = None

        # Some bundlers pair a JSON-RPC error body with an HTTP 4xx/5xx status.
        if isinstance(data, dict) and data.get("error"):
            error = data["error"]
            if not isinstance(error, dict):
                error = {"message": str(error)}
            raise BundlerError(
                str(error.get("message") or "Bundler error"),
                code=error.get("code"),
                data=error.get("data"),
                simulation=_detect_simulation_error(error),
            )
        if response.status_code >= 400:
            raise BundlerError(
                f"Bundler responded with HTTP {response.status_code} to {method}",
                code=response.status_code,
            )
        if not isinstance(data, dict):
            raise BundlerError(f"Bundler returned a malformed JSON-RPC response to {method}")
        return data.get("result")

    async def supported_entry_points(self) -> List[str]:
        return await self._rpc("eth_supportedEntryPoints", [])

    async def get_user_operation_gas_price(self) -> Dict[str, Dict[str, int]]:
        """
        ``pimlico_getUserOperationGasPrice`` with quantities decoded.

        Returns:
            ``{"slow": {...}, "standard": {...}, "fast": {...}}`` with
            ``maxFeePerGas`` / ``maxPriorityFeePerGas`` as ints.
        """
        result = await self._rpc("pimlico_getUserOperationGasPrice", [])
        return {
            tier: {key: from_quantity(value) for key, value in fees.items()}
            for tier, fees in result.items()
        }

    async def estimate_fees_per_gas(self) -> Tuple[int, int]:
        """Return ``(maxFeePerGas, maxPriorityFeePerGas)`` of the standard tier."""
        prices = await self.get_user_operation_gas_price()
        fees = prices[GAS_PRICE_TIER]
        return fees["maxFeePerGas"], fees["maxPriorityFeePerGas"]

    async def estimate_user_operation_gas(self, user_op: UserOperation) -> UserOperationGasEstimate:
        result = await self._rpc(
            "eth_estimateUserOperationGas",
            [user_op.to_rpc(), self.entry_point],
        )
        try:
            return UserOperationGasEstimate.model_validate(result)
        except ValidationError as e:
            raise BlockchainInteractionError(f"Unreadable gas estimate from bundler: {result!r}") from e

    async def _apply_paymaster(self, user_op: UserOperation) -> Optional[PaymasterData]:
        if self.paymaster is None:
            return None
        paymaster_data = await self.paymaster.get_paymaster_data(user_op)
        user_op.paymaster = paymaster_data.paymaster
        user_op.paymasterData = paymaster_data.paymasterData
        user_op.paymasterVerificationGasLimit = paymaster_data.paymasterVerificationGasLimit
        user_op.paymasterPostOpGasLimit = paymaster_data.paymasterPostOpGasLimit
        return paymaster_data

    async def prepare_user_operation(
        self,
        calls: Sequence[Call],
        *,
        authorization: Optional[Eip7702Authorization] = None,
        nonce: Optional[int] = None,
    ) -> UserOperation:
        """
        Build an unsigned user operation ready for signing.

        Gas limits returned by the paymaster take precedence over the
        bundler's estimate. The ``signature`` field holds the account stub
        signature on return.
        """
        call_data = self.account.encode_calls(calls)
        if nonce is None:
            nonce = await self.account.get_nonce()
        max_fee_per_gas, max_priority_fee_per_gas = await self.estimate_fees_per_gas()

        user_op = UserOperation(
            sender=self.account.address,
            nonce=nonce,
            callData=call_data,
            maxFeePerGas=max_fee_per_gas,
            maxPriorityFeePerGas=max_priority_fee_per_gas,
            signature=self.account.get_stub_signature(),
        )
        if authorization is not None:
            factory_args = self.account.get_factory_args()
            user_op.factory = factory_args["factory"]
            user_op.factoryData = factory_args["factoryData"]
            user_op.eip7702Auth = authorization

        paymaster_data = await self._apply_paymaster(user_op)

        estimate = await self.estimate_user_operation_gas(user_op)
        user_op.callGasLimit = estimate.callGasLimit
        user_op.verificationGasLimit = estimate.verificationGasLimit
        user_op.preVerificationGas = estimate.preVerificationGas

        if paymaster_data is not None and not paymaster_data.isFinal:
            await self._apply_paymaster(user_op)

        logger.debug(
            f"Prepared user operation: sender={user_op.sender} nonce={user_op.nonce} "
            f"callGasLimit={user_op.callGasLimit} verificationGasLimit={user_op.verificationGasLimit} "
            f"preVerificationGas={user_op.preVerificationGas} maxFeePerGas={user_op.maxFeePerGas}"
        )
        return user_op

    async def send_user_operation(
        self,
        calls: Sequence[Call],
        *,
        authorization: Optional[Eip7702Authorization] = None,
    ) -> str:
        """
        Prepare, sign and submit a user operation.

        Returns:
            The user operation hash reported by the bundler.

        Raises:
            BundlerError: If the bundler rejects the operation.
            InvalidSignature: If the paymaster permit does not verify.
        """
        user_op = await self.prepare_user_operation(calls, authorization=authorization)
        user_op.signature = self.account.sign_user_operation(user_op)

        result = await self._rpc("eth_sendUserOperation", [user_op.to_rpc(), self.entry_point])
        if not isinstance(result, str):
            raise BundlerError("Bundler returned an invalid user operation hash")
        logger.info(f"UserOperation hash {result}")
        return result

    async def get_user_operation_receipt(self, user_op_hash: str) -> Optional[UserOperationReceipt]:
        result = await self._rpc("eth_getUserOperationReceipt", [user_op_hash])
        if result is None:
            return None
        try:
            return UserOperationReceipt.model_validate(result)
        except ValidationError as e:
            raise BlockchainInteractionError(f"Unreadable receipt for {user_op_hash}") from e

    async def wait_for_user_operation_receipt(
        self,
        user_op_hash: str,
        *,
        timeout: Optional[float] = None,
        poll_interval: Optional[float] = None,
    ) -> UserOperationReceipt:
        """
        Poll until the operation's receipt is available.

        Raises:
            UserOperationReceiptTimeoutError: If no receipt arrives in time.
        """
        timeout = self.receipt_timeout if timeout is None else timeout
        poll_interval = self.poll_interval if poll_interval is None else poll_interval
        deadline = time.monotonic() + timeout
        while True:
            receipt = await self.get_user_operation_receipt(user_op_hash)
            if receipt is not None:
                if not receipt.success:
                    logger.warning(f"UserOperation {user_op_hash} reverted: {receipt.reason}")
                return receipt
            if time.monotonic() >= deadline:
                raise UserOperationReceiptTimeoutError(user_op_hash, timeout)
            await asyncio.sleep(poll_interval)
