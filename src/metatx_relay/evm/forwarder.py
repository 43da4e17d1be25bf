"""
On-Chain Forwarder Gateway

``ForwarderGateway`` is the relayer's only handle on the chain.  It owns the
``AsyncWeb3`` client and the funded relayer account, and exposes the three
operations the relay pipeline needs:

- ``get_nonce(address)``: ``ERC2771Forwarder.nonces(address)``
- ``is_trusted_forwarder(target)``: ``target.isTrustedForwarder(forwarder)``
- ``execute(request)``: simulate, sign and broadcast ``execute(request)``
  paying ``request.value`` from the relayer balance, then wait for the
  receipt.

The relayer's own transaction nonce is allocated under an ``asyncio.Lock``
(estimate -> pending nonce -> sign -> send) so concurrent relays never reuse
it.  Waiting for the receipt happens outside the lock.
"""

import asyncio
import logging
import time
from typing import Any, Dict, Mapping, Optional

from eth_account import Account
from eth_utils import to_checksum_address, to_hex
from web3 import AsyncWeb3
from web3.exceptions import BadFunctionCallOutput, ContractLogicError, TransactionNotFound

from ..engine.exceptions import ExecutionRevertedError, NetworkError, ValidationError
from ..schemas.receipts import ReceiptSummary
from ..schemas.requests import ForwardRequest
from .abis import get_forwarder_abi, get_trusted_forwarder_abi
from .diagnostics import RevertDiagnosis, decode_revert_data, diagnose_exception

logger = logging.getLogger(__name__)


class ForwarderGateway:
    """
    Relayer-side access to an ``ERC2771Forwarder`` deployment.

    Args:
        web3: Configured ``AsyncWeb3`` instance.
        private_key: Key of the funded relayer account.
        forwarder_address: Address of the forwarder contract.
        receipt_timeout: Seconds to wait for a receipt before giving up.
        poll_interval: Seconds between receipt polls.
        gas_buffer: Multiplier applied to the gas estimate.
    """

    def __init__(
        self,
        web3: AsyncWeb3,
        private_key: str,
        forwarder_address: str,
        *,
        receipt_timeout: float = 120.0,
        poll_interval: float = 1.0,
        gas_buffer: float = 1.1,
    ) -> None:
        self.web3 = web3
        self.account = Account.from_key(private_key)
        self.relayer_address = to_checksum_address(self.account.address)
        self.forwarder_address = to_checksum_address(forwarder_address)
        self.forwarder = web3.eth.contract(address=self.forwarder_address, abi=get_forwarder_abi())
        self.receipt_timeout = receipt_timeout
        self.poll_interval = poll_interval
        self.gas_buffer = gas_buffer
        self._submission_lock = asyncio.Lock()

    @classmethod
    def from_rpc(
        cls,
        rpc_url: str,
        private_key: str,
        forwarder_address: str,
        *,
        request_timeout: float = 30.0,
        **kwargs: Any,
    ) -> "ForwarderGateway":
        """Build a gateway on an ``AsyncHTTPProvider`` with a bounded request timeout."""
        web3 = AsyncWeb3(AsyncWeb3.AsyncHTTPProvider(
            rpc_url,
            request_kwargs={"timeout": request_timeout}
        ))
        return cls(web3, private_key, forwarder_address, **kwargs)

    async def get_nonce(self, address: str) -> int:
        """
        Current forwarder nonce of ``address``.

        Raises:
            NetworkError: If the RPC call fails.
        """
        try:
            return int(await self.forwarder.functions.nonces(to_checksum_address(address)).call())
        except Exception as e:
            raise NetworkError(f"Failed to read forwarder nonce for {address}: {e}") from e

    async def is_trusted_forwarder(self, target: str) -> bool:
        """
        Ask ``target`` whether it trusts this gateway's forwarder.

        A target that reverts or returns nothing for ``isTrustedForwarder``
        does not implement ERC-2771 and is reported as untrusted.

        Raises:
            NetworkError: If the query cannot be completed.
        """
        contract = self.web3.eth.contract(address=to_checksum_address(target), abi=get_trusted_forwarder_abi())
        try:
            return bool(await contract.functions.isTrustedForwarder(self.forwarder_address).call())
        except (ContractLogicError, BadFunctionCallOutput) as e:
            logger.warning("isTrustedForwarder query on %s failed on-chain: %s", target, e)
            return False
        except Exception as e:
            raise NetworkError(f"Failed to query isTrustedForwarder on {target}: {e}") from e

    async def execute(self, request: ForwardRequest) -> ReceiptSummary:
        """
        Submit ``execute(request)`` and wait for one confirmation.

        Returns:
            ``ReceiptSummary`` of the successful transaction.

        Raises:
            ValidationError: If the request is unsigned.
            ExecutionRevertedError: If simulation reverts (nothing is sent)
                or the mined transaction reverted (``tx_hash`` set).
            NetworkError: On RPC failures or receipt timeout.
        """
        try:
            execute_args = request.execute_args()
        except ValueError as e:
            raise ValidationError(str(e)) from e

        tx_fn = self.forwarder.functions.execute(execute_args)

        async with self._submission_lock:
            try:
                gas_estimate = await tx_fn.estimate_gas({"from": self.relayer_address, "value": request.value})
            except ContractLogicError as e:
                diagnosis = diagnose_exception(e)
                logger.error("execute simulation reverted for %s: %s", request.sender, diagnosis.reason)
                raise ExecutionRevertedError(f"Transaction simulation reverted: {diagnosis.reason}", diagnosis=diagnosis) from e
            except Exception as e:
                raise NetworkError(f"Gas estimation failed: {e}") from e

            try:
                gas_price = await self.web3.eth.gas_price
                tx_nonce = await self.web3.eth.get_transaction_count(self.relayer_address, "pending")
                tx_dict = await tx_fn.build_transaction({
                    "from": self.relayer_address,
                    "value": request.value,
                    "gas": int(gas_estimate * self.gas_buffer),
                    "gasPrice": gas_price,
                    "nonce": tx_nonce,
                })
                signed_tx = self.account.sign_transaction(tx_dict)
                tx_hash = to_hex(await self.web3.eth.send_raw_transaction(signed_tx.raw_transaction))
            except Exception as e:
                raise NetworkError(f"Failed to broadcast transaction: {e}") from e

        logger.info("Submitted execute for %s -> %s: %s (relayer nonce %d)", request.sender, request.to, tx_hash, tx_nonce)

        receipt = await self._wait_for_receipt(tx_hash)
        summary = ReceiptSummary.from_web3_receipt(receipt)
        if summary.is_success():
            logger.info("Transaction %s confirmed in block %d", tx_hash, summary.block_number)
            return summary

        diagnosis = await self._replay_revert(tx_dict, summary.block_number)
        logger.error("Transaction %s reverted: %s", tx_hash, diagnosis.reason)
        raise ExecutionRevertedError(f"Transaction reverted: {diagnosis.reason}", diagnosis=diagnosis, tx_hash=tx_hash)

    async def _wait_for_receipt(self, tx_hash: str) -> Mapping[str, Any]:
        deadline = time.monotonic() + self.receipt_timeout
        while True:
            try:
                receipt = await self.web3.eth.get_transaction_receipt(tx_hash)
                if receipt:
                    return receipt
            except TransactionNotFound:
                pass  # still pending
            except Exception as e:
                raise NetworkError(f"Failed to fetch receipt for {tx_hash}: {e}") from e
            if time.monotonic() >= deadline:
                raise NetworkError(f"Timed out after {self.receipt_timeout:.0f}s waiting for receipt of {tx_hash}")
            await asyncio.sleep(self.poll_interval)

    async def _replay_revert(self, tx_dict: Dict[str, Any], block_number: Optional[int]) -> RevertDiagnosis:
        """Re-run a reverted transaction with ``eth_call`` to recover its revert data."""
        call = {
            "from": self.relayer_address,
            "to": self.forwarder_address,
            "data": tx_dict.get("data"),
            "value": tx_dict.get("value", 0),
            "gas": tx_dict.get("gas"),
        }
        try:
            await self.web3.eth.call(call, block_number)
        except ContractLogicError as e:
            return diagnose_exception(e)
        except Exception as e:
            logger.warning("Could not replay reverted transaction: %s", e)
            return decode_revert_data(None)
        # Replay succeeded: the revert depended on state or gas at inclusion time.
        return decode_revert_data(None)
