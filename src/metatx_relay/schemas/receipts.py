"""
Transaction receipt summaries.

``ReceiptSummary`` normalises a web3 transaction receipt into a small,
typed model. Its JSON form (``to_json_safe``) renders every integer as a
decimal string so block numbers and gas figures survive JSON transports
that cannot represent 64-bit-plus integers; ``from_json_safe`` parses that
form back on the client.
"""

from typing import Any, Dict, List, Mapping, Optional

from pydantic import Field, field_serializer

from .bases import CanonicalModel, TransactionStatus, bytes_to_hex


class LogSummary(CanonicalModel):
    """Emitted event log, reduced to the fields callers inspect."""

    address: str
    topics: List[str] = Field(default_factory=list)
    data: str = "0x"
    log_index: Optional[int] = Field(None, alias="logIndex")
    transaction_index: Optional[int] = Field(None, alias="transactionIndex")
    block_number: Optional[int] = Field(None, alias="blockNumber")

    @field_serializer("log_index", "transaction_index", "block_number", when_used="json")
    def _decimal(self, value: Optional[int]) -> Optional[str]:
        return None if value is None else str(value)

    @classmethod
    def from_web3_log(cls, log: Mapping[str, Any]) -> "LogSummary":
        return cls(
            address=log["address"],
            topics=[bytes_to_hex(topic) for topic in log.get("topics", [])],
            data=bytes_to_hex(log.get("data", b"")),
            log_index=log.get("logIndex"),
            transaction_index=log.get("transactionIndex"),
            block_number=log.get("blockNumber"),
        )


class ReceiptSummary(CanonicalModel):
    """
    Normalised receipt of a forwarder ``execute`` transaction.

    Attributes:
        tx_hash: Transaction hash (0x-hex).
        status: ``success`` or ``reverted``.
        block_number: Block the transaction was mined in.
        gas_used: Gas consumed by the transaction.
        cumulative_gas_used: Block gas used up to and including this tx.
        effective_gas_price: Price paid per gas unit (wei).
        from_address: Relayer account that sent the transaction.
        to_address: Forwarder contract address.
        logs: Summaries of emitted logs.
    """

    tx_hash: str = Field(..., alias="transactionHash")
    status: TransactionStatus
    block_number: int = Field(..., alias="blockNumber")
    gas_used: int = Field(..., alias="gasUsed")
    cumulative_gas_used: Optional[int] = Field(None, alias="cumulativeGasUsed")
    effective_gas_price: Optional[int] = Field(None, alias="effectiveGasPrice")
    from_address: Optional[str] = Field(None, alias="from")
    to_address: Optional[str] = Field(None, alias="to")
    logs: List[LogSummary] = Field(default_factory=list)

    @field_serializer("block_number", "gas_used", "cumulative_gas_used", "effective_gas_price", when_used="json")
    def _decimal(self, value: Optional[int]) -> Optional[str]:
        return None if value is None else str(value)

    def is_success(self) -> bool:
        return self.status == TransactionStatus.SUCCESS

    @classmethod
    def from_web3_receipt(cls, receipt: Mapping[str, Any]) -> "ReceiptSummary":
        """Build a summary from a web3 ``TxReceipt`` (or any mapping with the same keys)."""
        return cls(
            tx_hash=bytes_to_hex(receipt["transactionHash"]),
            status=TransactionStatus.SUCCESS if receipt.get("status") == 1 else TransactionStatus.REVERTED,
            block_number=receipt["blockNumber"],
            gas_used=receipt["gasUsed"],
            cumulative_gas_used=receipt.get("cumulativeGasUsed"),
            effective_gas_price=receipt.get("effectiveGasPrice"),
            from_address=receipt.get("from"),
            to_address=receipt.get("to"),
            logs=[LogSummary.from_web3_log(log) for log in receipt.get("logs", [])],
        )

    def to_json_safe(self) -> Dict[str, Any]:
        """Receipt as a JSON-safe dict: camelCase keys, integers as decimal strings."""
        return self.model_dump(mode="json", by_alias=True)

    @classmethod
    def from_json_safe(cls, payload: Mapping[str, Any]) -> "ReceiptSummary":
        return cls.model_validate(dict(payload))
