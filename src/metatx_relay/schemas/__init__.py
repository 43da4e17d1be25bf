from .bases import CanonicalModel, TransactionStatus
from .requests import ForwardRequest, MAX_UINT48
from .receipts import LogSummary, ReceiptSummary
from .https import (
    SerializedForwardRequest,
    RelayRequestBody,
    RelaySuccessResponse,
    RelayErrorResponse,
    NonceResponse,
    HealthResponse,
)

__all__ = [
    "CanonicalModel",
    "TransactionStatus",
    "ForwardRequest",
    "MAX_UINT48",
    "LogSummary",
    "ReceiptSummary",
    "SerializedForwardRequest",
    "RelayRequestBody",
    "RelaySuccessResponse",
    "RelayErrorResponse",
    "NonceResponse",
    "HealthResponse",
]
