"""
Exception and Error Definitions Module

Defines the exception hierarchy shared by the meta-transaction client
(encoding, nonce reads, signing, submission) and the relayer service
(validation, forwarder trust, expiry, on-chain execution). All exceptions
inherit from MetaTransactionError for unified exception handling.

Exception Hierarchy:
    MetaTransactionError (root)
    ├── EncodingError
    ├── NetworkError
    ├── ConfigurationError
    ├── SigningError
    │   ├── NonceRaceError
    │   └── SigningRejectedError
    ├── RelayRequestError
    │   ├── ValidationError
    │   ├── UntrustedForwarderError
    │   └── ExpiredRequestError
    ├── ExecutionRevertedError
    └── RelayRejectedError

Relayer-side errors carry an HTTP status code and render a structured
payload through ``to_payload()``; the relayer never answers with an empty
error body.
"""

from typing import Any, Dict, List, Optional


class MetaTransactionError(Exception):
    """
    Root exception class for all project-specific exceptions.

    Attributes:
        message: Human-readable description of the failure.
        status_code: HTTP status the relayer answers with for this error.
    """

    status_code: int = 500

    def __init__(self, message: str = "") -> None:
        super().__init__(message)
        self.message = message or self.__class__.__name__

    @property
    def error_code(self) -> str:
        """Stable identifier used in the ``error`` field of relayer responses."""
        return self.__class__.__name__

    def to_payload(self) -> Dict[str, Any]:
        """Render the error as a JSON-safe relayer response body."""
        return {"error": self.error_code, "message": self.message}


class EncodingError(MetaTransactionError):
    """
    Raised when a contract call cannot be ABI-encoded or decoded.

    This includes scenarios such as:
    - Function name not present in the interface description
    - Argument count mismatch
    - Argument value not matching its declared Solidity type
    - Unknown selector while decoding call data

    Not retryable without fixing the input.
    """
    status_code = 400


class NetworkError(MetaTransactionError):
    """
    Raised on transient transport failures.

    This includes scenarios such as:
    - RPC call timeout or connection refused while reading chain state
    - Relayer endpoint unreachable
    - Non-success reply from a nonce endpoint

    Retryable.
    """
    status_code = 500


class ConfigurationError(MetaTransactionError):
    """
    Raised when relayer configuration is missing or invalid.

    This includes scenarios such as:
    - Missing relayer private key
    - Malformed forwarder or target address
    - Non-numeric port or chain id

    Fatal at process start.
    """
    pass


class SigningError(MetaTransactionError):
    """
    Base exception for failures of the client-side signing flow.

    Also raised directly when the signing agent cannot sign for the requested
    sender (address mismatch) or returns a malformed signature.
    """
    status_code = 400


class NonceRaceError(SigningError):
    """
    Raised when the forwarder nonce changed while the user was signing.

    Another request from the same sender executed during the signing
    interaction, so the fresh signature is bound to a consumed nonce. The
    caller must restart the full flow (fresh nonce, fresh signature).

    Attributes:
        sender: Address whose nonce moved
        expected_nonce: Nonce the signature was bound to
        current_nonce: Nonce observed after signing
    """

    def __init__(self, sender: str, expected_nonce: int, current_nonce: int) -> None:
        super().__init__(
            f"Nonce changed during signing for {sender}: expected {expected_nonce}, "
            f"got {current_nonce}. Please retry."
        )
        self.sender = sender
        self.expected_nonce = expected_nonce
        self.current_nonce = current_nonce


class SigningRejectedError(SigningError):
    """
    Raised by a signing agent when the user declines the signature request.

    No on-chain resources are reserved before this point, so nothing needs
    cleaning up.
    """
    pass


class RelayRequestError(MetaTransactionError):
    """
    Base exception for requests the relayer refuses before spending gas.

    Answered with HTTP 400.
    """
    status_code = 400


class ValidationError(RelayRequestError):
    """
    Raised when a relay request body is malformed.

    This includes scenarios such as:
    - Missing or empty ``data`` / ``signature``
    - Integer fields that are not decimal strings
    - Malformed addresses or hex payloads
    """
    pass


class UntrustedForwarderError(RelayRequestError):
    """
    Raised when the target contract does not trust the configured forwarder.

    A deployment/configuration problem; not retryable by the end user.

    Attributes:
        target: Target contract that was queried
        forwarder: Forwarder address that is not trusted
    """

    def __init__(self, target: str, forwarder: str) -> None:
        super().__init__(f"Target contract {target} does not trust forwarder {forwarder}")
        self.target = target
        self.forwarder = forwarder


class ExpiredRequestError(RelayRequestError):
    """
    Raised when a request's deadline has already passed.

    The caller must restart the sign flow with a new deadline.

    Attributes:
        deadline: The expired request deadline
        current_time: Relayer clock at the time of the check
    """

    def __init__(self, deadline: int, current_time: int) -> None:
        super().__init__(f"Request expired: deadline {deadline} < current time {current_time}")
        self.deadline = deadline
        self.current_time = current_time


class ExecutionRevertedError(MetaTransactionError):
    """
    Raised when the forwarder's ``execute`` call reverts.

    The revert data is decoded against the forwarder's known error set; the
    decoded diagnosis (error name, explanation, likely causes) is merged into
    the response payload. Never retried automatically.

    Attributes:
        diagnosis: Decoded revert reason (``RevertDiagnosis``) or None
        tx_hash: Hash of the mined, reverted transaction when it was mined
    """
    status_code = 500

    def __init__(self, message: str, diagnosis: Optional[Any] = None, tx_hash: Optional[str] = None) -> None:
        super().__init__(message)
        self.diagnosis = diagnosis
        self.tx_hash = tx_hash

    def to_payload(self) -> Dict[str, Any]:
        payload = {"error": self.error_code, "message": self.message}
        if self.diagnosis is not None:
            payload.update(self.diagnosis.to_payload())
        if self.tx_hash:
            payload["hash"] = self.tx_hash
        return payload


class RelayRejectedError(MetaTransactionError):
    """
    Raised by the relay client when the relayer answers with a non-success
    HTTP status.

    Attributes:
        status_code: HTTP status returned by the relayer
        payload: Decoded diagnostic body (may be empty if the body was not JSON)
    """

    def __init__(self, status_code: int, payload: Dict[str, Any]) -> None:
        message = payload.get("message") or payload.get("error") or f"Relayer responded with HTTP {status_code}"
        super().__init__(message)
        self.status_code = status_code
        self.payload = payload

    @property
    def error_code(self) -> str:
        return self.payload.get("error") or self.__class__.__name__

    @property
    def specific_error(self) -> Optional[str]:
        """Decoded forwarder error name, when the relayer recognised one."""
        return self.payload.get("specificError")

    @property
    def possible_causes(self) -> List[str]:
        return list(self.payload.get("possibleCauses") or [])
