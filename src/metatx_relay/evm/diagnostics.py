"""
Forwarder Revert Diagnostics

Turns raw revert data returned by ``ERC2771Forwarder.execute`` (or by a
simulation of it) into a ``RevertDiagnosis``: a tagged value naming the
error, its decoded arguments, an explanation and the likely causes.

Decoding is done by 4-byte selector lookup against the forwarder's custom
error ABI plus the standard ``Error(string)`` / ``Panic(uint256)`` encodings
and the ``FailedInnerCall()`` / ``FailedCall()`` errors the forwarder uses
when the inner call reverts without data.
"""

import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple, Union

from eth_abi import decode
from eth_abi.exceptions import DecodingError
from eth_utils import function_signature_to_4byte_selector, is_hex, to_bytes, to_hex

from .abis import get_forwarder_error_abi
from .encoding import canonical_type, function_signature

logger = logging.getLogger(__name__)


class ForwarderErrorKind(str, Enum):
    INVALID_SIGNER = "invalid_signer"
    MISMATCHED_VALUE = "mismatched_value"
    EXPIRED_REQUEST = "expired_request"
    UNTRUSTFUL_TARGET = "untrustful_target"
    FAILED_INNER_CALL = "failed_inner_call"
    ERROR_STRING = "error_string"
    PANIC = "panic"
    UNKNOWN = "unknown"


_KIND_BY_ERROR_NAME = {
    "ERC2771ForwarderInvalidSigner": ForwarderErrorKind.INVALID_SIGNER,
    "ERC2771ForwarderMismatchedValue": ForwarderErrorKind.MISMATCHED_VALUE,
    "ERC2771ForwarderExpiredRequest": ForwarderErrorKind.EXPIRED_REQUEST,
    "ERC2771UntrustfulTarget": ForwarderErrorKind.UNTRUSTFUL_TARGET,
}

_EXPLANATIONS: Dict[ForwarderErrorKind, Tuple[str, Tuple[str, ...]]] = {
    ForwarderErrorKind.INVALID_SIGNER: (
        "The signature verification failed. This usually means:",
        (
            "Nonce mismatch (signature was created with wrong nonce)",
            "Request already executed (nonce consumed by an earlier submission)",
            "Domain separator mismatch",
            "Wrong signer address",
            "Signature format issue",
        ),
    ),
    ForwarderErrorKind.MISMATCHED_VALUE: (
        "The native value sent with execute does not match the value the request authorizes.",
        ("Relayer forwarded a msg.value different from request.value",),
    ),
    ForwarderErrorKind.EXPIRED_REQUEST: (
        "The request deadline passed before the forwarder executed it.",
        ("Deadline window too short for network latency", "Request submitted after its deadline"),
    ),
    ForwarderErrorKind.UNTRUSTFUL_TARGET: (
        "The target contract does not trust this forwarder.",
        ("Target deployed with a different trusted forwarder", "Wrong forwarder address configured"),
    ),
    ForwarderErrorKind.FAILED_INNER_CALL: (
        "The signature was valid but the call to the target contract reverted.",
        (
            "Target contract rejected the call (business rule)",
            "Gas limit in the request too low for the inner call",
        ),
    ),
    ForwarderErrorKind.ERROR_STRING: (
        "Execution reverted with a reason string.",
        ("Target contract rejected the call (business rule)",),
    ),
    ForwarderErrorKind.PANIC: (
        "Execution hit a Solidity panic.",
        ("Assertion failure, arithmetic overflow or out-of-bounds access in the target",),
    ),
    ForwarderErrorKind.UNKNOWN: (
        "Execution reverted with data that does not match any known forwarder error.",
        ("Custom error raised by the target contract", "Out of gas"),
    ),
}

_PANIC_CODES = {
    0x00: "generic compiler panic",
    0x01: "assertion failed",
    0x11: "arithmetic overflow or underflow",
    0x12: "division or modulo by zero",
    0x21: "invalid enum value",
    0x22: "invalid storage byte array encoding",
    0x31: "pop on empty array",
    0x32: "array index out of bounds",
    0x41: "out of memory",
    0x51: "call to uninitialized function",
}

_HEX_BLOB = re.compile(r"0x[0-9a-fA-F]{8,}")


@dataclass(frozen=True)
class _ErrorSpec:
    name: str
    kind: ForwarderErrorKind
    arg_names: Tuple[str, ...]
    arg_types: Tuple[str, ...]


def _build_error_table() -> Dict[bytes, _ErrorSpec]:
    table: Dict[bytes, _ErrorSpec] = {}
    for entry in get_forwarder_error_abi():
        inputs = entry.get("inputs", [])
        table[function_signature_to_4byte_selector(function_signature(entry))] = _ErrorSpec(
            name=entry["name"],
            kind=_KIND_BY_ERROR_NAME[entry["name"]],
            arg_names=tuple(param["name"] for param in inputs),
            arg_types=tuple(canonical_type(param) for param in inputs),
        )
    standard = [
        _ErrorSpec("Error", ForwarderErrorKind.ERROR_STRING, ("reason",), ("string",)),
        _ErrorSpec("Panic", ForwarderErrorKind.PANIC, ("code",), ("uint256",)),
        _ErrorSpec("FailedInnerCall", ForwarderErrorKind.FAILED_INNER_CALL, (), ()),
        _ErrorSpec("FailedCall", ForwarderErrorKind.FAILED_INNER_CALL, (), ()),
    ]
    for spec in standard:
        table[function_signature_to_4byte_selector(f"{spec.name}({','.join(spec.arg_types)})")] = spec
    return table


_ERRORS_BY_SELECTOR = _build_error_table()


@dataclass(frozen=True)
class RevertDiagnosis:
    """
    Structured explanation of a forwarder revert.

    Attributes:
        kind: Which known error the revert data matched.
        error_name: Solidity error name (e.g. ``ERC2771ForwarderInvalidSigner``),
            None when the data could not be matched.
        args: Decoded error arguments keyed by parameter name.
        explanation: What the error means.
        possible_causes: Likely causes, most probable first.
        revert_data: Raw revert data as 0x-hex, when available.
    """
    kind: ForwarderErrorKind
    error_name: Optional[str]
    explanation: str
    possible_causes: Tuple[str, ...] = ()
    args: Dict[str, Any] = field(default_factory=dict)
    revert_data: Optional[str] = None

    @property
    def reason(self) -> str:
        """One-line summary suitable for an error message."""
        if self.kind is ForwarderErrorKind.ERROR_STRING:
            return f"execution reverted: {self.args.get('reason')}"
        if self.kind is ForwarderErrorKind.PANIC:
            code = self.args.get("code", 0)
            return f"panic 0x{code:02x} ({_PANIC_CODES.get(code, 'unknown panic code')})"
        if self.error_name:
            return self.error_name
        return "execution reverted"

    def to_payload(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "explanation": self.explanation,
            "possibleCauses": list(self.possible_causes),
        }
        if self.error_name:
            payload["specificError"] = self.error_name
        if self.args:
            payload["errorArgs"] = {
                key: str(val) if isinstance(val, int) and not isinstance(val, bool) else val
                for key, val in self.args.items()
            }
        if self.revert_data:
            payload["revertData"] = self.revert_data
        return payload


def _unknown(revert_data: Optional[str], explanation: Optional[str] = None) -> RevertDiagnosis:
    default_explanation, causes = _EXPLANATIONS[ForwarderErrorKind.UNKNOWN]
    return RevertDiagnosis(
        kind=ForwarderErrorKind.UNKNOWN,
        error_name=None,
        explanation=explanation or default_explanation,
        possible_causes=causes,
        revert_data=revert_data,
    )


def decode_revert_data(data: Union[bytes, str, None]) -> RevertDiagnosis:
    """
    Decode revert data into a ``RevertDiagnosis``.

    Never raises: data that is empty, malformed or unknown yields a diagnosis
    of kind ``UNKNOWN``.
    """
    if isinstance(data, str):
        if not is_hex(data):
            return _unknown(None, f"Execution reverted: {data}")
        data = to_bytes(hexstr=data)
    if not data:
        return _unknown(None, "Execution reverted without revert data.")

    revert_hex = to_hex(data)
    spec = _ERRORS_BY_SELECTOR.get(bytes(data[:4]))
    if spec is None:
        logger.debug("Unrecognised revert selector %s", revert_hex[:10])
        return _unknown(revert_hex)

    try:
        values = decode(list(spec.arg_types), bytes(data[4:])) if spec.arg_types else ()
    except (DecodingError, ValueError, OverflowError) as e:
        logger.debug("Revert data for %s failed to decode: %s", spec.name, e)
        return _unknown(revert_hex)

    explanation, causes = _EXPLANATIONS[spec.kind]
    args = dict(zip(spec.arg_names, values))
    if spec.kind is ForwarderErrorKind.ERROR_STRING:
        explanation = f"Execution reverted with reason: {args['reason']}"
    elif spec.kind is ForwarderErrorKind.PANIC:
        explanation = f"Execution hit a Solidity panic: {_PANIC_CODES.get(args['code'], 'unknown panic code')}."

    return RevertDiagnosis(
        kind=spec.kind,
        error_name=spec.name,
        explanation=explanation,
        possible_causes=causes,
        args=args,
        revert_data=revert_hex,
    )


def extract_revert_data(exc: BaseException) -> Optional[bytes]:
    """
    Pull raw revert data out of a web3 exception.

    Looks at ``exc.data`` (``ContractLogicError`` / ``ContractCustomError``),
    then at JSON-RPC error dicts in ``exc.args``, then falls back to the
    first hex blob in the message.
    """
    candidates: List[Any] = [getattr(exc, "data", None)]
    for arg in exc.args:
        if isinstance(arg, dict):
            candidates.append(arg.get("data"))
    for candidate in candidates:
        if isinstance(candidate, dict):
            candidate = candidate.get("data")
        if isinstance(candidate, (bytes, bytearray)) and candidate:
            return bytes(candidate)
        if isinstance(candidate, str) and candidate.startswith("0x") and is_hex(candidate) and len(candidate) >= 10:
            return to_bytes(hexstr=candidate)

    match = _HEX_BLOB.search(str(exc))
    if match:
        return to_bytes(hexstr=match.group(0))
    return None


def diagnose_exception(exc: BaseException) -> RevertDiagnosis:
    """Diagnose a revert surfaced as a web3 exception."""
    data = extract_revert_data(exc)
    if data is None:
        return _unknown(None, f"Execution reverted: {exc}")
    return decode_revert_data(data)
