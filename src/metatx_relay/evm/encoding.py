"""
EVM Call Data Encoding

Pure helpers that turn ``(abi, function_name, args)`` into the exact call
data a contract expects, and back again:

encode_function_call
    4-byte selector of the canonical signature followed by the
    ABI-encoded arguments in declaration order.  Tuple parameters are
    expanded recursively into ``(type1,type2,...)`` when computing the
    signature; tuple arguments may be passed as sequences or as dicts keyed
    by component name.

decode_function_call
    Inverse operation: looks the selector up in the ABI and decodes the
    argument words, returning a ``DecodedCall``.

Both raise ``EncodingError`` on any mismatch between the ABI and the values.
No I/O, no state.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple, Union

from eth_abi import decode, encode
from eth_abi.exceptions import DecodingError, EncodingError as AbiEncodingError
from eth_utils import function_signature_to_4byte_selector, is_hex, to_bytes, to_hex

from ..engine.exceptions import EncodingError

logger = logging.getLogger(__name__)

AbiEntry = Mapping[str, Any]


@dataclass(frozen=True)
class DecodedCall:
    """Function call recovered from call data."""
    name: str
    signature: str
    args: Tuple[Any, ...]
    arg_names: Tuple[str, ...]

    def named_args(self) -> Dict[str, Any]:
        return dict(zip(self.arg_names, self.args))


def canonical_type(param: AbiEntry) -> str:
    """Solidity type as it appears in a canonical signature (tuples expanded)."""
    typ = param["type"]
    if typ.startswith("tuple"):
        inner = ",".join(canonical_type(component) for component in param.get("components", []))
        return f"({inner}){typ[len('tuple'):]}"
    return typ


def function_signature(entry: AbiEntry) -> str:
    """Canonical signature, e.g. ``createComment(uint256,string)``."""
    types = ",".join(canonical_type(param) for param in entry.get("inputs", []))
    return f"{entry['name']}({types})"


def _functions(abi: Sequence[AbiEntry]) -> List[AbiEntry]:
    return [entry for entry in abi if entry.get("type", "function") == "function" and "name" in entry]


def function_selector(abi: Sequence[AbiEntry], function_name: str) -> str:
    """
    Hex selector of ``function_name``.

    Raises:
        EncodingError: If the function is not in the ABI or is overloaded.
    """
    candidates = [entry for entry in _functions(abi) if entry["name"] == function_name]
    if not candidates:
        raise EncodingError(f"Function '{function_name}' not found in ABI")
    if len(candidates) > 1:
        raise EncodingError(f"Function '{function_name}' is overloaded; selector is ambiguous")
    return to_hex(function_signature_to_4byte_selector(function_signature(candidates[0])))


def _normalize_value(param: AbiEntry, value: Any) -> Any:
    typ = param["type"]

    if typ.endswith("]"):
        element = dict(param, type=typ[: typ.rfind("[")])
        if isinstance(value, (str, bytes)) or not isinstance(value, (list, tuple)):
            raise EncodingError(f"Argument '{param.get('name', '')}' of type {typ} expects a sequence, got {value!r}")
        return [_normalize_value(element, item) for item in value]

    if typ == "tuple":
        components = param.get("components", [])
        if isinstance(value, Mapping):
            try:
                values = [value[component["name"]] for component in components]
            except KeyError as e:
                raise EncodingError(f"Tuple argument '{param.get('name', '')}' is missing component {e}") from e
        elif isinstance(value, (list, tuple)):
            values = list(value)
        else:
            raise EncodingError(f"Tuple argument '{param.get('name', '')}' expects a sequence or mapping, got {value!r}")
        if len(values) != len(components):
            raise EncodingError(
                f"Tuple argument '{param.get('name', '')}' expects {len(components)} components, got {len(values)}"
            )
        return tuple(_normalize_value(component, item) for component, item in zip(components, values))

    if typ.startswith("bytes") and isinstance(value, str):
        if not is_hex(value) or not value.startswith(("0x", "0X")):
            raise EncodingError(f"Argument '{param.get('name', '')}' of type {typ} expects 0x-hex, got {value!r}")
        return to_bytes(hexstr=value)

    return value


def _encode_with(entry: AbiEntry, args: Sequence[Any]) -> bytes:
    inputs = entry.get("inputs", [])
    types = [canonical_type(param) for param in inputs]
    values = [_normalize_value(param, arg) for param, arg in zip(inputs, args)]
    try:
        encoded_args = encode(types, values)
    except (AbiEncodingError, TypeError, ValueError, OverflowError) as e:
        raise EncodingError(f"Arguments do not match {function_signature(entry)}: {e}") from e
    return function_signature_to_4byte_selector(function_signature(entry)) + encoded_args


def encode_function_call(abi: Sequence[AbiEntry], function_name: str, args: Sequence[Any] = ()) -> bytes:
    """
    ABI-encode a call to ``function_name`` with ``args``.

    Overloads are resolved by argument count; when several overloads share
    the count, the first one whose types accept the values wins.

    Args:
        abi: Contract ABI (list of entries as produced by solc).
        function_name: Name of the function to call.
        args: Positional arguments in declaration order.

    Returns:
        Call data: 4-byte selector followed by the encoded arguments.

    Raises:
        EncodingError: Function missing, wrong argument count, or a value
            that does not fit its declared type.

    Example::

        data = encode_function_call(get_social_core_abi(), "createProfile", ["alice"])
    """
    args = list(args)
    named = [entry for entry in _functions(abi) if entry["name"] == function_name]
    if not named:
        raise EncodingError(f"Function '{function_name}' not found in ABI")

    candidates = [entry for entry in named if len(entry.get("inputs", [])) == len(args)]
    if not candidates:
        expected = sorted({len(entry.get("inputs", [])) for entry in named})
        raise EncodingError(
            f"Function '{function_name}' expects {' or '.join(map(str, expected))} arguments, got {len(args)}"
        )

    last_error: Optional[EncodingError] = None
    for entry in candidates:
        try:
            data = _encode_with(entry, args)
            logger.debug("Encoded %s (%d bytes)", function_signature(entry), len(data))
            return data
        except EncodingError as e:
            last_error = e
    raise last_error


def decode_function_call(abi: Sequence[AbiEntry], data: Union[bytes, str]) -> DecodedCall:
    """
    Decode call data produced by :func:`encode_function_call`.

    Raises:
        EncodingError: Payload shorter than a selector, unknown selector, or
            argument words that do not decode against the ABI.
    """
    if isinstance(data, str):
        if not is_hex(data):
            raise EncodingError("Call data is not valid hex")
        data = to_bytes(hexstr=data)
    if len(data) < 4:
        raise EncodingError("Call data is shorter than a function selector")

    selector, body = data[:4], data[4:]
    for entry in _functions(abi):
        signature = function_signature(entry)
        if function_signature_to_4byte_selector(signature) != selector:
            continue
        inputs = entry.get("inputs", [])
        types = [canonical_type(param) for param in inputs]
        try:
            values = decode(types, body)
        except (DecodingError, ValueError, OverflowError) as e:
            raise EncodingError(f"Call data does not decode as {signature}: {e}") from e
        return DecodedCall(
            name=entry["name"],
            signature=signature,
            args=tuple(values),
            arg_names=tuple(param.get("name", "") for param in inputs),
        )

    raise EncodingError(f"Unknown function selector {to_hex(selector)}")
