"""
EVM Off-Chain Signing Utilities

Local EIP-712 helpers for the forwarder's ``ForwardRequest``.  All
cryptographic operations are performed in-process using ``eth_account``; no
RPC calls or on-chain state queries are made.

Exported helpers
----------------
build_forward_request_typed_data
    Wrap a ``ForwardRequest`` in a ``ForwardRequestTypedData`` envelope
    without signing.  Used when signing is handled by an external agent
    (browser wallet, hardware wallet, MPC service).

sign_forward_request
    Build the envelope, sign with a private key and return the 65-byte
    signature as 0x-hex.

recover_forward_request_signer
    Inverse of the above: recover the address that produced a signature.
"""

from typing import Union

from eth_account import Account
from eth_account.messages import encode_typed_data
from eth_utils import to_checksum_address, to_hex

from ..engine.exceptions import SigningError
from ..schemas.requests import ForwardRequest
from .standards import EIP712Domain, ForwardRequestMessage, ForwardRequestTypedData


def build_forward_request_typed_data(request: ForwardRequest, domain: EIP712Domain) -> ForwardRequestTypedData:
    """
    Wrap a ``ForwardRequest`` in an EIP-712 envelope without signing.

    The signature field of ``request`` (if any) is ignored; it is not part of
    the signed struct.

    Returns:
        ``ForwardRequestTypedData`` whose ``to_dict()`` is compatible with
        ``eth_account.Account.sign_typed_data`` and ``eth_signTypedData_v4``.

    Example::

        typed_data = build_forward_request_typed_data(request, domain)
        payload = typed_data.to_dict()   # hand off to external signer
    """
    message = ForwardRequestMessage(
        sender=request.sender,
        to=request.to,
        value=request.value,
        gas=request.gas,
        nonce=request.nonce,
        deadline=request.deadline,
        data=request.data,
    )
    return ForwardRequestTypedData(domain=domain, message=message)


def sign_forward_request(private_key: str, request: ForwardRequest, domain: EIP712Domain) -> str:
    """
    Sign a ``ForwardRequest`` with a local private key.

    Args:
        private_key: Hex-encoded secp256k1 key of ``request.sender``.
        request: Unsigned (or re-signed) request.
        domain: Forwarder domain the signature is bound to.

    Returns:
        0x-hex ``r || s || v`` signature.

    Raises:
        SigningError: If the key does not belong to ``request.sender``.
    """
    account = Account.from_key(private_key)
    if account.address != to_checksum_address(request.sender):
        raise SigningError(f"Private key belongs to {account.address}, not to request sender {request.sender}")

    typed_data = build_forward_request_typed_data(request, domain)
    signed = Account.sign_typed_data(private_key, full_message=typed_data.to_dict())
    return to_hex(signed.signature)


def recover_forward_request_signer(
    request: ForwardRequest,
    signature: Union[str, bytes],
    domain: EIP712Domain,
) -> str:
    """
    Recover the checksum address that signed ``request`` under ``domain``.

    Raises:
        SigningError: If the signature is malformed or not recoverable.
    """
    signable = encode_typed_data(full_message=build_forward_request_typed_data(request, domain).to_dict())
    try:
        return to_checksum_address(Account.recover_message(signable, signature=signature))
    except Exception as exc:
        raise SigningError(f"Signature recovery failed: {exc}") from exc


def is_signed_by(request: ForwardRequest, domain: EIP712Domain, expected: str) -> bool:
    """True if ``request.signature`` recovers to ``expected`` under ``domain``."""
    if not request.signature:
        return False
    try:
        recovered = recover_forward_request_signer(request, request.signature, domain)
    except SigningError:
        return False
    return recovered.lower() == expected.lower()
