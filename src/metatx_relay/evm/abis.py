"""
Forwarder and Target Contract ABI Module

Minimal ABI definitions for the contracts the relay talks to:

- OpenZeppelin ``ERC2771Forwarder``: ``execute``, ``nonces``, ``verify`` and
  the custom errors it reverts with.
- ``ERC2771Context`` targets: ``isTrustedForwarder``.
- The social application's ``SocialCore`` and ``PostNFT`` entry points that
  the client invokes through meta-transactions.

Usage:
    from metatx_relay.evm.abis import get_forwarder_abi, get_social_core_abi

    contract = web3.eth.contract(address=forwarder, abi=get_forwarder_abi())
    nonce = await contract.functions.nonces(user).call()
"""

from typing import Any, Dict, List

_FORWARD_REQUEST_DATA_COMPONENTS: List[Dict[str, str]] = [
    {"name": "from", "type": "address"},
    {"name": "to", "type": "address"},
    {"name": "value", "type": "uint256"},
    {"name": "gas", "type": "uint256"},
    {"name": "deadline", "type": "uint48"},
    {"name": "data", "type": "bytes"},
    {"name": "signature", "type": "bytes"},
]


def get_forwarder_error_abi() -> List[Dict[str, Any]]:
    """
    Custom errors raised by ``ERC2771Forwarder``.

    Returns:
        List[Dict[str, Any]]: ABI error entries, used for revert decoding.
    """
    return [
        {
            "name": "ERC2771ForwarderInvalidSigner",
            "type": "error",
            "inputs": [
                {"name": "signer", "type": "address"},
                {"name": "from", "type": "address"},
            ],
        },
        {
            "name": "ERC2771ForwarderMismatchedValue",
            "type": "error",
            "inputs": [
                {"name": "requestedValue", "type": "uint256"},
                {"name": "msgValue", "type": "uint256"},
            ],
        },
        {
            "name": "ERC2771ForwarderExpiredRequest",
            "type": "error",
            "inputs": [{"name": "deadline", "type": "uint48"}],
        },
        {
            "name": "ERC2771UntrustfulTarget",
            "type": "error",
            "inputs": [
                {"name": "target", "type": "address"},
                {"name": "forwarder", "type": "address"},
            ],
        },
    ]


def get_forwarder_abi() -> List[Dict[str, Any]]:
    """
    ABI for ``ERC2771Forwarder``.

    Returns:
        List[Dict[str, Any]]: ``execute`` (payable), ``nonces``, ``verify``
        plus the forwarder's custom errors.

    Example:
        contract = web3.eth.contract(address=forwarder, abi=get_forwarder_abi())
        await contract.functions.execute(request.execute_args()).estimate_gas(...)
    """
    return [
        {
            "name": "execute",
            "type": "function",
            "stateMutability": "payable",
            "inputs": [
                {
                    "name": "request",
                    "type": "tuple",
                    "components": _FORWARD_REQUEST_DATA_COMPONENTS,
                }
            ],
            "outputs": [],
        },
        {
            "name": "nonces",
            "type": "function",
            "stateMutability": "view",
            "inputs": [{"name": "owner", "type": "address"}],
            "outputs": [{"name": "", "type": "uint256"}],
        },
        {
            "name": "verify",
            "type": "function",
            "stateMutability": "view",
            "inputs": [
                {
                    "name": "request",
                    "type": "tuple",
                    "components": _FORWARD_REQUEST_DATA_COMPONENTS,
                }
            ],
            "outputs": [{"name": "", "type": "bool"}],
        },
    ] + get_forwarder_error_abi()


def get_trusted_forwarder_abi() -> List[Dict[str, Any]]:
    """
    ABI for ``ERC2771Context.isTrustedForwarder(address) -> bool``.

    Queried against the target contract before any gas is spent.
    """
    return [
        {
            "name": "isTrustedForwarder",
            "type": "function",
            "stateMutability": "view",
            "inputs": [{"name": "forwarder", "type": "address"}],
            "outputs": [{"name": "", "type": "bool"}],
        }
    ]


def _function(name: str, inputs: List[Dict[str, str]], mutability: str = "nonpayable") -> Dict[str, Any]:
    return {
        "name": name,
        "type": "function",
        "stateMutability": mutability,
        "inputs": inputs,
        "outputs": [],
    }


def get_social_core_abi() -> List[Dict[str, Any]]:
    """
    Write entry points of ``SocialCore`` reached through meta-transactions.

    Returns:
        List[Dict[str, Any]]: ``createProfile``, ``createPost``,
        ``toggleLike``, ``createComment`` and ``isTrustedForwarder``.
    """
    return [
        _function("createProfile", [{"name": "username", "type": "string"}]),
        _function("createPost", [{"name": "content", "type": "string"}]),
        _function("toggleLike", [{"name": "postId", "type": "uint256"}]),
        _function(
            "createComment",
            [
                {"name": "postId", "type": "uint256"},
                {"name": "content", "type": "string"},
            ],
        ),
    ] + get_trusted_forwarder_abi()


def get_post_nft_abi() -> List[Dict[str, Any]]:
    """
    Marketplace entry points of ``PostNFT`` reached through meta-transactions.

    ``buyNFT`` is payable: the relayer forwards ``value`` from its own balance.
    """
    return [
        _function(
            "createPostNFT",
            [
                {"name": "postId", "type": "uint256"},
                {"name": "listForSale", "type": "bool"},
            ],
        ),
        _function("listNFT", [{"name": "tokenId", "type": "uint256"}]),
        _function("delistNFT", [{"name": "tokenId", "type": "uint256"}]),
        _function("buyNFT", [{"name": "tokenId", "type": "uint256"}], mutability="payable"),
    ] + get_trusted_forwarder_abi()
