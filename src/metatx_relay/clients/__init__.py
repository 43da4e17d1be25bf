"""
Client module for gasless meta-transactions.

Provides the sign flow (nonce oracle + typed-data signer), the relayer HTTP
client and a facade tying them together.
"""

from .nonces import NonceOracle, HttpNonceOracle, ChainNonceOracle
from .relay_client import RelayClient, RelaySubmission
from .signer import (
    MetaTransactionSigner,
    TypedDataSigningAgent,
    LocalAccountAgent,
    Signed,
    NonceRace,
    UserRejected,
)
from .meta_transactions import MetaTransactionClient, SocialActions

__all__ = [
    "NonceOracle",
    "HttpNonceOracle",
    "ChainNonceOracle",
    "RelayClient",
    "RelaySubmission",
    "MetaTransactionSigner",
    "TypedDataSigningAgent",
    "LocalAccountAgent",
    "Signed",
    "NonceRace",
    "UserRejected",
    "MetaTransactionClient",
    "SocialActions",
]
