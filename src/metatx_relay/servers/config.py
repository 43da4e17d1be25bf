"""
Relayer configuration.

``RelayerConfig`` is built once at startup (normally from the environment
via ``RelayerConfig.from_env()``, which also reads a ``.env`` file) and is
immutable afterwards.  Invalid or missing values raise
``ConfigurationError`` before the server binds its port.
"""

import logging
import os
from typing import Any, Dict, List, Mapping, Optional

import dotenv
from eth_account import Account
from pydantic import BaseModel, ConfigDict, Field, SecretStr, ValidationError as SchemaValidationError, field_validator

from ..engine.exceptions import ConfigurationError
from ..evm.standards import SOMNIA_TESTNET_CHAIN_ID
from ..schemas.bases import normalize_address
from ..schemas.https import summarize_validation_error

DEFAULT_RPC_URL = "https://50312.rpc.thirdweb.com"
DEFAULT_FORWARDER_ADDRESS = "0x46ebee7eb63906a4d732e29556bdf2b226966445"
DEFAULT_SOCIAL_CORE_ADDRESS = "0xd7ef3cde3c4326b4e18891442bd64cf749919619"

#: Environment variable -> RelayerConfig field.
ENV_FIELDS: Dict[str, str] = {
    "RPC_URL": "rpc_url",
    "RELAYER_PRIVATE_KEY": "relayer_private_key",
    "FORWARDER_ADDRESS": "forwarder_address",
    "SOCIAL_CORE_ADDRESS": "social_core_address",
    "CHAIN_ID": "chain_id",
    "HOST": "host",
    "PORT": "port",
    "RPC_TIMEOUT": "rpc_timeout",
    "RECEIPT_TIMEOUT": "receipt_timeout",
    "SERIALIZE_PER_SENDER": "serialize_per_sender",
    "CORS_ORIGINS": "cors_origins",
    "LOG_LEVEL": "log_level",
}


class RelayerConfig(BaseModel):
    """
    Immutable relayer settings.

    Attributes:
        rpc_url: JSON-RPC endpoint of the chain.
        relayer_private_key: Key of the funded account paying gas.
        forwarder_address: ``ERC2771Forwarder`` deployment.
        social_core_address: Main target contract (echoed by ``/health``).
        chain_id: Chain the forwarder lives on.
        host: Interface to bind.
        port: Port to bind.
        rpc_timeout: Per-request RPC timeout in seconds.
        receipt_timeout: Seconds to wait for a transaction receipt.
        serialize_per_sender: Run requests from the same sender one at a time.
        cors_origins: Origins allowed by CORS (``*`` for any).
        log_level: Root log level name.
    """
    model_config = ConfigDict(frozen=True, validate_default=True)

    rpc_url: str = DEFAULT_RPC_URL
    relayer_private_key: SecretStr
    forwarder_address: str = DEFAULT_FORWARDER_ADDRESS
    social_core_address: str = DEFAULT_SOCIAL_CORE_ADDRESS
    chain_id: int = Field(SOMNIA_TESTNET_CHAIN_ID, gt=0)
    host: str = "0.0.0.0"
    port: int = Field(3001, ge=1, le=65535)
    rpc_timeout: float = Field(30.0, gt=0)
    receipt_timeout: float = Field(120.0, gt=0)
    serialize_per_sender: bool = True
    cors_origins: List[str] = Field(default_factory=lambda: ["*"])
    log_level: str = "INFO"

    @field_validator("forwarder_address", "social_core_address", mode="before")
    @classmethod
    def _checksum(cls, value: Any) -> str:
        return normalize_address(value)

    @field_validator("relayer_private_key", mode="before")
    @classmethod
    def _private_key(cls, value: Any) -> Any:
        raw = value.get_secret_value() if isinstance(value, SecretStr) else value
        if not raw:
            raise ValueError("relayer private key is required")
        try:
            Account.from_key(raw)
        except Exception as e:
            raise ValueError("relayer private key is not a valid secp256k1 key") from e
        return raw

    @field_validator("cors_origins", mode="before")
    @classmethod
    def _split_origins(cls, value: Any) -> Any:
        if isinstance(value, str):
            return [origin.strip() for origin in value.split(",") if origin.strip()]
        return value

    @field_validator("log_level", mode="before")
    @classmethod
    def _log_level(cls, value: Any) -> str:
        level = str(value).strip().upper()
        if not isinstance(logging.getLevelName(level), int):
            raise ValueError(f"unknown log level {value!r}")
        return level

    @property
    def relayer_address(self) -> str:
        return Account.from_key(self.relayer_private_key.get_secret_value()).address

    @classmethod
    def from_env(
        cls,
        environ: Optional[Mapping[str, str]] = None,
        dotenv_path: Optional[str] = None,
    ) -> "RelayerConfig":
        """
        Build the configuration from environment variables.

        Args:
            environ: Mapping to read instead of ``os.environ``; when given,
                no ``.env`` file is loaded.
            dotenv_path: Explicit ``.env`` file to load.

        Raises:
            ConfigurationError: Missing signing key or any invalid value.
        """
        if environ is None:
            dotenv.load_dotenv(dotenv_path)
            environ = os.environ

        values = {
            field_name: environ[env_name]
            for env_name, field_name in ENV_FIELDS.items()
            if environ.get(env_name) not in (None, "")
        }
        if "relayer_private_key" not in values:
            raise ConfigurationError("RELAYER_PRIVATE_KEY is not set")
        return cls.build(**values)

    @classmethod
    def build(cls, **values: Any) -> "RelayerConfig":
        """Validate ``values`` into a config, raising ``ConfigurationError``."""
        try:
            return cls(**values)
        except SchemaValidationError as e:
            raise ConfigurationError(f"Invalid relayer configuration: {summarize_validation_error(e)}") from e

    def describe(self) -> Dict[str, Any]:
        """Loggable summary with the private key left out."""
        return {
            "relayer": self.relayer_address,
            "forwarder": self.forwarder_address,
            "social_core": self.social_core_address,
            "chain_id": self.chain_id,
            "rpc_url": self.rpc_url,
            "serialize_per_sender": self.serialize_per_sender,
        }
