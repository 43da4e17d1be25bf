import os

import pytest
from eth_utils import to_checksum_address
from pydantic import ValidationError as SchemaValidationError

from metatx_relay.engine.exceptions import ConfigurationError
from metatx_relay.servers.config import (
    DEFAULT_FORWARDER_ADDRESS,
    DEFAULT_RPC_URL,
    RelayerConfig,
)

from relay_mocks import MOCK_RELAYER_ADDRESS, MOCK_RELAYER_PRIVATE_KEY, create_config


class TestFromEnv:

    def test_defaults(self):
        config = RelayerConfig.from_env({"RELAYER_PRIVATE_KEY": MOCK_RELAYER_PRIVATE_KEY})

        assert config.rpc_url == DEFAULT_RPC_URL
        assert config.forwarder_address.lower() == DEFAULT_FORWARDER_ADDRESS
        assert config.chain_id == 50312
        assert config.port == 3001
        assert config.serialize_per_sender is True
        assert config.cors_origins == ["*"]
        assert config.relayer_address == MOCK_RELAYER_ADDRESS

    def test_overrides(self):
        config = RelayerConfig.from_env({
            "RELAYER_PRIVATE_KEY": MOCK_RELAYER_PRIVATE_KEY,
            "PORT": "8080",
            "CHAIN_ID": "1",
            "SERIALIZE_PER_SENDER": "false",
            "CORS_ORIGINS": "https://a.example, https://b.example",
            "LOG_LEVEL": "debug",
            "FORWARDER_ADDRESS": "0x" + "ab" * 20,
        })

        assert config.port == 8080
        assert config.chain_id == 1
        assert config.serialize_per_sender is False
        assert config.cors_origins == ["https://a.example", "https://b.example"]
        assert config.log_level == "DEBUG"
        assert config.forwarder_address == to_checksum_address("0x" + "ab" * 20)

    def test_empty_values_fall_back_to_defaults(self):
        config = RelayerConfig.from_env({"RELAYER_PRIVATE_KEY": MOCK_RELAYER_PRIVATE_KEY, "PORT": ""})
        assert config.port == 3001

    def test_missing_private_key(self):
        with pytest.raises(ConfigurationError, match="RELAYER_PRIVATE_KEY"):
            RelayerConfig.from_env({})

    @pytest.mark.parametrize(
        "name,value",
        [
            ("RELAYER_PRIVATE_KEY", "0x1234"),
            ("FORWARDER_ADDRESS", "0xnot-an-address"),
            ("PORT", "seventy"),
            ("PORT", "70000"),
            ("CHAIN_ID", "0"),
            ("LOG_LEVEL", "chatty"),
        ],
    )
    def test_invalid_values(self, name, value):
        environ = {"RELAYER_PRIVATE_KEY": MOCK_RELAYER_PRIVATE_KEY, name: value}
        with pytest.raises(ConfigurationError, match="Invalid relayer configuration"):
            RelayerConfig.from_env(environ)

    def test_dotenv_file(self, tmp_path, monkeypatch):
        for name in ("RELAYER_PRIVATE_KEY", "PORT"):
            monkeypatch.delenv(name, raising=False)
        env_file = tmp_path / ".env"
        env_file.write_text(f"RELAYER_PRIVATE_KEY={MOCK_RELAYER_PRIVATE_KEY}\nPORT=4000\n")

        try:
            config = RelayerConfig.from_env(dotenv_path=str(env_file))
        finally:
            os.environ.pop("RELAYER_PRIVATE_KEY", None)
            os.environ.pop("PORT", None)

        assert config.port == 4000
        assert config.relayer_address == MOCK_RELAYER_ADDRESS


class TestConfig:

    def test_frozen(self):
        config = create_config()
        with pytest.raises(SchemaValidationError):
            config.port = 1

    def test_private_key_is_not_rendered(self):
        config = create_config()
        assert MOCK_RELAYER_PRIVATE_KEY not in repr(config)
        assert MOCK_RELAYER_PRIVATE_KEY[2:] not in str(config.describe())
        assert config.describe()["relayer"] == MOCK_RELAYER_ADDRESS

    def test_build_wraps_validation_errors(self):
        with pytest.raises(ConfigurationError):
            RelayerConfig.build(relayer_private_key=MOCK_RELAYER_PRIVATE_KEY, rpc_timeout=-1)
