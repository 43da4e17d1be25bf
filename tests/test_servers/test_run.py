from unittest.mock import Mock, patch

import pytest

from metatx_relay.servers.run import load_config, main, parse_args

from relay_mocks import MOCK_RELAYER_PRIVATE_KEY


@pytest.fixture
def relayer_env(monkeypatch):
    monkeypatch.setenv("RELAYER_PRIVATE_KEY", MOCK_RELAYER_PRIVATE_KEY)
    for name in ("HOST", "PORT", "LOG_LEVEL"):
        monkeypatch.delenv(name, raising=False)
    with patch("metatx_relay.servers.config.dotenv.load_dotenv"):
        yield


def test_parse_args_defaults():
    args = parse_args([])
    assert args.env_file is None
    assert args.port is None


def test_command_line_overrides_environment(relayer_env, monkeypatch):
    monkeypatch.setenv("PORT", "5000")
    config = load_config(parse_args(["--port", "4000", "--host", "127.0.0.1", "--log-level", "warning"]))

    assert config.port == 4000
    assert config.host == "127.0.0.1"
    assert config.log_level == "WARNING"
    assert config.relayer_private_key.get_secret_value() == MOCK_RELAYER_PRIVATE_KEY


def test_environment_only(relayer_env, monkeypatch):
    monkeypatch.setenv("PORT", "5000")
    assert load_config(parse_args([])).port == 5000


def test_main_starts_uvicorn(relayer_env):
    app = Mock()
    with patch("metatx_relay.servers.run.create_app", return_value=app) as create_app, \
            patch("metatx_relay.servers.run.uvicorn.run") as run:
        main(["--port", "4000"])

    create_app.assert_called_once()
    run.assert_called_once_with(app, host="0.0.0.0", port=4000, log_level="info")


def test_main_exits_on_configuration_error(relayer_env, monkeypatch):
    monkeypatch.delenv("RELAYER_PRIVATE_KEY")
    with patch("metatx_relay.servers.run.uvicorn.run") as run:
        with pytest.raises(SystemExit) as exc_info:
            main([])

    assert exc_info.value.code == 1
    run.assert_not_called()
