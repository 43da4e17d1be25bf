import pytest
from fastapi.testclient import TestClient

from relay_mocks import (
    MOCK_NOW,
    InMemoryForwarderChain,
    create_config,
    create_gateway,
)
from metatx_relay.servers.apps import RelayerServer


@pytest.fixture
def chain():
    return InMemoryForwarderChain()


@pytest.fixture
def gateway(chain):
    return create_gateway(chain)


@pytest.fixture
def config():
    return create_config()


@pytest.fixture
def app(config, gateway):
    return RelayerServer(config, gateway=gateway, clock=lambda: MOCK_NOW)


@pytest.fixture
def client(app):
    with TestClient(app) as test_client:
        yield test_client
