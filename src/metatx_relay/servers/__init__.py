from .apps import RelayerServer, create_app, error_response
from .config import RelayerConfig
from .run import configure_logging, main

__all__ = [
    "RelayerServer",
    "create_app",
    "error_response",
    "RelayerConfig",
    "configure_logging",
    "main",
]
