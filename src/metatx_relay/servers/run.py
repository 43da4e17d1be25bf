"""
Relayer process entry point.

    metatx-relayer [--env-file .env] [--host 0.0.0.0] [--port 3001] [--log-level INFO]
    python -m metatx_relay.servers

Configuration comes from the environment (see ``RelayerConfig``); command
line flags override the matching variables.
"""

import argparse
import logging
import sys
from typing import List, Optional

import uvicorn

from ..engine.exceptions import ConfigurationError
from .apps import create_app
from .config import RelayerConfig

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def configure_logging(level: str = "INFO") -> None:
    """Configure root logging for the relayer process."""
    logging.basicConfig(level=getattr(logging, level.upper()), format=LOG_FORMAT)


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Gasless meta-transaction relayer")
    parser.add_argument("--env-file", default=None, help="Path of a .env file to load")
    parser.add_argument("--host", default=None, help="Interface to bind (overrides HOST)")
    parser.add_argument("--port", type=int, default=None, help="Port to bind (overrides PORT)")
    parser.add_argument("--log-level", default=None, help="Log level (overrides LOG_LEVEL)")
    return parser.parse_args(argv)


def load_config(args: argparse.Namespace) -> RelayerConfig:
    """Environment configuration with command line overrides applied."""
    config = RelayerConfig.from_env(dotenv_path=args.env_file)
    overrides = {
        key: value
        for key, value in (("host", args.host), ("port", args.port), ("log_level", args.log_level))
        if value is not None
    }
    if not overrides:
        return config
    values = config.model_dump()
    values["relayer_private_key"] = config.relayer_private_key.get_secret_value()
    values.update(overrides)
    return RelayerConfig.build(**values)


def main(argv: Optional[List[str]] = None) -> None:
    """Main entrypoint."""
    args = parse_args(argv)

    try:
        config = load_config(args)
    except ConfigurationError as e:
        configure_logging("ERROR")
        logger.error("Configuration error: %s", e.message)
        sys.exit(1)

    configure_logging(config.log_level)

    app = create_app(config)
    logger.info("Starting relayer on %s:%d", config.host, config.port)
    for key, value in config.describe().items():
        logger.info("  %s: %s", key, value)
    logger.info("Health endpoint: http://%s:%d/health", config.host, config.port)

    uvicorn.run(app, host=config.host, port=config.port, log_level=config.log_level.lower())


if __name__ == "__main__":
    main()
