#!/usr/bin/env python
"""Main entry point for the Strata vault MCP server."""
import argparse
import atexit
import logging
import os
import sys
from pathlib import Path

from strata_vault.config import config
from strata_vault.exceptions import ConfigurationError
from strata_vault.observability import configure_logging, metrics
from strata_vault.server.mcp_server import StrataMcpServer


def parse_args(argv=None):
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(description="Strata Vault MCP Server")
    parser.add_argument(
        "--vault-path",
        help="Vault root directory holding entries/ and .strata/",
        type=str,
        default=os.environ.get("STRATA_VAULT_PATH")
    )
    parser.add_argument(
        "--log-level",
        help="Logging level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        default=os.environ.get("STRATA_LOG_LEVEL", "INFO")
    )
    return parser.parse_args(argv)


def update_config(args):
    """Update the global config with command line arguments."""
    if args.vault_path:
        config.vault_path = Path(args.vault_path)
    if args.log_level:
        config.log_level = args.log_level.upper()


def _save_metrics_on_exit():
    """Save metrics to disk on server shutdown."""
    try:
        if metrics.save_metrics():
            logging.getLogger(__name__).info("Metrics saved to disk on shutdown")
    except Exception as e:
        logging.getLogger(__name__).warning(f"Failed to save metrics on shutdown: {e}")


def main(argv=None):
    """Run the Strata vault MCP server."""
    args = parse_args(argv)
    update_config(args)

    # Console + persistent file logging with rotation
    log_level = getattr(logging, config.log_level, logging.INFO)
    try:
        log_dir = configure_logging(log_dir=config.log_dir, level=log_level, console=True)
    except Exception as e:
        logging.basicConfig(level=log_level)
        logging.getLogger(__name__).warning(f"Failed to configure file logging: {e}")
        log_dir = None

    logger = logging.getLogger(__name__)
    if log_dir:
        logger.info(f"Persistent logging enabled: {log_dir}")

    atexit.register(_save_metrics_on_exit)

    try:
        vault_path = config.ensure_vault()
        logger.info(f"Using vault: {vault_path}")
    except ConfigurationError as e:
        logger.error(f"Failed to prepare vault: {e}")
        sys.exit(1)

    try:
        logger.info("Starting Strata vault MCP server")
        server = StrataMcpServer()
        server.run()
    except Exception as e:
        logger.error(f"Error running server: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
