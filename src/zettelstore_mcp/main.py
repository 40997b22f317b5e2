#!/usr/bin/env python
"""Main entry point for the Zettelstore MCP server."""
import argparse
import logging
import sys

from zettelstore_mcp.config import config
from zettelstore_mcp.exceptions import ConfigurationError
from zettelstore_mcp.observability import configure_logging
from zettelstore_mcp.server.mcp_server import ZettelstoreMcpServer


def parse_args(argv=None):
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(description="Zettelstore MCP Server")
    parser.add_argument(
        "--log-level",
        help="Logging level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        default=config.log_level.upper(),
    )
    parser.add_argument(
        "--log-dir",
        help="Directory for rotating log files (default: ~/.zettelstore/logs)",
        type=str,
        default=None,
    )
    return parser.parse_args(argv)


def main(argv=None):
    """Run the Zettelstore MCP server."""
    args = parse_args(argv)

    log_level = getattr(logging, args.log_level.upper(), logging.INFO)
    try:
        log_dir = configure_logging(log_dir=args.log_dir, level=log_level, console=True)
    except OSError as e:
        # Fall back to basic console logging if file logging fails
        logging.basicConfig(level=log_level)
        logging.getLogger(__name__).warning(f"Failed to configure file logging: {e}")
        log_dir = None

    logger = logging.getLogger(__name__)
    if log_dir:
        logger.info(f"Persistent logging enabled: {log_dir}")

    try:
        config.validate_store()
    except ConfigurationError as e:
        logger.error(str(e))
        sys.exit(1)

    if not config.embeddings_configured:
        logger.warning("OPENAI_API_KEY is not set; notes will be stored without embeddings")

    try:
        logger.info("Starting Zettelstore MCP server")
        server = ZettelstoreMcpServer()
        server.run()
    except Exception as e:
        logger.error(f"Error running server: {e}", exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
