#!/usr/bin/env python3
"""Startup script for the SQL Server MCP Server."""

import logging
import sys

from mssql_mcp import __version__
from mssql_mcp.config import config_manager
from mssql_mcp.error_handling import ConfigurationError
from mssql_mcp.registry import list_tool_definitions
from mssql_mcp.utils import setup_logging, sanitize_for_logging

logger = logging.getLogger(__name__)


def main():
    """Start the MCP server."""
    server_config = config_manager.get_server_config()
    # Logs go to stderr so they don't interfere with the MCP protocol
    setup_logging(server_config.log_level, server_config.structured_logging)

    logger.info(f"Starting SQL Server MCP Server v{__version__}...")

    try:
        db_config = config_manager.require_database_config()
    except ConfigurationError as e:
        logger.error(f"Error: {e.message}")
        if e.details:
            logger.error(e.details)
        sys.exit(1)

    logger.info("Database settings: %s", sanitize_for_logging(db_config.describe()))
    logger.info("Available tools:")
    for tool in list_tool_definitions():
        logger.info(f"  - {tool.name}: {tool.description}")

    # Imported late so configuration errors are reported before FastMCP starts
    from mssql_mcp.main import mcp

    try:
        # Run the MCP server using stdio transport
        mcp.run()
    except KeyboardInterrupt:
        logger.info("Server stopped by user")
    except Exception as e:
        logger.error(f"Fatal error: {type(e).__name__}: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
