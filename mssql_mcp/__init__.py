"""SQL Server MCP server - read-mostly SQL Server access for MCP clients."""

__version__ = "1.0.0"
__author__ = "mssql-mcp-server contributors"
__description__ = "MCP server exposing schema introspection, search and read-only queries for Microsoft SQL Server"
__title__ = "mssql-mcp-server"

# Export main components for easier imports
from .database_manager import DatabaseManager
from .dispatcher import ToolDispatcher, ToolInvocation
from .registry import TOOL_DEFINITIONS, ToolDefinition
from .config import config_manager

__all__ = [
    "DatabaseManager",
    "ToolDispatcher",
    "ToolInvocation",
    "ToolDefinition",
    "TOOL_DEFINITIONS",
    "config_manager",
    "__version__",
    "__title__",
    "__description__",
]
