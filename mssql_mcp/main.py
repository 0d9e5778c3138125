"""Main MCP server application using FastMCP."""

import logging
from contextlib import asynccontextmanager
from typing import Annotated, Any, AsyncIterator, Dict, List, Optional

from fastmcp import FastMCP, Context
from fastmcp.exceptions import ToolError
from pydantic import Field

from .config import DatabaseConfig, config_manager
from .constants import DEFAULT_QUERY_MAX_ROWS, DEFAULT_SEARCH_MAX_ROWS
from .database_manager import DatabaseManager
from .dispatcher import ToolDispatcher, ToolInvocation
from .error_handling import MssqlMcpError
from .registry import TOOL_DEFINITIONS
from . import __version__, __title__ as SERVER_NAME

logger = logging.getLogger(__name__)


# --- Dependency Management ---

class ServerState:
    """Owns the connection pool for the lifetime of the server."""

    def __init__(self, db_config: DatabaseConfig, db_manager: Optional[DatabaseManager] = None):
        self.db_config = db_config
        self.db_manager = db_manager or DatabaseManager()

    async def startup(self) -> None:
        """Open the pool. Any failure here must stop the server from serving."""
        await self.db_manager.connect(self.db_config)

    def create_dispatcher(self) -> ToolDispatcher:
        """A fresh dispatcher per request, sharing only the pool."""
        return ToolDispatcher(self.db_manager)

    async def cleanup(self) -> None:
        """Clean up resources."""
        try:
            await self.db_manager.disconnect()
        except Exception as e:
            logger.warning(f"Error during shutdown: {e}")


@asynccontextmanager
async def server_lifespan(server: FastMCP) -> AsyncIterator[ServerState]:
    """Connect before the first request; dispose the pool on shutdown."""
    state = ServerState(config_manager.require_database_config())
    await state.startup()
    try:
        yield state
    finally:
        logger.info("Cleaning up server resources...")
        await state.cleanup()


# --- MCP Server Setup ---

mcp = FastMCP(
    name=SERVER_NAME,
    instructions="""
# SQL Server MCP Server

Read-only access to one Microsoft SQL Server database.

## Tools
- list_tables / describe_table / get_table_relationships: explore the schema
- list_stored_procedures / get_stored_procedure_definition / execute_stored_procedure
- search_data: find rows containing a term in character columns
- execute_query: run SELECT statements (data and schema changes, EXEC and
  sp_executesql are refused; use execute_stored_procedure for procedures)

## Recommended workflow
1. list_tables() to discover tables and their sizes
2. describe_table(tableName="dbo.Orders") before writing a query
3. get_table_relationships(tableName="dbo.Orders") to find JOIN conditions
4. execute_query(query="SELECT ...", maxRows=100)

Object names may be schema-qualified (`sales.Orders`); the schema defaults to `dbo`.
Large results are truncated to maxRows and annotated with the true row count.

**Server Version**: {__version__}
""".format(__version__=__version__),
    lifespan=server_lifespan,
)


def _description(name: str) -> str:
    return TOOL_DEFINITIONS[name].description


def _param(tool: str, name: str):
    """Field metadata for a tool argument, taken from the registry contract."""
    spec = TOOL_DEFINITIONS[tool].parameters[name]
    return Field(description=spec.description, ge=spec.minimum)


def _server_state(ctx: Context) -> ServerState:
    return ctx.request_context.lifespan_context


async def _run_tool(ctx: Context, name: str, arguments: Dict[str, Any]) -> str:
    """Dispatch one call and unwrap the text content for FastMCP."""
    dispatcher = _server_state(ctx).create_dispatcher()
    invocation = ToolInvocation(
        name=name,
        arguments={k: v for k, v in arguments.items() if v is not None},
    )

    try:
        envelope = await dispatcher.dispatch(invocation)
    except MssqlMcpError as e:
        await ctx.info(f"{name} failed: {e.message}")
        raise ToolError(e.to_json()) from e

    await ctx.info(f"{name} completed")
    return envelope["content"][0]["text"]


# --- MCP Tools ---

@mcp.tool(name="execute_query", description=_description("execute_query"))
async def execute_query(
    ctx: Context,
    query: Annotated[str, _param("execute_query", "query")],
    maxRows: Annotated[int, _param("execute_query", "maxRows")] = DEFAULT_QUERY_MAX_ROWS
) -> str:
    return await _run_tool(ctx, "execute_query", {"query": query, "maxRows": maxRows})


@mcp.tool(name="list_tables", description=_description("list_tables"))
async def list_tables(ctx: Context, schema: Annotated[Optional[str], _param("list_tables", "schema")] = None) -> str:
    return await _run_tool(ctx, "list_tables", {"schema": schema})


@mcp.tool(name="describe_table", description=_description("describe_table"))
async def describe_table(ctx: Context, tableName: Annotated[str, _param("describe_table", "tableName")]) -> str:
    return await _run_tool(ctx, "describe_table", {"tableName": tableName})


@mcp.tool(name="list_stored_procedures", description=_description("list_stored_procedures"))
async def list_stored_procedures(
    ctx: Context,
    schema: Annotated[Optional[str], _param("list_stored_procedures", "schema")] = None
) -> str:
    return await _run_tool(ctx, "list_stored_procedures", {"schema": schema})


@mcp.tool(name="get_stored_procedure_definition", description=_description("get_stored_procedure_definition"))
async def get_stored_procedure_definition(
    ctx: Context,
    procedureName: Annotated[str, _param("get_stored_procedure_definition", "procedureName")]
) -> str:
    return await _run_tool(ctx, "get_stored_procedure_definition", {"procedureName": procedureName})


@mcp.tool(name="execute_stored_procedure", description=_description("execute_stored_procedure"))
async def execute_stored_procedure(
    ctx: Context,
    procedureName: Annotated[str, _param("execute_stored_procedure", "procedureName")],
    parameters: Annotated[Optional[Dict[str, Any]], _param("execute_stored_procedure", "parameters")] = None
) -> str:
    return await _run_tool(
        ctx, "execute_stored_procedure", {"procedureName": procedureName, "parameters": parameters}
    )


@mcp.tool(name="search_data", description=_description("search_data"))
async def search_data(
    ctx: Context,
    tableName: Annotated[str, _param("search_data", "tableName")],
    searchTerm: Annotated[str, _param("search_data", "searchTerm")],
    columns: Annotated[Optional[List[str]], _param("search_data", "columns")] = None,
    maxRows: Annotated[int, _param("search_data", "maxRows")] = DEFAULT_SEARCH_MAX_ROWS
) -> str:
    return await _run_tool(ctx, "search_data", {
        "tableName": tableName,
        "searchTerm": searchTerm,
        "columns": columns,
        "maxRows": maxRows,
    })


@mcp.tool(name="get_table_relationships", description=_description("get_table_relationships"))
async def get_table_relationships(
    ctx: Context,
    tableName: Annotated[str, _param("get_table_relationships", "tableName")]
) -> str:
    return await _run_tool(ctx, "get_table_relationships", {"tableName": tableName})
