"""Static catalog of the tools this server exposes."""

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Awaitable, Callable, Dict, Mapping, Optional, Tuple

from .constants import DEFAULT_QUERY_MAX_ROWS, DEFAULT_SEARCH_MAX_ROWS
from .tools import procedures, query, schema

# JSON schema type name -> accepted Python types
PYTHON_TYPES: Dict[str, Tuple[type, ...]] = {
    "string": (str,),
    "integer": (int, float),
    "object": (dict,),
    "array": (list, tuple),
}


@dataclass(frozen=True)
class ParameterSpec:
    """One entry of a tool's input contract."""
    type: str
    description: str
    required: bool = False
    default: Any = None
    python_name: Optional[str] = None
    items: Optional[str] = None
    minimum: Optional[int] = None


@dataclass(frozen=True)
class ToolDefinition:
    """A named operation, its input contract, and the coroutine implementing it."""
    name: str
    description: str
    parameters: Mapping[str, ParameterSpec] = field(default_factory=dict)
    handler: Optional[Callable[..., Awaitable[Any]]] = field(default=None, compare=False, repr=False)

    @property
    def required(self) -> Tuple[str, ...]:
        return tuple(name for name, spec in self.parameters.items() if spec.required)


_TOOLS = (
    ToolDefinition(
        name="execute_query",
        description=(
            "Execute a read-only SQL query and return results. "
            "INSERT, UPDATE, DELETE and other modifying statements are refused."
        ),
        parameters={
            "query": ParameterSpec("string", "SQL query to execute", required=True),
            "maxRows": ParameterSpec(
                "integer", f"Maximum number of rows to return (default: {DEFAULT_QUERY_MAX_ROWS})",
                default=DEFAULT_QUERY_MAX_ROWS, python_name="max_rows", minimum=1
            ),
        },
        handler=query.execute_query,
    ),
    ToolDefinition(
        name="list_tables",
        description="List all tables in the database with row counts and storage size",
        parameters={
            "schema": ParameterSpec("string", "Filter by schema name (optional)"),
        },
        handler=schema.list_tables,
    ),
    ToolDefinition(
        name="describe_table",
        description=(
            "Get detailed information about a table including columns, data types, "
            "constraints, and indexes"
        ),
        parameters={
            "tableName": ParameterSpec(
                "string", "Name of the table (can include schema, e.g., dbo.Orders)",
                required=True, python_name="table_name"
            ),
        },
        handler=schema.describe_table,
    ),
    ToolDefinition(
        name="list_stored_procedures",
        description="List all stored procedures in the database",
        parameters={
            "schema": ParameterSpec("string", "Filter by schema name (optional)"),
        },
        handler=procedures.list_stored_procedures,
    ),
    ToolDefinition(
        name="get_stored_procedure_definition",
        description="Get the definition/source code of a stored procedure",
        parameters={
            "procedureName": ParameterSpec(
                "string", "Name of the stored procedure (can include schema)",
                required=True, python_name="procedure_name"
            ),
        },
        handler=procedures.get_stored_procedure_definition,
    ),
    ToolDefinition(
        name="execute_stored_procedure",
        description="Execute a stored procedure with parameters",
        parameters={
            "procedureName": ParameterSpec(
                "string", "Name of the stored procedure (can include schema)",
                required=True, python_name="procedure_name"
            ),
            "parameters": ParameterSpec(
                "object",
                'Parameters as key-value pairs (e.g., {"@param1": "value1", "param2": 123})'
            ),
        },
        handler=procedures.execute_stored_procedure,
    ),
    ToolDefinition(
        name="search_data",
        description="Search for data across specified table columns",
        parameters={
            "tableName": ParameterSpec(
                "string", "Name of the table to search in", required=True, python_name="table_name"
            ),
            "searchTerm": ParameterSpec(
                "string", "Term to search for", required=True, python_name="search_term"
            ),
            "columns": ParameterSpec(
                "array",
                "Columns to search in (optional, searches all text columns if not specified)",
                items="string"
            ),
            "maxRows": ParameterSpec(
                "integer", f"Maximum rows to return (default: {DEFAULT_SEARCH_MAX_ROWS})",
                default=DEFAULT_SEARCH_MAX_ROWS, python_name="max_rows", minimum=1
            ),
        },
        handler=query.search_data,
    ),
    ToolDefinition(
        name="get_table_relationships",
        description="Get foreign key relationships for a table",
        parameters={
            "tableName": ParameterSpec(
                "string", "Name of the table", required=True, python_name="table_name"
            ),
        },
        handler=schema.get_table_relationships,
    ),
)

TOOL_DEFINITIONS: Mapping[str, ToolDefinition] = MappingProxyType({tool.name: tool for tool in _TOOLS})


def list_tool_definitions():
    """Tool definitions in registration order."""
    return list(TOOL_DEFINITIONS.values())
