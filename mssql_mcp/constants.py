"""Constants shared across the SQL Server MCP server."""

# Connection defaults
DEFAULT_SQLSERVER_PORT = 1433
DEFAULT_ODBC_DRIVER = "ODBC Driver 18 for SQL Server"
CONNECTION_TIMEOUT = 30  # seconds
DEFAULT_POOL_SIZE = 5
DEFAULT_MAX_OVERFLOW = 10
POOL_RECYCLE_SECONDS = 1800
APPLICATION_NAME = "mssql-mcp-server"

# Identifier defaults
DEFAULT_SCHEMA = "dbo"
SYSTEM_SCHEMA = "sys"

# Row caps
DEFAULT_QUERY_MAX_ROWS = 100
DEFAULT_SEARCH_MAX_ROWS = 50

# Catalog type names considered searchable by search_data
TEXT_COLUMN_TYPES = ("varchar", "nvarchar", "char", "nchar", "text", "ntext")

# Statement keywords refused by execute_query
BLOCKED_KEYWORDS = frozenset({
    "INSERT",
    "UPDATE",
    "DELETE",
    "MERGE",
    "TRUNCATE",
    "DROP",
    "ALTER",
    # dynamic SQL and procedure calls, whose statements are never visible here
    "EXEC",
    "EXECUTE",
    "SP_EXECUTESQL",
})

# DB_AUTHENTICATION values mapped to ODBC Authentication keywords
AUTHENTICATION_MODES = {
    "azure-active-directory-default": "ActiveDirectoryDefault",
    "azure-active-directory-password": "ActiveDirectoryPassword",
    "azure-active-directory-msi-vm": "ActiveDirectoryMsi",
    "azure-active-directory-service-principal-secret": "ActiveDirectoryServicePrincipal",
}

# Keys redacted before connection parameters are logged
SENSITIVE_KEYS = {"password", "passwd", "pwd", "secret", "token", "key", "api_key"}
