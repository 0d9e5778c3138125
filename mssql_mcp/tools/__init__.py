"""Per-operation query logic for the MCP tools."""
