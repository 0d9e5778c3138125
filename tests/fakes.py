"""In-memory stand-in for DatabaseManager used across the test suite."""

from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from mssql_mcp.database_manager import BatchResult


class FakeDatabase:
    """Answers catalog reads by SQL fragment and records every statement."""

    def __init__(self):
        self.fetch_responses: List[Tuple[str, Any, Optional[Dict[str, Any]]]] = []
        self.fetch_calls: List[Tuple[str, Dict[str, Any]]] = []
        self.batch_calls: List[Tuple[str, Optional[Sequence[Any]]]] = []
        self.batch_handler: Optional[Callable[[str, Optional[Sequence[Any]]], BatchResult]] = None
        self.connected = False
        self.disconnected = False

    def respond(self, fragment: str, rows, params: Optional[Dict[str, Any]] = None) -> None:
        """Return ``rows`` (or raise it, if an exception) for SQL containing ``fragment``.

        With ``params``, only calls binding exactly those values match.
        """
        self.fetch_responses.append((fragment, rows, params))

    async def connect(self, config) -> None:
        self.connected = True

    async def disconnect(self) -> None:
        self.disconnected = True

    async def fetch_all(self, sql: str, params: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
        self.fetch_calls.append((sql, params or {}))
        for fragment, rows, expected in self.fetch_responses:
            if fragment in sql and (expected is None or expected == (params or {})):
                if isinstance(rows, Exception):
                    raise rows
                return [dict(row) for row in rows]
        return []

    async def execute_batch(self, sql: str, params: Optional[Sequence[Any]] = None) -> BatchResult:
        self.batch_calls.append((sql, list(params) if params else None))
        if self.batch_handler is None:
            return BatchResult()
        return self.batch_handler(sql, params)


def recordset(rows, *more) -> BatchResult:
    """BatchResult whose row counts mirror the recordsets."""
    sets = [list(rows)] + [list(m) for m in more]
    return BatchResult(recordsets=sets, rows_affected=[len(s) for s in sets])
