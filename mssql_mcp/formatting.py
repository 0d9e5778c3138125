"""Result shaping: row serialization, truncation, and the MCP text envelope."""

import json
import re
from dataclasses import dataclass, field, fields, is_dataclass
from datetime import date, datetime, time
from decimal import Decimal
from typing import Any, Dict, List, Optional
from uuid import UUID

_CAMEL_BOUNDARY = re.compile(r"_([a-z0-9])")


@dataclass
class QueryResult:
    """A possibly truncated recordset; ``recordset_count`` is the true total."""
    rows_affected: int
    recordset: List[Dict[str, Any]] = field(default_factory=list)
    recordset_count: int = 0
    note: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "rowsAffected": self.rows_affected,
            "recordset": to_jsonable(self.recordset),
            "recordsetCount": self.recordset_count,
        }
        if self.note:
            data["note"] = self.note
        return data


def camel_case(name: str) -> str:
    return _CAMEL_BOUNDARY.sub(lambda m: m.group(1).upper(), name)


def serialize_value(value: Any) -> Any:
    """Convert a driver value into something JSON can carry."""
    if value is None or isinstance(value, (bool, int, float, str)):
        return value
    if isinstance(value, (datetime, date, time)):
        return value.isoformat()
    if isinstance(value, (bytes, bytearray, memoryview)):
        return bytes(value).hex()
    if isinstance(value, (Decimal, UUID)):
        return str(value)
    return str(value)


def to_jsonable(obj: Any) -> Any:
    """Recursively convert payloads; dataclass fields become camelCase keys.

    Row dicts keep their column names untouched.
    """
    if hasattr(obj, "to_dict"):
        return obj.to_dict()
    if is_dataclass(obj) and not isinstance(obj, type):
        return {camel_case(f.name): to_jsonable(getattr(obj, f.name)) for f in fields(obj)}
    if isinstance(obj, dict):
        return {key: to_jsonable(value) for key, value in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [to_jsonable(item) for item in obj]
    return serialize_value(obj)


def truncate_recordset(rows: List[Dict[str, Any]], max_rows: int,
                       rows_affected: Optional[int] = None) -> QueryResult:
    """Cap ``rows`` at ``max_rows`` and note the truncation if it happened."""
    total = len(rows)
    result = QueryResult(
        rows_affected=total if rows_affected is None else rows_affected,
        recordset=list(rows[:max_rows]),
        recordset_count=total,
    )
    if total > max_rows:
        result.note = f"Only showing first {max_rows} rows out of {total} total rows"
    return result


def to_text(payload: Any) -> str:
    if isinstance(payload, str):
        return payload
    return json.dumps(to_jsonable(payload), indent=2, default=str)


def build_envelope(payload: Any) -> Dict[str, Any]:
    """Wrap a payload in the MCP tool-call content shape."""
    return {"content": [{"type": "text", "text": to_text(payload)}]}
