"""Object name resolution and identifier quoting.

``quote_identifier`` is the only place identifiers are turned into SQL text.
Callers pass it names produced by ``resolve_object_name`` or read back from
the system catalog, never free-form user input bound for a predicate.
"""

from dataclasses import dataclass
from typing import List

from .constants import DEFAULT_SCHEMA
from .error_handling import InvalidArgumentsError


@dataclass(frozen=True)
class TableRef:
    """A schema-qualified object name."""
    schema: str
    name: str

    @property
    def qualified_name(self) -> str:
        return f"{quote_identifier(self.schema)}.{quote_identifier(self.name)}"

    def __str__(self) -> str:
        return f"{self.schema}.{self.name}"


def quote_identifier(name: str) -> str:
    """Bracket-quote an identifier, doubling any closing bracket."""
    if not name:
        raise InvalidArgumentsError("Identifier must not be empty")
    return "[" + name.replace("]", "]]") + "]"


def _split_parts(raw: str) -> List[str]:
    """Split on dots that are not inside [..] or "..." delimiters."""
    parts = []
    current = []
    closer = None
    i = 0
    while i < len(raw):
        ch = raw[i]
        if closer:
            if ch == closer:
                # doubled closer is an escaped literal
                if i + 1 < len(raw) and raw[i + 1] == closer:
                    current.append(ch)
                    i += 2
                    continue
                closer = None
            else:
                current.append(ch)
        elif ch == "[":
            closer = "]"
        elif ch == '"':
            closer = '"'
        elif ch == ".":
            parts.append("".join(current).strip())
            current = []
        else:
            current.append(ch)
        i += 1

    if closer:
        raise InvalidArgumentsError(f"Unterminated delimited identifier in '{raw}'")
    parts.append("".join(current).strip())
    return parts


def resolve_object_name(raw: str, default_schema: str = DEFAULT_SCHEMA) -> TableRef:
    """Split ``schema.name`` (or a bare ``name``) into a TableRef.

    No existence check happens here; callers find out from the catalog.
    """
    if raw is None or not str(raw).strip():
        raise InvalidArgumentsError("Object name must not be empty")

    parts = _split_parts(str(raw).strip())
    if len(parts) > 2:
        raise InvalidArgumentsError(
            f"Invalid object name '{raw}'",
            details="Use 'name' or 'schema.name'"
        )
    if any(not part for part in parts):
        raise InvalidArgumentsError(f"Invalid object name '{raw}'", details="Name parts must not be empty")

    if len(parts) == 1:
        return TableRef(schema=default_schema, name=parts[0])
    return TableRef(schema=parts[0], name=parts[1])


def has_explicit_schema(raw: str) -> bool:
    """True when ``raw`` names its schema, e.g. ``sales.Orders`` or ``[sys].[sp_who]``."""
    return len(_split_parts(str(raw).strip())) == 2
