"""Write guard for ad-hoc queries.

The query text is reduced to its code: comments, string literals and
delimited identifiers are blanked out, then the remaining words are checked
against the blocked statement keywords. A column named ``update_count`` or a
literal such as ``'deleted'`` passes; ``UPDATE``/``delete`` as a word anywhere
in the batch does not. ``EXEC`` and ``sp_executesql`` are refused outright,
since the statements they run are string literals or procedure bodies.
"""

import logging
import re
from typing import List

from .constants import BLOCKED_KEYWORDS
from .error_handling import PolicyViolationError

logger = logging.getLogger(__name__)

WORD_PATTERN = re.compile(r"[A-Za-z_@#$][\w@#$]*")

POLICY_MESSAGE = "Update, delete, and insert statements are not allowed in this tool"


def strip_non_code(sql: str) -> str:
    """Replace comments, string literals and delimited identifiers with spaces."""
    out = []
    i = 0
    n = len(sql)
    while i < n:
        ch = sql[i]
        nxt = sql[i + 1] if i + 1 < n else ""

        if ch == "-" and nxt == "-":
            end = sql.find("\n", i)
            i = n if end == -1 else end
            out.append(" ")
        elif ch == "/" and nxt == "*":
            # block comments nest in T-SQL
            depth = 1
            i += 2
            while i < n and depth:
                if sql.startswith("/*", i):
                    depth += 1
                    i += 2
                elif sql.startswith("*/", i):
                    depth -= 1
                    i += 2
                else:
                    i += 1
            out.append(" ")
        elif ch in ("'", '"', "["):
            closer = "]" if ch == "[" else ch
            i += 1
            while i < n:
                if sql[i] == closer:
                    if i + 1 < n and sql[i + 1] == closer:
                        i += 2
                        continue
                    i += 1
                    break
                i += 1
            out.append(" ")
        else:
            out.append(ch)
            i += 1
    return "".join(out)


def find_blocked_keywords(sql: str) -> List[str]:
    """Blocked keywords used as words in the statement, in order of appearance."""
    found = []
    for word in WORD_PATTERN.findall(strip_non_code(sql or "")):
        keyword = word.upper()
        if keyword in BLOCKED_KEYWORDS and keyword not in found:
            found.append(keyword)
    return found


def enforce_read_only(sql: str, operation: str = "execute_query") -> None:
    """Raise PolicyViolationError if the statement would modify data or schema."""
    blocked = find_blocked_keywords(sql)
    if blocked:
        logger.warning(f"Write guard refused statement in {operation}: {', '.join(blocked)}")
        raise PolicyViolationError(
            POLICY_MESSAGE,
            details=f"Blocked keywords: {', '.join(blocked)}",
            operation=operation
        )
