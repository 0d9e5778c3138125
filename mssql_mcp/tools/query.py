"""Ad-hoc query execution and text search tools."""

import logging
from typing import Any, Dict, List, Optional

from ..catalog import CatalogClient
from ..constants import DEFAULT_QUERY_MAX_ROWS, DEFAULT_SEARCH_MAX_ROWS
from ..error_handling import InvalidArgumentsError
from ..formatting import QueryResult, truncate_recordset
from ..identifiers import resolve_object_name
from ..statements import build_search_statement
from ..write_guard import enforce_read_only

logger = logging.getLogger(__name__)


async def execute_query(db, query: str, max_rows: int = DEFAULT_QUERY_MAX_ROWS) -> QueryResult:
    """Run caller-supplied SQL after the write guard accepts it.

    The full result is fetched so ``recordsetCount`` reports the true size;
    only the first ``max_rows`` rows are returned.
    """
    enforce_read_only(query)

    batch = await db.execute_batch(query)
    rows = batch.recordsets[0] if batch.recordsets else []
    rows_affected = batch.rows_affected[0] if batch.rows_affected else 0

    result = truncate_recordset(rows, max_rows, rows_affected=rows_affected)
    logger.info(f"Query returned {result.recordset_count} rows ({len(result.recordset)} shown)")
    return result


async def _resolve_search_columns(catalog: CatalogClient, ref, columns: Optional[List[str]]) -> List[str]:
    if not columns:
        return await catalog.get_text_columns(ref)

    # Keep the catalog's spelling; names the table does not have are dropped
    known = {col.name.lower(): col.name for col in await catalog.get_columns(ref)}
    resolved = []
    for name in columns:
        match = known.get(str(name).lower())
        if match is None:
            logger.warning(f"search_data: column '{name}' not found in {ref}, skipping")
        elif match not in resolved:
            resolved.append(match)
    return resolved


async def search_data(
    db,
    table_name: str,
    search_term: str,
    columns: Optional[List[str]] = None,
    max_rows: int = DEFAULT_SEARCH_MAX_ROWS
) -> Dict[str, Any]:
    """Find rows where any target column contains ``search_term``."""
    ref = resolve_object_name(table_name)
    catalog = CatalogClient(db)

    search_columns = await _resolve_search_columns(catalog, ref, columns)
    if not search_columns:
        raise InvalidArgumentsError(
            "No searchable columns found in table",
            details=f"Table {ref} has no matching character columns or does not exist"
        )

    sql, params = build_search_statement(ref, search_columns, search_term, max_rows)
    batch = await db.execute_batch(sql, params)
    rows = batch.recordsets[0] if batch.recordsets else []

    logger.info(f"search_data found {len(rows)} rows in {ref} across {len(search_columns)} columns")
    return {
        "searchedColumns": search_columns,
        "rowsFound": len(rows),
        "results": rows,
    }
