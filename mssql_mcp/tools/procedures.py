"""Stored procedure listing, inspection and execution tools."""

import logging
from typing import Any, Dict, List, Optional

from ..catalog import CatalogClient, ProcedureSummary
from ..constants import SYSTEM_SCHEMA
from ..error_handling import NotFoundError
from ..identifiers import TableRef, has_explicit_schema, resolve_object_name
from ..statements import RETURN_VALUE_COLUMN, build_procedure_batch

logger = logging.getLogger(__name__)


async def list_stored_procedures(db, schema: Optional[str] = None) -> List[ProcedureSummary]:
    procedures = await CatalogClient(db).list_procedures(schema)
    logger.debug(f"Retrieved {len(procedures)} procedures for schema '{schema or 'all'}'")
    return procedures


async def get_stored_procedure_definition(db, procedure_name: str) -> Dict[str, Any]:
    """Source text of a procedure.

    A missing procedure, or one created WITH ENCRYPTION, gives a not-found
    payload instead of an error.
    """
    ref = resolve_object_name(procedure_name)
    definition = await CatalogClient(db).get_procedure_definition(ref)

    if not definition:
        return {
            "schema": ref.schema,
            "procedureName": ref.name,
            "found": False,
            "message": "Stored procedure not found",
        }

    return {
        "schema": ref.schema,
        "procedureName": ref.name,
        "found": True,
        "definition": definition,
    }


async def execute_stored_procedure(
    db,
    procedure_name: str,
    parameters: Optional[Dict[str, Any]] = None
) -> Dict[str, Any]:
    """Run a procedure with named parameters.

    The procedure and its parameter names are resolved from the catalog
    before anything is executed. An unqualified name is looked up in
    ``dbo`` first, then among the system procedures.
    """
    catalog = CatalogClient(db)
    ref = resolve_object_name(procedure_name)
    candidates = [ref]
    if not has_explicit_schema(procedure_name):
        candidates.append(TableRef(schema=SYSTEM_SCHEMA, name=ref.name))

    proc = await catalog.find_procedure(*candidates)
    if proc is None:
        raise NotFoundError(f"Stored procedure not found: {procedure_name}")

    declared = await catalog.get_procedure_parameters(proc)
    sql, params, output_names = build_procedure_batch(proc, declared, parameters or {})

    logger.info(f"Executing stored procedure {proc} with {len(params)} bound values")
    batch = await db.execute_batch(sql, params)

    # The trailing SELECT carries the return code and OUTPUT values
    recordsets = list(batch.recordsets)
    rows_affected = list(batch.rows_affected)
    status_row: Dict[str, Any] = {}
    if recordsets:
        status_rows = recordsets.pop()
        if rows_affected:
            rows_affected.pop()
        status_row = status_rows[0] if status_rows else {}

    return {
        "rowsAffected": rows_affected,
        "recordsets": recordsets,
        "output": {name: status_row.get(name) for name in output_names},
        "returnValue": status_row.get(RETURN_VALUE_COLUMN),
    }
