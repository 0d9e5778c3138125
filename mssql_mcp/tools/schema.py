"""Schema introspection tools."""

import asyncio
import logging
from typing import List, Optional

from ..catalog import CatalogClient, ForeignKeyEdge, TableDescriptor, TableSummary
from ..identifiers import resolve_object_name

logger = logging.getLogger(__name__)


async def list_tables(db, schema: Optional[str] = None) -> List[TableSummary]:
    """Tables with row counts and storage size, ordered by schema and name."""
    tables = await CatalogClient(db).list_tables(schema)
    logger.debug(f"Retrieved {len(tables)} tables for schema '{schema or 'all'}'")
    return tables


async def describe_table(db, table_name: str) -> TableDescriptor:
    """Columns, primary key and indexes of one table.

    The three catalog reads are independent and run concurrently, each on its
    own pooled connection. An unknown table yields empty sequences.
    """
    ref = resolve_object_name(table_name)
    catalog = CatalogClient(db)

    columns, primary_keys, indexes = await asyncio.gather(
        catalog.get_columns(ref),
        catalog.get_primary_keys(ref),
        catalog.get_indexes(ref),
    )

    if not columns:
        logger.info(f"describe_table: no columns found for {ref}")

    return TableDescriptor(
        schema=ref.schema,
        table_name=ref.name,
        columns=columns,
        primary_keys=primary_keys,
        indexes=indexes,
    )


async def get_table_relationships(db, table_name: str) -> List[ForeignKeyEdge]:
    """Foreign keys where the table is either the referencing or referenced side."""
    ref = resolve_object_name(table_name)
    edges = await CatalogClient(db).get_foreign_keys(ref)
    logger.debug(f"Found {len(edges)} foreign key columns involving {ref}")
    return edges
