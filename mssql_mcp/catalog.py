"""System catalog reads: columns, keys, indexes, foreign keys, procedures."""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from .constants import TEXT_COLUMN_TYPES
from .identifiers import TableRef

logger = logging.getLogger(__name__)


@dataclass
class ColumnInfo:
    """Information about a table column."""
    name: str
    data_type: str
    max_length: Optional[int] = None
    precision: Optional[int] = None
    scale: Optional[int] = None
    nullable: bool = True
    is_identity: bool = False
    default_expression: Optional[str] = None
    description: Optional[str] = None


@dataclass
class IndexInfo:
    """An index and its columns in key order."""
    name: str
    type: str
    is_unique: bool
    columns: List[str] = field(default_factory=list)


@dataclass
class TableDescriptor:
    """Merged result of the column, primary key and index reads."""
    schema: str
    table_name: str
    columns: List[ColumnInfo] = field(default_factory=list)
    primary_keys: List[str] = field(default_factory=list)
    indexes: List[IndexInfo] = field(default_factory=list)


@dataclass
class TableSummary:
    """One row of list_tables."""
    schema: str
    name: str
    row_count: int
    total_space_kb: int
    used_space_kb: int


@dataclass
class ForeignKeyEdge:
    """One column pair of a foreign key constraint."""
    name: str
    from_schema: str
    from_table: str
    from_column: str
    to_schema: str
    to_table: str
    to_column: str


@dataclass
class ProcedureSummary:
    schema: str
    name: str
    created_date: Any
    modified_date: Any


@dataclass
class ProcedureParameter:
    """A declared procedure parameter; ``name`` keeps its leading ``@``."""
    name: str
    data_type: str
    max_length: Optional[int] = None
    precision: Optional[int] = None
    scale: Optional[int] = None
    is_output: bool = False

    @property
    def bare_name(self) -> str:
        return self.name.lstrip("@")


COLUMNS_QUERY = """
    SELECT
        c.name AS ColumnName,
        t.name AS DataType,
        c.max_length AS MaxLength,
        c.precision AS [Precision],
        c.scale AS [Scale],
        c.is_nullable AS IsNullable,
        c.is_identity AS IsIdentity,
        dc.definition AS DefaultValue,
        CAST(ep.value AS NVARCHAR(4000)) AS [Description]
    FROM sys.columns c
    INNER JOIN sys.types t ON c.user_type_id = t.user_type_id
    LEFT JOIN sys.default_constraints dc ON c.default_object_id = dc.object_id
    LEFT JOIN sys.extended_properties ep
        ON ep.major_id = c.object_id AND ep.minor_id = c.column_id AND ep.name = 'MS_Description'
    WHERE c.object_id = OBJECT_ID(:object_name)
    ORDER BY c.column_id
"""

PRIMARY_KEYS_QUERY = """
    SELECT c.name AS ColumnName
    FROM sys.indexes i
    INNER JOIN sys.index_columns ic ON i.object_id = ic.object_id AND i.index_id = ic.index_id
    INNER JOIN sys.columns c ON ic.object_id = c.object_id AND ic.column_id = c.column_id
    WHERE i.object_id = OBJECT_ID(:object_name) AND i.is_primary_key = 1
    ORDER BY ic.key_ordinal
"""

# One row per index column; aggregated client-side so key order survives
INDEX_COLUMNS_QUERY = """
    SELECT
        i.name AS IndexName,
        i.type_desc AS IndexType,
        i.is_unique AS IsUnique,
        c.name AS ColumnName
    FROM sys.indexes i
    INNER JOIN sys.index_columns ic ON i.object_id = ic.object_id AND i.index_id = ic.index_id
    INNER JOIN sys.columns c ON ic.object_id = c.object_id AND ic.column_id = c.column_id
    WHERE i.object_id = OBJECT_ID(:object_name) AND i.type > 0
    ORDER BY i.name, CASE WHEN ic.key_ordinal = 0 THEN 1 ELSE 0 END, ic.key_ordinal, ic.index_column_id
"""

TABLES_QUERY = """
    SELECT
        s.name AS SchemaName,
        t.name AS TableName,
        ISNULL(r.row_count, 0) AS [RowCount],
        ISNULL(u.total_kb, 0) AS TotalSpaceKB,
        ISNULL(u.used_kb, 0) AS UsedSpaceKB
    FROM sys.tables t
    INNER JOIN sys.schemas s ON t.schema_id = s.schema_id
    LEFT JOIN (
        SELECT p.object_id, SUM(p.rows) AS row_count
        FROM sys.partitions p
        WHERE p.index_id IN (0, 1)
        GROUP BY p.object_id
    ) r ON r.object_id = t.object_id
    LEFT JOIN (
        SELECT p.object_id, SUM(a.total_pages) * 8 AS total_kb, SUM(a.used_pages) * 8 AS used_kb
        FROM sys.partitions p
        INNER JOIN sys.allocation_units a ON p.partition_id = a.container_id
        GROUP BY p.object_id
    ) u ON u.object_id = t.object_id
    {where}
    ORDER BY s.name, t.name
"""

FOREIGN_KEYS_QUERY = """
    SELECT
        fk.name AS ForeignKeyName,
        OBJECT_SCHEMA_NAME(fk.parent_object_id) AS SchemaName,
        OBJECT_NAME(fk.parent_object_id) AS TableName,
        COL_NAME(fkc.parent_object_id, fkc.parent_column_id) AS ColumnName,
        OBJECT_SCHEMA_NAME(fk.referenced_object_id) AS ReferencedSchema,
        OBJECT_NAME(fk.referenced_object_id) AS ReferencedTable,
        COL_NAME(fkc.referenced_object_id, fkc.referenced_column_id) AS ReferencedColumn
    FROM sys.foreign_keys fk
    INNER JOIN sys.foreign_key_columns fkc ON fk.object_id = fkc.constraint_object_id
    WHERE (OBJECT_NAME(fk.parent_object_id) = :table
           AND OBJECT_SCHEMA_NAME(fk.parent_object_id) = :schema)
       OR (OBJECT_NAME(fk.referenced_object_id) = :table
           AND OBJECT_SCHEMA_NAME(fk.referenced_object_id) = :schema)
    ORDER BY fk.name, fkc.constraint_column_id
"""

PROCEDURES_QUERY = """
    SELECT
        s.name AS SchemaName,
        p.name AS ProcedureName,
        p.create_date AS CreatedDate,
        p.modify_date AS ModifiedDate
    FROM sys.procedures p
    INNER JOIN sys.schemas s ON p.schema_id = s.schema_id
    {where}
    ORDER BY s.name, p.name
"""

# sys.all_objects also covers system procedures (sp_help, sp_columns, ...)
FIND_PROCEDURE_QUERY = """
    SELECT SCHEMA_NAME(o.schema_id) AS SchemaName, o.name AS ProcedureName
    FROM sys.all_objects o
    WHERE o.object_id = OBJECT_ID(:object_name) AND o.type IN ('P', 'PC', 'X')
"""

PROCEDURE_DEFINITION_QUERY = """
    SELECT OBJECT_DEFINITION(p.object_id) AS Definition
    FROM sys.procedures p
    WHERE p.object_id = OBJECT_ID(:object_name)
"""

PROCEDURE_PARAMETERS_QUERY = """
    SELECT
        pr.name AS ParameterName,
        t.name AS DataType,
        pr.max_length AS MaxLength,
        pr.precision AS [Precision],
        pr.scale AS [Scale],
        pr.is_output AS IsOutput
    FROM sys.all_parameters pr
    INNER JOIN sys.types t ON pr.user_type_id = t.user_type_id
    WHERE pr.object_id = OBJECT_ID(:object_name) AND pr.parameter_id > 0
    ORDER BY pr.parameter_id
"""

SCHEMA_FILTER = "WHERE s.name = :schema"


class CatalogClient:
    """Reads SQL Server catalog views through the shared pool.

    Each method is one round trip. An object that does not exist produces
    empty results, never an exception.
    """

    def __init__(self, db):
        self.db = db

    async def get_columns(self, ref: TableRef) -> List[ColumnInfo]:
        rows = await self.db.fetch_all(COLUMNS_QUERY, {"object_name": ref.qualified_name})
        return [
            ColumnInfo(
                name=row["ColumnName"],
                data_type=row["DataType"],
                max_length=row["MaxLength"],
                precision=row["Precision"],
                scale=row["Scale"],
                nullable=bool(row["IsNullable"]),
                is_identity=bool(row["IsIdentity"]),
                default_expression=row["DefaultValue"],
                description=row["Description"],
            )
            for row in rows
        ]

    async def get_primary_keys(self, ref: TableRef) -> List[str]:
        rows = await self.db.fetch_all(PRIMARY_KEYS_QUERY, {"object_name": ref.qualified_name})
        return [row["ColumnName"] for row in rows]

    async def get_indexes(self, ref: TableRef) -> List[IndexInfo]:
        rows = await self.db.fetch_all(INDEX_COLUMNS_QUERY, {"object_name": ref.qualified_name})
        indexes: Dict[str, IndexInfo] = {}
        for row in rows:
            index = indexes.get(row["IndexName"])
            if index is None:
                index = IndexInfo(
                    name=row["IndexName"],
                    type=row["IndexType"],
                    is_unique=bool(row["IsUnique"]),
                )
                indexes[index.name] = index
            index.columns.append(row["ColumnName"])
        return list(indexes.values())

    async def get_text_columns(self, ref: TableRef) -> List[str]:
        """Names of the char/text typed columns of a table, in column order."""
        columns = await self.get_columns(ref)
        return [col.name for col in columns if col.data_type.lower() in TEXT_COLUMN_TYPES]

    async def get_foreign_keys(self, ref: TableRef) -> List[ForeignKeyEdge]:
        rows = await self.db.fetch_all(FOREIGN_KEYS_QUERY, {"schema": ref.schema, "table": ref.name})
        return [
            ForeignKeyEdge(
                name=row["ForeignKeyName"],
                from_schema=row["SchemaName"],
                from_table=row["TableName"],
                from_column=row["ColumnName"],
                to_schema=row["ReferencedSchema"],
                to_table=row["ReferencedTable"],
                to_column=row["ReferencedColumn"],
            )
            for row in rows
        ]

    async def list_tables(self, schema: Optional[str] = None) -> List[TableSummary]:
        sql, params = _with_schema_filter(TABLES_QUERY, schema)
        rows = await self.db.fetch_all(sql, params)
        return [
            TableSummary(
                schema=row["SchemaName"],
                name=row["TableName"],
                row_count=row["RowCount"],
                total_space_kb=row["TotalSpaceKB"],
                used_space_kb=row["UsedSpaceKB"],
            )
            for row in rows
        ]

    async def list_procedures(self, schema: Optional[str] = None) -> List[ProcedureSummary]:
        sql, params = _with_schema_filter(PROCEDURES_QUERY, schema)
        rows = await self.db.fetch_all(sql, params)
        return [
            ProcedureSummary(
                schema=row["SchemaName"],
                name=row["ProcedureName"],
                created_date=row["CreatedDate"],
                modified_date=row["ModifiedDate"],
            )
            for row in rows
        ]

    async def find_procedure(self, *candidates: TableRef) -> Optional[TableRef]:
        """Return the first candidate that exists, spelled as the catalog spells it."""
        for ref in candidates:
            rows = await self.db.fetch_all(FIND_PROCEDURE_QUERY, {"object_name": ref.qualified_name})
            if rows:
                return TableRef(schema=rows[0]["SchemaName"], name=rows[0]["ProcedureName"])
        return None

    async def get_procedure_definition(self, ref: TableRef) -> Optional[str]:
        """Source text of a procedure; None when missing or encrypted."""
        rows = await self.db.fetch_all(PROCEDURE_DEFINITION_QUERY, {"object_name": ref.qualified_name})
        if not rows:
            return None
        return rows[0]["Definition"]

    async def get_procedure_parameters(self, ref: TableRef) -> List[ProcedureParameter]:
        rows = await self.db.fetch_all(PROCEDURE_PARAMETERS_QUERY, {"object_name": ref.qualified_name})
        return [
            ProcedureParameter(
                name=row["ParameterName"],
                data_type=row["DataType"],
                max_length=row["MaxLength"],
                precision=row["Precision"],
                scale=row["Scale"],
                is_output=bool(row["IsOutput"]),
            )
            for row in rows
        ]


def _with_schema_filter(template: str, schema: Optional[str]):
    if schema:
        return template.format(where=SCHEMA_FILTER), {"schema": schema}
    return template.format(where=""), {}
