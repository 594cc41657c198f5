"""
Schema introspection for the diagram generator.

Queries SQL Server system catalog views to retrieve table, column, and
foreign key information, then assembles the results into the frozen
records of db.models for consumption by the PlantUML generator.
"""

import logging
from typing import Optional

import pyodbc

from db.models import Column, ForeignKeyReference, SchemaSnapshot, Table

logger = logging.getLogger(__name__)


class QueryError(Exception):
    """Raised when a catalog metadata query fails."""

    def __init__(self, operation: str, cause: Exception):
        self.operation = operation
        self.cause = cause
        super().__init__(f"{operation} failed: {cause}")


# ---------------------------------------------------------------------------
# SQL queries
# ---------------------------------------------------------------------------

_TABLE_SQL = """
SELECT
    s.name  AS schema_name,
    t.name  AS table_name
FROM
    sys.tables  t
    JOIN sys.schemas s ON s.schema_id = t.schema_id
WHERE
    t.is_ms_shipped = 0
    AND (? IS NULL OR s.name = ?)
ORDER BY
    s.name, t.name;
"""

_COLUMN_SQL = """
SELECT
    c.name                              AS column_name,
    tp.name                             AS type_name,
    c.is_nullable                       AS is_nullable,
    CASE
        WHEN ic.column_id IS NOT NULL THEN 1
        ELSE 0
    END                                 AS is_primary_key
FROM
    sys.tables          t
    JOIN sys.schemas         s   ON s.schema_id  = t.schema_id
    JOIN sys.columns         c   ON c.object_id  = t.object_id
    JOIN sys.types           tp  ON tp.user_type_id = c.user_type_id
    LEFT JOIN sys.indexes    ix  ON ix.object_id = t.object_id
                                 AND ix.is_primary_key = 1
    LEFT JOIN sys.index_columns ic
                                 ON ic.object_id = ix.object_id
                                AND ic.index_id  = ix.index_id
                                AND ic.column_id = c.column_id
WHERE
    t.name = ?
    AND (? IS NULL OR s.name = ?)
ORDER BY
    c.column_id;
"""

_FK_SQL = """
SELECT
    fk.name                         AS constraint_name,
    ps.name                         AS from_schema,
    pt.name                         AS from_table,
    pc.name                         AS from_column,
    rs.name                         AS to_schema,
    rt.name                         AS to_table,
    rc.name                         AS to_column
FROM
    sys.foreign_keys             fk
    JOIN sys.foreign_key_columns fkc ON fkc.constraint_object_id = fk.object_id
    JOIN sys.tables              pt  ON pt.object_id = fk.parent_object_id
    JOIN sys.schemas             ps  ON ps.schema_id = pt.schema_id
    JOIN sys.columns             pc  ON pc.object_id = fk.parent_object_id
                                    AND pc.column_id = fkc.parent_column_id
    JOIN sys.tables              rt  ON rt.object_id = fk.referenced_object_id
    JOIN sys.schemas             rs  ON rs.schema_id = rt.schema_id
    JOIN sys.columns             rc  ON rc.object_id = fk.referenced_object_id
                                    AND rc.column_id = fkc.referenced_column_id
WHERE
    (? IS NULL OR ps.name = ?)
ORDER BY
    fk.name, fkc.constraint_column_id;
"""


def _run(conn: pyodbc.Connection, operation: str, sql: str, *params) -> list:
    """Execute one read-only statement and return all rows, wrapping driver errors."""
    try:
        cursor = conn.cursor()
        try:
            cursor.execute(sql, *params)
            return cursor.fetchall()
        finally:
            cursor.close()
    except pyodbc.Error as exc:
        raise QueryError(operation, exc) from exc


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def list_tables(conn: pyodbc.Connection, schema_filter: Optional[str] = None) -> list[Table]:
    """Return user tables ordered by schema and name, without columns."""
    rows = _run(conn, "list_tables", _TABLE_SQL, schema_filter, schema_filter)
    return [Table(name=r.table_name, schema=r.schema_name) for r in rows]


def list_columns(
    conn: pyodbc.Connection,
    table_name: str,
    schema_name: Optional[str] = None,
) -> list[Column]:
    """Return the columns of one table in their native ordinal order."""
    rows = _run(
        conn,
        f"list_columns({table_name})",
        _COLUMN_SQL,
        table_name,
        schema_name,
        schema_name,
    )
    return [
        Column(
            name=r.column_name,
            data_type=r.type_name,
            is_nullable=bool(r.is_nullable),
            is_primary_key=bool(r.is_primary_key),
        )
        for r in rows
    ]


def list_foreign_keys(
    conn: pyodbc.Connection,
    schema_filter: Optional[str] = None,
) -> list[ForeignKeyReference]:
    """Return one reference per foreign key column pair."""
    rows = _run(conn, "list_foreign_keys", _FK_SQL, schema_filter, schema_filter)
    return [
        ForeignKeyReference(
            from_table=r.from_table,
            from_column=r.from_column,
            to_table=r.to_table,
            to_column=r.to_column,
            from_schema=r.from_schema,
            to_schema=r.to_schema,
            constraint_name=r.constraint_name,
        )
        for r in rows
    ]


def fetch_schema(
    conn: pyodbc.Connection,
    schema_filter: Optional[str] = None,
    table_filter: Optional[list[str]] = None,
) -> SchemaSnapshot:
    """
    Introspect the database and return an immutable snapshot.

    Args:
        conn:          Open connection from db.connection.get_connection.
        schema_filter: Only include tables in this schema (e.g. "dbo").
                       Pass None to include all schemas.
        table_filter:  Only include tables whose name matches one of these
                       values (case-insensitive). Pass None for all tables.

    Raises:
        QueryError: if any of the catalog queries fails.
    """
    tables = list_tables(conn, schema_filter)

    if table_filter:
        filter_set = {n.lower() for n in table_filter}
        tables = [t for t in tables if t.name.lower() in filter_set]

    foreign_keys = list_foreign_keys(conn, schema_filter)
    fk_columns = {(fk.from_key, fk.from_column) for fk in foreign_keys}

    populated = []
    for table in tables:
        columns = tuple(
            Column(
                name=c.name,
                data_type=c.data_type,
                is_nullable=c.is_nullable,
                is_primary_key=c.is_primary_key,
                is_foreign_key=(table.key, c.name) in fk_columns,
            )
            for c in list_columns(conn, table.name, table.schema)
        )
        populated.append(Table(name=table.name, schema=table.schema, columns=columns))

    logger.info("Read %d table(s), %d foreign key column(s)", len(populated), len(foreign_keys))
    return SchemaSnapshot(tables=tuple(populated), foreign_keys=tuple(foreign_keys))
