"""Shared fixtures: an in-memory stand-in for a pyodbc connection."""

from types import SimpleNamespace

import pytest


def row(**kwargs):
    """pyodbc rows expose columns as attributes; SimpleNamespace does the same."""
    return SimpleNamespace(**kwargs)


class FakeCursor:
    def __init__(self, connection):
        self.connection = connection
        self._rows = []
        self.closed = False

    def execute(self, sql, *params):
        self.connection.executed.append((sql, params))
        if self.connection.error is not None:
            raise self.connection.error
        if "sys.foreign_keys" in sql:
            self._rows = list(self.connection.fk_rows)
        elif "c.column_id" in sql:
            table_name, schema_name = params[0], params[1]
            self._rows = list(self.connection.column_rows.get((schema_name, table_name), []))
        else:
            schema_filter = params[0]
            self._rows = [
                r for r in self.connection.table_rows
                if schema_filter is None or r.schema_name == schema_filter
            ]
        return self

    def fetchall(self):
        return self._rows

    def close(self):
        self.closed = True


class FakeConnection:
    """Answers the catalog queries in db.query from canned rows."""

    def __init__(self, table_rows=(), column_rows=None, fk_rows=(), error=None):
        self.table_rows = list(table_rows)
        self.column_rows = column_rows or {}
        self.fk_rows = list(fk_rows)
        self.error = error
        self.executed = []
        self.cursors = []
        self.closed = False

    def cursor(self):
        cursor = FakeCursor(self)
        self.cursors.append(cursor)
        return cursor

    def close(self):
        self.closed = True


@pytest.fixture
def shop_connection() -> FakeConnection:
    """Users / Orders catalog with one foreign key, plus an audit schema table."""
    return FakeConnection(
        table_rows=[
            row(schema_name="audit", table_name="Log"),
            row(schema_name="dbo", table_name="Orders"),
            row(schema_name="dbo", table_name="Users"),
        ],
        column_rows={
            ("dbo", "Users"): [
                row(column_name="Id", type_name="int", is_nullable=0, is_primary_key=1),
                row(column_name="Name", type_name="varchar", is_nullable=1, is_primary_key=0),
            ],
            ("dbo", "Orders"): [
                row(column_name="Id", type_name="int", is_nullable=0, is_primary_key=1),
                row(column_name="UserId", type_name="int", is_nullable=0, is_primary_key=0),
            ],
            ("audit", "Log"): [
                row(column_name="Id", type_name="bigint", is_nullable=0, is_primary_key=1),
                row(column_name="first-name", type_name="nvarchar", is_nullable=1, is_primary_key=0),
            ],
        },
        fk_rows=[
            row(
                constraint_name="FK_Orders_Users",
                from_schema="dbo",
                from_table="Orders",
                from_column="UserId",
                to_schema="dbo",
                to_table="Users",
                to_column="Id",
            ),
        ],
    )
