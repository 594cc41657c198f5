"""
Schema records produced by the query layer and consumed by the generator.

Kept free of any database driver import so the PlantUML generator can be
used (and tested) without an ODBC stack installed.
"""

from dataclasses import dataclass, field
from typing import Optional


@dataclass(frozen=True)
class Column:
    name: str
    data_type: str
    is_nullable: bool
    is_primary_key: bool
    is_foreign_key: bool = False  # set by fetch_schema from the FK query


@dataclass(frozen=True)
class Table:
    name: str
    schema: Optional[str] = None
    columns: tuple[Column, ...] = field(default_factory=tuple)

    @property
    def key(self) -> str:
        """Return the "schema.table" lookup key (bare name when schema is unknown)."""
        if self.schema:
            return f"{self.schema}.{self.name}"
        return self.name


@dataclass(frozen=True)
class ForeignKeyReference:
    from_table: str
    from_column: str
    to_table: str
    to_column: str
    from_schema: Optional[str] = None
    to_schema: Optional[str] = None
    constraint_name: Optional[str] = None

    @property
    def from_key(self) -> str:
        return f"{self.from_schema}.{self.from_table}" if self.from_schema else self.from_table

    @property
    def to_key(self) -> str:
        return f"{self.to_schema}.{self.to_table}" if self.to_schema else self.to_table


@dataclass(frozen=True)
class SchemaSnapshot:
    tables: tuple[Table, ...] = ()
    foreign_keys: tuple[ForeignKeyReference, ...] = ()

    def table_keys(self) -> set[str]:
        return {t.key for t in self.tables}
