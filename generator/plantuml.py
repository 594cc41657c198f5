"""
PlantUML class-diagram generator.

Accepts a SchemaSnapshot from the query layer and produces the text of a
@startuml ... @enduml document ready to be written to a .puml file.
"""

import logging
import re
from collections import Counter
from typing import Optional

from db.models import Column, ForeignKeyReference, SchemaSnapshot, Table

logger = logging.getLogger(__name__)

_BARE_IDENTIFIER = re.compile(r"[A-Za-z_][A-Za-z0-9_]*")

# PlantUML matches these case-insensitively at the start of a line, so a bare
# table named "Title" would turn a relationship line into a title command.
_RESERVED_WORDS = frozenset(
    {
        "abstract", "annotation", "bottom", "caption", "class", "end",
        "entity", "enum", "footer", "header", "hide", "interface", "left",
        "legend", "namespace", "note", "package", "remove", "right", "scale",
        "set", "show", "skinparam", "title", "together", "top",
    }
)


def quote_name(name: str) -> str:
    """
    Return a name that is safe to use in PlantUML syntax.

    Plain identifiers are emitted bare. Anything else (spaces, dashes, dots,
    brackets...) or a PlantUML keyword is wrapped in double quotes. PlantUML
    has no escape for a double quote inside a quoted name, so those become
    single quotes.
    """
    if _BARE_IDENTIFIER.fullmatch(name) and name.lower() not in _RESERVED_WORDS:
        return name
    return '"' + name.replace('"', "'") + '"'


def _column_line(col: Column) -> str:
    """
    Build a single class member line for a column.

    Layout: name : type [<<PK>>] [<<FK>>] [<<nullable>>]
    """
    parts = [quote_name(col.name), ":", col.data_type]
    if col.is_primary_key:
        parts.append("<<PK>>")
    if col.is_foreign_key:
        parts.append("<<FK>>")
    if col.is_nullable:
        parts.append("<<nullable>>")
    return "  " + " ".join(parts)


def _entity_names(tables: list[Table]) -> dict[str, str]:
    """
    Map each table key to the identifier used for it in the diagram.

    Table names are used as-is unless the same name exists in more than one
    schema, in which case the schema-qualified key is used instead.
    """
    schemas_per_name = Counter(t.name for t in tables)
    names = {}
    for table in tables:
        label = table.key if schemas_per_name[table.name] > 1 else table.name
        names[table.key] = quote_name(label)
    return names


def _resolve(key: str, bare_name: str, entity_names: dict[str, str], by_name: dict[str, list[str]]) -> Optional[str]:
    if key in entity_names:
        return entity_names[key]
    # Reference without schema information: accept an unambiguous bare name.
    if key == bare_name and len(by_name.get(bare_name, [])) == 1:
        return entity_names[by_name[bare_name][0]]
    return None


def _relationship_lines(
    foreign_keys: tuple[ForeignKeyReference, ...],
    entity_names: dict[str, str],
    by_name: dict[str, list[str]],
) -> list[str]:
    edges = []
    for fk in foreign_keys:
        source = _resolve(fk.from_key, fk.from_table, entity_names, by_name)
        target = _resolve(fk.to_key, fk.to_table, entity_names, by_name)
        if source is None or target is None:
            logger.warning(
                "Skipping foreign key %s: %s.%s -> %s.%s references a table not in the schema",
                fk.constraint_name or "<unnamed>",
                fk.from_key,
                fk.from_column,
                fk.to_key,
                fk.to_column,
            )
            continue
        edges.append((source, target, quote_name(fk.from_column), quote_name(fk.to_column)))

    return [
        f"{source} --> {target} : {from_col} -> {to_col}"
        for source, target, from_col, to_col in sorted(edges)
    ]


def build_diagram(snapshot: SchemaSnapshot, title: Optional[str] = None) -> str:
    """
    Build a PlantUML class diagram describing the snapshot.

    Args:
        snapshot: Tables and foreign key references from fetch_schema.
        title:    Optional diagram title (e.g. the catalog name).

    Returns:
        The full diagram text, e.g.:
            @startuml
            class Users {
              Id : int <<PK>>
            }

            Orders --> Users : UserId -> Id
            @enduml
    """
    tables = sorted(snapshot.tables, key=lambda t: (t.schema or "", t.name))
    entity_names = _entity_names(tables)
    by_name: dict[str, list[str]] = {}
    for table in tables:
        by_name.setdefault(table.name, []).append(table.key)

    lines = ["@startuml"]
    if title:
        lines.append(f"title {title}")
    if any("." in name for name in entity_names.values()):
        # Otherwise PlantUML reads "dbo.Users" as class Users in package dbo.
        lines.append("set separator none")

    # Entity blocks
    for table in tables:
        lines.append("")
        lines.append(f"class {entity_names[table.key]} {{")
        for col in table.columns:
            lines.append(_column_line(col))
        lines.append("}")

    relationships = _relationship_lines(snapshot.foreign_keys, entity_names, by_name)
    if relationships:
        lines.append("")
        lines.extend(relationships)

    lines.append("@enduml")
    return "\n".join(lines) + "\n"
