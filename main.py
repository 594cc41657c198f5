"""
TSQL diagram generator — entry point.

Connects to a SQL Server database, introspects the schema, and writes a
PlantUML class diagram to a .puml file.

Usage:
    python main.py --ip_address 10.0.0.5 --username sa --password secret --initial_catalog dev_db
    python main.py ... --schema dbo
    python main.py ... --tables Orders,Customers,Products
    python main.py ... --output ./docs/schema.puml

Each connection flag falls back to DB_SERVER / DB_USER / DB_PASSWORD /
DB_NAME from the environment (or a .env file) when omitted.
"""

import argparse
import logging
import os
import sys
from typing import Optional

from dotenv import find_dotenv, load_dotenv

from db.connection import DEFAULT_PORT, DatabaseConnectionError, get_connection
from db.query import QueryError, fetch_schema
from generator.plantuml import build_diagram
from generator.writer import write_diagram

load_dotenv(find_dotenv())

DEFAULT_OUTPUT = "schema.puml"


def _env_arg(parser: argparse.ArgumentParser, flag: str, env_var: str, help_text: str) -> None:
    """Add a string option that is required unless env_var is set."""
    default = os.getenv(env_var)
    parser.add_argument(
        flag,
        default=default,
        required=not default,
        help=f"{help_text} (env: {env_var})",
    )


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="tsql-diagram",
        description="Generate a PlantUML diagram from a SQL Server database.",
    )
    _env_arg(parser, "--ip_address", "DB_SERVER", "IP address or host name of the SQL server")
    _env_arg(parser, "--username", "DB_USER", "Username for the SQL server")
    _env_arg(parser, "--password", "DB_PASSWORD", "Password for the SQL server")
    _env_arg(parser, "--initial_catalog", "DB_NAME", "Initial catalog (database) to diagram")
    parser.add_argument(
        "--port",
        type=int,
        default=int(os.getenv("DB_PORT", str(DEFAULT_PORT))),
        help=f"SQL server port. Defaults to {DEFAULT_PORT}.",
    )
    parser.add_argument(
        "--schema",
        metavar="SCHEMA",
        default=None,
        help="Filter to a single schema (e.g. dbo). Defaults to all schemas.",
    )
    parser.add_argument(
        "--tables",
        metavar="TABLE1,TABLE2,...",
        default=None,
        help="Comma-separated table names to include. Defaults to all tables.",
    )
    parser.add_argument(
        "--title",
        default=None,
        help="Diagram title. Defaults to the initial catalog name.",
    )
    parser.add_argument(
        "--output",
        metavar="PATH",
        default=DEFAULT_OUTPUT,
        help=f"Output file path. Defaults to {DEFAULT_OUTPUT}",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Log progress details.",
    )
    return parser.parse_args(argv)


def main(argv: Optional[list[str]] = None) -> None:
    args = parse_args(argv)

    logging.basicConfig(
        level=logging.INFO if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    table_filter = (
        [t.strip() for t in args.tables.split(",") if t.strip()]
        if args.tables
        else None
    )

    print("Connecting to database and introspecting schema...")
    try:
        conn = get_connection(
            args.ip_address,
            args.username,
            args.password,
            args.initial_catalog,
            port=args.port,
        )
    except (DatabaseConnectionError, ValueError) as exc:
        print(f"Error connecting to database: {exc}", file=sys.stderr)
        sys.exit(1)

    try:
        snapshot = fetch_schema(conn, schema_filter=args.schema, table_filter=table_filter)
    except QueryError as exc:
        print(f"Error fetching schema: {exc}", file=sys.stderr)
        sys.exit(1)
    finally:
        conn.close()

    if not snapshot.tables:
        print("Warning: no tables found matching the specified filters.", file=sys.stderr)

    print(f"Found {len(snapshot.tables)} table(s), {len(snapshot.foreign_keys)} foreign key column(s).")

    diagram = build_diagram(snapshot, title=args.title or args.initial_catalog)

    try:
        output_path = write_diagram(diagram, args.output)
    except OSError as exc:
        print(f"Error writing diagram: {exc}", file=sys.stderr)
        sys.exit(1)

    print(f"PlantUML script written to: {output_path}")


if __name__ == "__main__":
    main()
