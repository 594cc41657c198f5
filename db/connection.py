"""
SQL Server connection handling for the diagram generator.

Builds an ODBC connection string from plain host / credential / catalog
values and opens a single pyodbc session. Driver failures are re-raised as
DatabaseConnectionError so callers never need to import pyodbc themselves.
"""

import logging
import os

import pyodbc
from dotenv import find_dotenv, load_dotenv

load_dotenv(find_dotenv())

logger = logging.getLogger(__name__)

DEFAULT_DRIVER = os.getenv("DB_DRIVER", "ODBC Driver 18 for SQL Server")
DEFAULT_PORT = 1433
LOGIN_TIMEOUT = 30

_NEEDS_BRACES = set(";{}")


class DatabaseConnectionError(ConnectionError):
    """Raised when the network handshake or authentication fails."""


def _odbc_value(value: str) -> str:
    """
    Quote a connection string attribute value when ODBC requires it.

    Values containing ';', '{' or '}' (or with surrounding whitespace) must be
    wrapped in braces, with any closing brace doubled.
    """
    if _NEEDS_BRACES & set(value) or value != value.strip():
        return "{" + value.replace("}", "}}") + "}"
    return value


def build_conn_str(
    server: str,
    username: str,
    password: str,
    database: str,
    port: int = DEFAULT_PORT,
    driver: str = DEFAULT_DRIVER,
) -> str:
    return (
        f"DRIVER={{{driver}}};"
        f"SERVER={_odbc_value(f'{server},{port}')};"
        f"DATABASE={_odbc_value(database)};"
        f"UID={_odbc_value(username)};"
        f"PWD={_odbc_value(password)};"
        "TrustServerCertificate=yes;"
    )


def get_connection(
    server: str,
    username: str,
    password: str,
    database: str,
    *,
    port: int = DEFAULT_PORT,
    driver: str = DEFAULT_DRIVER,
    timeout: int = LOGIN_TIMEOUT,
) -> pyodbc.Connection:
    """
    Open an authenticated session against the given catalog.

    Raises:
        ValueError: if any of the connection values is empty.
        DatabaseConnectionError: if the driver cannot connect or log in.
    """
    for label, value in (
        ("server", server),
        ("username", username),
        ("password", password),
        ("database", database),
    ):
        if not value:
            raise ValueError(f"{label} must not be empty")

    conn_str = build_conn_str(server, username, password, database, port, driver)
    logger.info("Connecting to %s,%s (catalog %s) as %s", server, port, database, username)
    try:
        return pyodbc.connect(conn_str, timeout=timeout)
    except pyodbc.Error as exc:
        raise DatabaseConnectionError(
            f"could not connect to {server},{port}/{database}: {exc}"
        ) from exc
