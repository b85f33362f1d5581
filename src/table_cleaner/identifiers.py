"""Table reference helpers.

A table reference is a plain string: ``schema.table`` on PostgreSQL and the
bare table name everywhere else.
"""

from __future__ import annotations

from sqlalchemy.engine import Dialect

from .errors import UnsupportedDialectError

_CANONICAL_NAMES = {
    "mysql": "mysql",
    "mariadb": "mysql",
    "postgresql": "postgresql",
    "postgres": "postgresql",
    "sqlite": "sqlite",
    "sqlite3": "sqlite",
}


def canonical_dialect_name(name: str) -> str:
    try:
        return _CANONICAL_NAMES[name.lower()]
    except KeyError:
        raise UnsupportedDialectError(name) from None


def qualify_table_name(dialect_name: str, table: str, schema: str = "public") -> str:
    if canonical_dialect_name(dialect_name) == "postgresql":
        return f"{schema}.{table}"
    return table


def split_table_ref(table_ref: str) -> tuple[str | None, str]:
    """Split ``schema.table`` into its parts; bare names have no schema."""
    schema, dot, table = table_ref.partition(".")
    if not dot:
        return None, table_ref
    return schema, table


def quote_table_ref(dialect: Dialect, table_ref: str) -> str:
    # Always quote so mixed-case names such as dogBreeds keep their case.
    preparer = dialect.identifier_preparer
    if canonical_dialect_name(dialect.name) != "postgresql":
        return preparer.quote_identifier(table_ref)
    schema, table = split_table_ref(table_ref)
    if schema is None:
        return preparer.quote_identifier(table)
    return f"{preparer.quote_identifier(schema)}.{preparer.quote_identifier(table)}"
