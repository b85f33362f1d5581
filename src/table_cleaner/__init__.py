"""Empty the tables of a MySQL, PostgreSQL or SQLite database between test runs."""

from .cleaner import CleanResult, clean
from .config import CleanOptions
from .errors import ConfigError, UnsupportedDialectError
from .identifiers import qualify_table_name, quote_table_ref
from .tables import drop_tables, get_table_names, get_table_row_count

__all__ = [
    "CleanOptions",
    "CleanResult",
    "ConfigError",
    "UnsupportedDialectError",
    "clean",
    "drop_tables",
    "get_table_names",
    "get_table_row_count",
    "qualify_table_name",
    "quote_table_ref",
]
