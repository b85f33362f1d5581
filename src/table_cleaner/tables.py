"""Table inventory: list, count and drop the user tables of a database."""

from __future__ import annotations

import logging
from typing import Any, Mapping, Sequence

from .config import CleanOptions
from .dialects import Bind, connection_scope, get_dialect
from .identifiers import split_table_ref
from .logging_utils import log_extra

_log = logging.getLogger(__name__)


def is_ignored(table_ref: str, ignore_tables: frozenset[str]) -> bool:
    if table_ref in ignore_tables:
        return True
    # Bare names also match schema-qualified refs in any scanned schema.
    schema, name = split_table_ref(table_ref)
    return schema is not None and name in ignore_tables


def get_table_names(
    bind: Bind, options: CleanOptions | Mapping[str, Any] | None = None
) -> list[str]:
    """Return the table references of ``bind``, minus ``options.ignore_tables``."""
    options = CleanOptions.resolve(options)
    dialect = get_dialect(bind, "list tables")
    with connection_scope(bind) as conn:
        names = dialect.list_tables(conn, options.schemas)
    return [name for name in names if not is_ignored(name, options.ignore_tables)]


def get_table_row_count(bind: Bind, table_ref: str) -> int:
    dialect = get_dialect(bind, "count rows")
    with connection_scope(bind) as conn:
        return dialect.row_count(conn, table_ref)


def drop_tables(bind: Bind, table_refs: Sequence[str]) -> None:
    dialect = get_dialect(bind, "drop tables")
    table_refs = list(table_refs)
    if not table_refs:
        return
    with connection_scope(bind) as conn:
        dialect.drop_tables(conn, table_refs)
    _log.info(
        "Dropped tables",
        extra=log_extra(dialect=dialect.name, table_count=len(table_refs)),
    )
