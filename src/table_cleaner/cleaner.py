from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Mapping

from .config import CleanOptions
from .dialects import Bind, connection_scope, get_dialect
from .logging_utils import log_extra
from .tables import is_ignored

_log = logging.getLogger(__name__)


@dataclass
class CleanResult:
    mode: str
    tables: list[str] = field(default_factory=list)


def clean(
    bind: Bind, options: CleanOptions | Mapping[str, Any] | None = None
) -> CleanResult:
    """Empty every non-ignored table reachable through ``bind``.

    Tables are truncated by default or emptied with ``DELETE`` when
    ``mode="delete"``. Query errors propagate unchanged; tables cleaned before
    the failure are only restored if the enclosing transaction rolls back.
    """
    options = CleanOptions.resolve(options)
    dialect = get_dialect(bind, "clean tables")

    with connection_scope(bind) as conn:
        table_refs = [
            table_ref
            for table_ref in dialect.list_tables(conn, options.schemas)
            if not is_ignored(table_ref, options.ignore_tables)
        ]
        if table_refs:
            dialect.clear_tables(conn, table_refs, options.mode)

    _log.info(
        "Cleaned tables",
        extra=log_extra(
            dialect=dialect.name, mode=options.mode, table_count=len(table_refs)
        ),
    )
    return CleanResult(mode=options.mode, tables=table_refs)
