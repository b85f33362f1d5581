"""Command line entry point for cleaning a test database.

Installed as the ``table-cleaner`` console script::

    table-cleaner sqlite:///test.db
    table-cleaner --config cleaner.yml --mode delete --ignore-table alembic_version
    table-cleaner postgresql://localhost/test --schema public --schema audit --list
"""

from __future__ import annotations

import argparse
import logging
import sys
from typing import Sequence

from sqlalchemy import create_engine
from sqlalchemy.exc import SQLAlchemyError

from .cleaner import clean
from .config import MODES, CleanOptions, load_config
from .errors import ConfigError, UnsupportedDialectError
from .logging_utils import configure_logging, log_extra
from .tables import get_table_names, get_table_row_count

_log = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="table-cleaner",
        description="Truncate or delete the rows of every table in a test database",
    )
    parser.add_argument("url", nargs="?", help="SQLAlchemy database URL")
    parser.add_argument("--config", help="Path to a YAML config file")
    parser.add_argument("--mode", choices=MODES, help="How to empty tables (default: truncate)")
    parser.add_argument(
        "--ignore-table",
        action="append",
        dest="ignore_tables",
        metavar="NAME",
        help="Table to leave untouched; may be repeated",
    )
    parser.add_argument(
        "--schema",
        action="append",
        dest="schemas",
        metavar="NAME",
        help="Schema to scan on PostgreSQL; may be repeated (default: public)",
    )
    parser.add_argument(
        "--list",
        action="store_true",
        help="Print each table with its row count instead of cleaning",
    )
    parser.add_argument("--log-level", help="Logging level (default: info)")
    return parser


def _resolve(args: argparse.Namespace) -> tuple[str | None, CleanOptions, str]:
    url = args.url
    options = CleanOptions()
    log_level = "info"
    if args.config:
        config = load_config(args.config)
        url = url or config.database.url
        options = config.clean
        log_level = config.observability.log_level

    overrides = {
        "mode": args.mode or options.mode,
        "ignore_tables": args.ignore_tables or options.ignore_tables,
        "schemas": args.schemas or options.schemas,
    }
    return url, CleanOptions.resolve(overrides), args.log_level or log_level


def _fail(message: str, exc: Exception, **fields: object) -> int:
    _log.error(message, extra=log_extra(error_message=str(exc), **fields))
    print(f"error: {exc}", file=sys.stderr)
    return 1


def main(argv: Sequence[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        url, options, log_level = _resolve(args)
    except ConfigError as exc:
        configure_logging(args.log_level or "info")
        return _fail("Invalid configuration", exc, config_path=args.config)
    if not url:
        parser.error("a database URL is required (positional argument or database.url in --config)")

    configure_logging(log_level)
    try:
        engine = create_engine(url)
    except (SQLAlchemyError, ImportError) as exc:
        # ImportError: the URL names a DBAPI driver that is not installed.
        return _fail("Cannot create engine", exc)

    try:
        if args.list:
            for table_ref in get_table_names(engine, options):
                print(f"{table_ref}\t{get_table_row_count(engine, table_ref)}")
        else:
            result = clean(engine, options)
            print(f"Cleaned {len(result.tables)} table(s) using {result.mode}")
    except (UnsupportedDialectError, SQLAlchemyError) as exc:
        return _fail("Cleaning failed", exc, database=engine.url.render_as_string())
    finally:
        engine.dispose()
    return 0


if __name__ == "__main__":
    sys.exit(main())
