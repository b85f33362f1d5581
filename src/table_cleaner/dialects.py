"""Per-dialect catalog queries and table statements.

Each supported engine gets one class implementing the same capability set:
listing tables, counting rows, dropping tables and emptying tables. The
classes only ever see an open ``Connection``; transaction handling lives in
``connection_scope``.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from contextlib import contextmanager
from typing import Iterator, Sequence, Union

from sqlalchemy import MetaData, column, delete, func, not_, select, table, text
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.schema import Table, sort_tables_and_constraints
from sqlalchemy.sql.expression import Executable

from .errors import UnsupportedDialectError
from .identifiers import canonical_dialect_name, quote_table_ref, split_table_ref
from .logging_utils import log_extra

Bind = Union[Engine, Connection]


@contextmanager
def connection_scope(bind: Bind) -> Iterator[Connection]:
    """Yield a connection with an open transaction for ``bind``.

    Engines get a fresh connection committed on exit. A connection that is
    already in a transaction is used as is and the caller owns the commit.
    """
    if isinstance(bind, Engine):
        with bind.begin() as conn:
            yield conn
        return
    if bind.in_transaction():
        yield bind
        return
    with bind.begin():
        yield bind


class BaseDialect(ABC):
    name: str = ""

    def __init__(self) -> None:
        self._log = logging.getLogger(__name__)

    @abstractmethod
    def table_names_query(self, conn: Connection, schemas: Sequence[str]) -> Executable:
        """Catalog query whose first column holds table references."""

    def list_tables(self, conn: Connection, schemas: Sequence[str]) -> list[str]:
        rows = self._execute(conn, self.table_names_query(conn, schemas)).all()
        return sorted(row[0] for row in rows)

    def row_count(self, conn: Connection, table_ref: str) -> int:
        schema, name = self.split(table_ref)
        stmt = select(func.count()).select_from(table(name, schema=schema))
        return int(self._execute(conn, stmt).scalar_one())

    @abstractmethod
    def drop_tables(self, conn: Connection, table_refs: Sequence[str]) -> None:
        ...

    @abstractmethod
    def clear_tables(self, conn: Connection, table_refs: Sequence[str], mode: str) -> None:
        ...

    def split(self, table_ref: str) -> tuple[str | None, str]:
        return None, table_ref

    def quote(self, conn: Connection, table_ref: str) -> str:
        return quote_table_ref(conn.dialect, table_ref)

    def delete_all(self, conn: Connection, table_ref: str) -> None:
        schema, name = self.split(table_ref)
        self._execute(conn, delete(table(name, schema=schema)))

    def delete_order(self, conn: Connection, table_refs: Sequence[str]) -> list[str]:
        """Order ``table_refs`` so referencing tables are deleted before their targets.

        Foreign keys are reflected for every schema at once, so references
        that cross schemas are ordered too. Foreign keys that form a cycle
        are left out of the ordering.
        """
        by_schema: dict[str | None, list[str]] = {}
        for table_ref in table_refs:
            schema, name = self.split(table_ref)
            by_schema.setdefault(schema, []).append(name)

        metadata = MetaData()
        for schema, names in by_schema.items():
            metadata.reflect(conn, schema=schema, only=names, **self.reflect_kwargs)

        wanted = set(table_refs)
        ordered = [
            self.table_ref_of(reflected)
            for reflected, _ in sort_tables_and_constraints(metadata.tables.values())
            if reflected is not None and self.table_ref_of(reflected) in wanted
        ]
        ordered.reverse()
        seen = set(ordered)
        return [table_ref for table_ref in table_refs if table_ref not in seen] + ordered

    @property
    def reflect_kwargs(self) -> dict[str, object]:
        return {}

    def table_ref_of(self, reflected: Table) -> str:
        if reflected.schema:
            return f"{reflected.schema}.{reflected.name}"
        return reflected.name

    def _execute(self, conn: Connection, stmt: Executable):
        if self._log.isEnabledFor(logging.DEBUG):
            self._log.debug(
                "Executing statement",
                extra=log_extra(dialect=self.name, statement=str(stmt)),
            )
        return conn.execute(stmt)


class MySQLDialect(BaseDialect):
    name = "mysql"

    def table_names_query(self, conn: Connection, schemas: Sequence[str]) -> Executable:
        # MySQL schemas are databases; only the connected one is scanned.
        tables = table(
            "tables",
            column("TABLE_NAME"),
            column("TABLE_SCHEMA"),
            column("TABLE_TYPE"),
            schema="information_schema",
        )
        return select(tables.c.TABLE_NAME).where(
            tables.c.TABLE_SCHEMA == self.database_name(conn),
            tables.c.TABLE_TYPE == "BASE TABLE",
        )

    def database_name(self, conn: Connection) -> str:
        database = conn.engine.url.database
        if database:
            return database
        return self._execute(conn, text("SELECT DATABASE()")).scalar_one()

    @contextmanager
    def foreign_key_checks_disabled(self, conn: Connection) -> Iterator[None]:
        self._execute(conn, text("SET FOREIGN_KEY_CHECKS=0"))
        try:
            yield
        finally:
            self._execute(conn, text("SET FOREIGN_KEY_CHECKS=1"))

    def drop_tables(self, conn: Connection, table_refs: Sequence[str]) -> None:
        with self.foreign_key_checks_disabled(conn):
            for table_ref in table_refs:
                self._execute(conn, text(f"DROP TABLE {self.quote(conn, table_ref)}"))

    def clear_tables(self, conn: Connection, table_refs: Sequence[str], mode: str) -> None:
        with self.foreign_key_checks_disabled(conn):
            for table_ref in table_refs:
                if mode == "delete":
                    self.delete_all(conn, table_ref)
                else:
                    self._execute(
                        conn, text(f"TRUNCATE TABLE {self.quote(conn, table_ref)}")
                    )


class PostgreSQLDialect(BaseDialect):
    name = "postgresql"

    def table_names_query(self, conn: Connection, schemas: Sequence[str]) -> Executable:
        pg_tables = table(
            "pg_tables", column("schemaname"), column("tablename"), schema="pg_catalog"
        )
        return select(
            func.concat(pg_tables.c.schemaname, ".", pg_tables.c.tablename).label(
                "tablename"
            )
        ).where(pg_tables.c.schemaname.in_(list(schemas)))

    def split(self, table_ref: str) -> tuple[str | None, str]:
        return split_table_ref(table_ref)

    def drop_tables(self, conn: Connection, table_refs: Sequence[str]) -> None:
        names = ", ".join(self.quote(conn, table_ref) for table_ref in table_refs)
        self._execute(conn, text(f"DROP TABLE IF EXISTS {names} CASCADE"))

    def clear_tables(self, conn: Connection, table_refs: Sequence[str], mode: str) -> None:
        if mode == "delete":
            for table_ref in self.delete_order(conn, table_refs):
                self.delete_all(conn, table_ref)
            return
        # One statement without CASCADE: PostgreSQL refuses it when a table
        # outside the batch (an ignored one) references a table inside it.
        names = ", ".join(self.quote(conn, table_ref) for table_ref in table_refs)
        self._execute(conn, text(f"TRUNCATE TABLE {names} RESTART IDENTITY"))

    @property
    def reflect_kwargs(self) -> dict[str, object]:
        return {"postgresql_ignore_search_path": True}


class SQLiteDialect(BaseDialect):
    name = "sqlite"

    def table_names_query(self, conn: Connection, schemas: Sequence[str]) -> Executable:
        master = table("sqlite_master", column("name"), column("type"))
        return select(master.c.name).where(
            master.c.type == "table",
            not_(master.c.name.like("sqlite_%")),
        )

    def drop_tables(self, conn: Connection, table_refs: Sequence[str]) -> None:
        for table_ref in table_refs:
            self._execute(conn, text(f"DROP TABLE {self.quote(conn, table_ref)}"))

    def clear_tables(self, conn: Connection, table_refs: Sequence[str], mode: str) -> None:
        # No TRUNCATE in SQLite: truncate mode deletes rows and resets the
        # AUTOINCREMENT counter.
        self.begin_driver_transaction(conn)
        self._execute(conn, text("PRAGMA defer_foreign_keys = ON"))
        reset_sequence = mode == "truncate" and self.has_sequence_table(conn)
        for table_ref in self.delete_order(conn, table_refs):
            self.delete_all(conn, table_ref)
            if reset_sequence:
                self._execute(
                    conn,
                    text("DELETE FROM sqlite_sequence WHERE name = :table_name").bindparams(
                        table_name=table_ref
                    ),
                )

    def begin_driver_transaction(self, conn: Connection) -> None:
        # pysqlite only sends BEGIN ahead of the first DML statement, and
        # defer_foreign_keys is reset by the commit of an autocommit pragma.
        dbapi_connection = conn.connection.dbapi_connection
        if not getattr(dbapi_connection, "in_transaction", True):
            self._execute(conn, text("BEGIN"))

    def has_sequence_table(self, conn: Connection) -> bool:
        stmt = text(
            "SELECT 1 FROM sqlite_master WHERE type = 'table' AND name = 'sqlite_sequence'"
        )
        return self._execute(conn, stmt).first() is not None


_DIALECTS: dict[str, type[BaseDialect]] = {
    MySQLDialect.name: MySQLDialect,
    PostgreSQLDialect.name: PostgreSQLDialect,
    SQLiteDialect.name: SQLiteDialect,
}


def get_dialect(bind: Bind, operation: str | None = None) -> BaseDialect:
    dialect_name = bind.dialect.name
    try:
        return _DIALECTS[canonical_dialect_name(dialect_name)]()
    except UnsupportedDialectError:
        raise UnsupportedDialectError(dialect_name, operation) from None
