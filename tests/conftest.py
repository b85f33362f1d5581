from __future__ import annotations

from pathlib import Path
from unittest.mock import MagicMock

import pytest
from sqlalchemy import (
    Column,
    Engine,
    ForeignKey,
    Integer,
    MetaData,
    String,
    Table,
    create_engine,
    insert,
)
from sqlalchemy.engine import Connection, Dialect


def make_connection(dialect: Dialect, name: str | None = None, database: str | None = "app") -> MagicMock:
    """Mock connection carrying a real SQLAlchemy dialect for statement compilation."""
    conn = MagicMock(spec=Connection)
    conn.dialect = dialect
    if name is not None:
        dialect.name = name
    conn.engine = MagicMock()
    conn.engine.url.database = database
    conn.in_transaction.return_value = True
    conn.execute.return_value.all.return_value = []
    return conn


def executed_sql(conn: MagicMock) -> list[str]:
    return [
        str(
            call.args[0].compile(
                dialect=conn.dialect, compile_kwargs={"literal_binds": True}
            )
        )
        for call in conn.execute.call_args_list
    ]


def build_tables(metadata: MetaData, schema: str | None = None) -> tuple[Table, Table, Table]:
    test_1 = Table(
        "test_1",
        metadata,
        Column("id", Integer, primary_key=True),
        Column("name", String(255)),
        schema=schema,
        sqlite_autoincrement=True,
    )
    test_2 = Table(
        "test_2",
        metadata,
        Column("id", Integer, primary_key=True),
        Column("name", String(255)),
        Column("test_1_id", Integer, ForeignKey(test_1.c.id)),
        schema=schema,
    )
    dog_breeds = Table(
        "dogBreeds",
        metadata,
        Column("id", Integer, primary_key=True),
        Column("name", String(255)),
        schema=schema,
    )
    return test_1, test_2, dog_breeds


def seed(engine: Engine, schema: str | None = None) -> MetaData:
    """Create test_1 (3 rows), test_2 (3 rows referencing test_1) and dogBreeds (1 row)."""
    metadata = MetaData()
    test_1, test_2, dog_breeds = build_tables(metadata, schema)
    metadata.create_all(engine)
    with engine.begin() as conn:
        conn.execute(insert(test_1), [{"name": name} for name in ("Acme", "Globex", "Initech")])
        ids = conn.execute(test_1.select().with_only_columns(test_1.c.id)).scalars().all()
        conn.execute(
            insert(test_2),
            [{"name": f"child of {row_id}", "test_1_id": row_id} for row_id in ids],
        )
        conn.execute(insert(dog_breeds), {"name": "corgi"})
    return metadata


@pytest.fixture
def sqlite_engine(tmp_path: Path):
    engine = create_engine(f"sqlite:///{tmp_path / 'cleaner.db'}")
    yield engine
    engine.dispose()


@pytest.fixture
def seeded_sqlite(sqlite_engine: Engine) -> Engine:
    seed(sqlite_engine)
    return sqlite_engine
