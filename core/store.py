"""
Analytical store adapter over a single DuckDB connection.

The store is a single-writer resource: one pipeline run owns one
AnalyticsStore, and every SQL statement the pipeline issues goes through it.
"""

from contextlib import contextmanager
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Sequence, Union
import logging

import duckdb

from core.exceptions import StoreError
from models.base import TableSchema

logger = logging.getLogger(__name__)

IN_MEMORY = ":memory:"


def quote_identifier(name: str) -> str:
    """Double-quote an identifier, escaping embedded quotes"""
    return '"' + name.replace('"', '""') + '"'


def quote_literal(value: Any) -> str:
    """Single-quote a string literal, escaping embedded quotes"""
    return "'" + str(value).replace("'", "''") + "'"


class AnalyticsStore:
    """
    DuckDB-backed table store.

    Responsibilities:
    - Table lifecycle (create or replace, append, drop)
    - Schema inspection through information_schema
    - B-tree and full-text index creation
    - Parquet export with embedded key-value metadata
    """

    def __init__(self, database: Union[str, Path] = IN_MEMORY):
        self.database = str(database)
        self._connection: Optional[duckdb.DuckDBPyConnection] = None
        self._fts_loaded = False
        self._fts_error: Optional[duckdb.Error] = None

    # ------------------------------------------------------------------
    # Connection management
    # ------------------------------------------------------------------

    @property
    def connection(self) -> duckdb.DuckDBPyConnection:
        if self._connection is None:
            try:
                self._connection = duckdb.connect(self.database)
            except duckdb.Error as e:
                raise StoreError(
                    "Failed to open analytical store",
                    context={"operation": "CONNECT", "database": self.database},
                    original_exception=e
                )
            logger.debug(f"Opened DuckDB store at {self.database}")
        return self._connection

    def close(self):
        """Flush the WAL into the database file and close the connection"""
        if self._connection is None:
            return
        try:
            if self.database != IN_MEMORY:
                self._connection.execute("CHECKPOINT")
        except duckdb.Error as e:
            logger.warning(f"Could not checkpoint {self.database}: {e}")
        finally:
            self._connection.close()
            self._connection = None
            self._fts_loaded = False
            self._fts_error = None

    def __enter__(self) -> "AnalyticsStore":
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    @contextmanager
    def transaction(self) -> Iterator[duckdb.DuckDBPyConnection]:
        """Run a block atomically, rolling back on any error"""
        con = self.connection
        con.begin()
        try:
            yield con
        except BaseException:
            con.rollback()
            raise
        else:
            con.commit()

    # ------------------------------------------------------------------
    # Inspection
    # ------------------------------------------------------------------

    def list_tables(self, prefix: Optional[str] = None) -> List[str]:
        rows = self.connection.execute(
            """
            SELECT table_name
            FROM information_schema.tables
            WHERE table_schema = 'main'
              AND table_type = 'BASE TABLE'
              AND table_catalog = current_database()
            ORDER BY table_name
            """
        ).fetchall()
        names = [r[0] for r in rows]
        if prefix is not None:
            names = [n for n in names if n.startswith(prefix)]
        return names

    def table_exists(self, name: str) -> bool:
        row = self.connection.execute(
            """
            SELECT COUNT(*)
            FROM information_schema.tables
            WHERE table_schema = 'main'
              AND table_catalog = current_database()
              AND table_name = ?
            """,
            [name],
        ).fetchone()
        return bool(row and row[0])

    def columns(self, name: str) -> List[str]:
        rows = self.connection.execute(
            """
            SELECT column_name
            FROM information_schema.columns
            WHERE table_schema = 'main'
              AND table_catalog = current_database()
              AND table_name = ?
            ORDER BY ordinal_position
            """,
            [name],
        ).fetchall()
        return [r[0] for r in rows]

    def row_count(self, name: str) -> int:
        try:
            row = self.connection.execute(
                f"SELECT COUNT(*) FROM {quote_identifier(name)}"
            ).fetchone()
        except duckdb.Error as e:
            raise StoreError(
                f"Failed to count rows of {name}",
                context={"operation": "COUNT", "table_name": name},
                original_exception=e
            )
        return int(row[0])

    def fetch_all(self, sql: str, params: Optional[Sequence[Any]] = None) -> List[tuple]:
        return self.connection.execute(sql, params or []).fetchall()

    # ------------------------------------------------------------------
    # Table lifecycle
    # ------------------------------------------------------------------

    def create_table(self, schema: TableSchema, replace: bool = True):
        """Create a table with explicit column types"""
        column_sql = ", ".join(
            f"{quote_identifier(c.name)} {c.type}" for c in schema.columns
        )
        verb = "CREATE OR REPLACE TABLE" if replace else "CREATE TABLE IF NOT EXISTS"
        try:
            self.connection.execute(
                f"{verb} {quote_identifier(schema.name)} ({column_sql})"
            )
        except duckdb.Error as e:
            raise StoreError(
                f"Failed to create table {schema.name}",
                context={"operation": "CREATE", "table_name": schema.name},
                original_exception=e
            )

    def insert_rows(self, table: str, columns: Sequence[str], rows: Sequence[tuple]) -> int:
        """Bulk insert rows given in column order"""
        if not rows:
            return 0
        column_sql = ", ".join(quote_identifier(c) for c in columns)
        placeholders = ", ".join("?" for _ in columns)
        try:
            self.connection.executemany(
                f"INSERT INTO {quote_identifier(table)} ({column_sql}) VALUES ({placeholders})",
                list(rows),
            )
        except duckdb.Error as e:
            raise StoreError(
                f"Failed to insert rows into {table}",
                context={"operation": "INSERT", "table_name": table, "rows": len(rows)},
                original_exception=e
            )
        return len(rows)

    def drop_table(self, name: str):
        try:
            self.connection.execute(f"DROP TABLE IF EXISTS {quote_identifier(name)}")
        except duckdb.Error as e:
            raise StoreError(
                f"Failed to drop table {name}",
                context={"operation": "DROP", "table_name": name},
                original_exception=e
            )

    def execute_script(self, sql: str):
        """Run a multi-statement script atomically"""
        try:
            with self.transaction() as con:
                con.execute(sql)
        except duckdb.Error as e:
            raise StoreError(
                "Script execution failed",
                context={"operation": "SCRIPT"},
                original_exception=e
            )

    # ------------------------------------------------------------------
    # Indexes
    # ------------------------------------------------------------------

    def create_index(self, table: str, column: str):
        index_name = f"idx_{table}_{column}".lower()
        try:
            self.connection.execute(
                f"CREATE INDEX IF NOT EXISTS {quote_identifier(index_name)} "
                f"ON {quote_identifier(table)} ({quote_identifier(column)})"
            )
        except duckdb.Error as e:
            raise StoreError(
                f"Failed to index {table}.{column}",
                context={"operation": "INDEX", "table_name": table, "column": column},
                original_exception=e
            )

    def create_search_index(self, table: str, id_column: str, columns: Sequence[str]):
        """Build (or rebuild) a full-text index through the fts extension"""
        context = {"operation": "FTS", "table_name": table, "columns": list(columns)}
        self._load_fts(table, context)
        args = ", ".join(quote_literal(a) for a in (table, id_column, *columns))
        try:
            self.connection.execute(f"PRAGMA create_fts_index({args}, overwrite=1)")
        except duckdb.Error as e:
            raise StoreError(
                f"Failed to create full-text index on {table}",
                context=context,
                original_exception=e
            )

    def _load_fts(self, table: str, context: Dict[str, Any]):
        # One install attempt per connection; later indexes fail fast
        if self._fts_loaded:
            return
        if self._fts_error is None:
            try:
                self.connection.execute("INSTALL fts")
                self.connection.execute("LOAD fts")
                self._fts_loaded = True
                return
            except duckdb.Error as e:
                logger.warning(f"Full-text search extension unavailable: {e}")
                self._fts_error = e
        raise StoreError(
            f"Failed to create full-text index on {table}: fts extension unavailable",
            context=context,
            original_exception=self._fts_error
        )

    # ------------------------------------------------------------------
    # Export
    # ------------------------------------------------------------------

    def export_parquet(
        self,
        table: str,
        path: Union[str, Path],
        metadata: Optional[Dict[str, str]] = None,
        compression: str = "zstd",
        row_group_size: int = 100000
    ):
        options = [
            "FORMAT PARQUET",
            f"COMPRESSION {quote_literal(compression)}",
            f"ROW_GROUP_SIZE {int(row_group_size)}",
        ]
        if metadata:
            entries = ", ".join(
                f"{quote_literal(k)}: {quote_literal(v)}" for k, v in metadata.items()
            )
            options.append(f"KV_METADATA {{{entries}}}")

        sql = (
            f"COPY {quote_identifier(table)} TO {quote_literal(path)} "
            f"({', '.join(options)})"
        )
        try:
            self.connection.execute(sql)
        except duckdb.Error as e:
            raise StoreError(
                f"Failed to export {table} to Parquet",
                context={"operation": "COPY", "table_name": table, "path": str(path)},
                original_exception=e
            )

    def read_parquet_metadata(self, path: Union[str, Path]) -> Dict[str, str]:
        """Key-value metadata embedded in a Parquet file"""
        rows = self.connection.execute(
            f"SELECT key, value FROM parquet_kv_metadata({quote_literal(path)})"
        ).fetchall()
        return {_decode(k): _decode(v) for k, v in rows}


def _decode(value: Any) -> str:
    if isinstance(value, (bytes, bytearray)):
        return bytes(value).decode("utf-8")
    return str(value)
