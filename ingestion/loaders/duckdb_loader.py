"""
Load raw responses and normalized tables into the DuckDB store.

Two disciplines:
- raw tables are appended to, never replaced
- base tables are replaced wholesale, never merged
"""

from datetime import datetime, timezone
from typing import Any, Dict, Optional, Sequence
import json
import logging

import duckdb

from core.exceptions import StoreError
from core.store import AnalyticsStore
from models.base import TableSchema
from models.raw_data import raw_table_schema
from schemas.records import NamedTable, ResponseRecord

logger = logging.getLogger(__name__)


def _utc_naive(value: datetime) -> datetime:
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def _json_cell(value: Any) -> Optional[str]:
    if value is None or isinstance(value, str):
        return value
    return json.dumps(value)


class DuckDBLoader:
    """
    Load data into DuckDB.

    Ensures:
    - Tables are created with explicit column types, even when empty
    - JSON columns receive JSON text
    - Foreign-key columns are indexed after a replace
    """

    def __init__(self, store: AnalyticsStore):
        self.store = store

    def append_raw(self, query_type: str, records: Sequence[ResponseRecord]) -> int:
        """
        Append raw responses to raw_<query_type>.

        Returns:
            Number of rows appended
        """
        schema = raw_table_schema(query_type)
        self.store.create_table(schema, replace=False)

        loaded_at = _utc_naive(datetime.now(timezone.utc))
        rows = [
            (
                record.query_type,
                json.dumps(record.request_parameters, sort_keys=True),
                _utc_naive(record.fetched_at),
                json.dumps(record.payload),
                loaded_at,
            )
            for record in records
        ]
        appended = self.store.insert_rows(schema.name, schema.column_names, rows)

        logger.info(f"Appended {appended} rows to {schema.name}")
        return appended

    def replace(self, table: NamedTable, schema: TableSchema) -> int:
        """
        Replace a single base table with the rows of a normalizer output table.

        Returns:
            Number of rows loaded
        """
        return self.replace_batch({schema.name: table}, [schema])[schema.name]

    def replace_batch(self, tables: Dict[str, NamedTable], schemas: Sequence[TableSchema]) -> Dict[str, int]:
        """
        Replace every base table of one batch atomically.

        Either all tables hold the new batch or, on a StoreError, all keep
        their previous contents. Foreign-key indexes are built once the
        replacement is committed.

        Returns:
            Rows loaded per table, in schema order
        """
        loaded: Dict[str, int] = {}
        try:
            with self.store.transaction():
                for schema in schemas:
                    loaded[schema.name] = self._load(tables[schema.name], schema)
        except duckdb.Error as e:
            raise StoreError(
                "Failed to replace base tables",
                context={"operation": "REPLACE", "tables": [s.name for s in schemas]},
                original_exception=e
            )

        for schema in schemas:
            for column in schema.foreign_keys:
                self.store.create_index(schema.name, column)
            logger.info(f"Created table: {schema.name} ({loaded[schema.name]} rows)")
        return loaded

    def _load(self, table: NamedTable, schema: TableSchema) -> int:
        json_columns = {c.name for c in schema.columns if c.type == "JSON"}
        rows = [
            tuple(
                _json_cell(row.get(column)) if column in json_columns else row.get(column)
                for column in schema.column_names
            )
            for row in table.rows
        ]

        self.store.drop_table(schema.name)
        self.store.create_table(schema, replace=True)
        return self.store.insert_rows(schema.name, schema.column_names, rows)
