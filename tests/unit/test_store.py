"""
Unit tests for the DuckDB store adapter and loader
"""

import json
from unittest.mock import Mock, PropertyMock, patch

import duckdb
import pytest

from core.exceptions import StoreError
from core.store import AnalyticsStore, quote_identifier, quote_literal
from ingestion.loaders.duckdb_loader import DuckDBLoader
from models.base import Column, TableSchema
from models.raw_data import raw_table_schema
from models.repository import RELEASES, WORKFLOWS
from schemas.records import NamedTable


def test_quoting():
    assert quote_identifier('we"ird') == '"we""ird"'
    assert quote_literal("it's") == "'it''s'"


class TestAnalyticsStore:
    """Test table lifecycle and inspection"""

    def test_create_empty_table_with_types(self, store):
        store.create_table(RELEASES)

        assert store.table_exists("base_releases")
        assert store.columns("base_releases") == list(RELEASES.column_names)
        assert store.row_count("base_releases") == 0

    def test_insert_and_list(self, store):
        schema = TableSchema("base_things", (Column("id"), Column("n", "INTEGER")))
        store.create_table(schema)

        inserted = store.insert_rows("base_things", ["id", "n"], [("a", 1), ("b", 2)])

        assert inserted == 2
        assert store.list_tables() == ["base_things"]
        assert store.list_tables(prefix="agg_") == []
        assert store.fetch_all('SELECT SUM("n") FROM base_things') == [(3,)]

    def test_insert_nothing(self, store):
        store.create_table(RELEASES)

        assert store.insert_rows("base_releases", RELEASES.column_names, []) == 0

    def test_row_count_of_missing_table(self, store):
        with pytest.raises(StoreError):
            store.row_count("base_nowhere")

    def test_failed_script_rolls_back(self, store):
        store.execute_script("CREATE TABLE agg_kept AS SELECT 1 AS x;")

        with pytest.raises(StoreError):
            store.execute_script("CREATE TABLE agg_partial AS SELECT 1 AS x; SELECT * FROM base_missing;")

        assert store.table_exists("agg_kept")
        assert not store.table_exists("agg_partial")

    def test_parquet_metadata_round_trip(self, store, tmp_path):
        store.create_table(RELEASES)
        path = tmp_path / "base_releases.parquet"

        store.export_parquet("base_releases", path, metadata={"table_name": "base_releases", "note": "it's"})

        metadata = store.read_parquet_metadata(path)
        assert metadata["table_name"] == "base_releases"
        assert metadata["note"] == "it's"

    def test_search_extension_failure_is_remembered(self, store):
        con = Mock()
        con.execute.side_effect = duckdb.IOException("Failed to download extension fts")

        with patch.object(AnalyticsStore, "connection", new_callable=PropertyMock, return_value=con):
            for table in ("base_workflows", "base_releases"):
                with pytest.raises(StoreError) as exc_info:
                    store.create_search_index(table, "id", ["name"])
                assert exc_info.value.context["table_name"] == table

        con.execute.assert_called_once_with("INSTALL fts")

    def test_file_database_persists(self, tmp_path):
        database = tmp_path / "database.db"
        with AnalyticsStore(database) as store:
            store.create_table(RELEASES)

        with AnalyticsStore(database) as store:
            assert store.table_exists("base_releases")


class TestDuckDBLoader:
    """Test raw append and base replace"""

    def test_raw_is_appended(self, store, make_record, artifacts_payload):
        loader = DuckDBLoader(store)
        records = [make_record(artifacts_payload)]

        loader.append_raw("GetRepoDataArtifacts", records)
        loader.append_raw("GetRepoDataArtifacts", records)

        raw = raw_table_schema("GetRepoDataArtifacts").name
        assert raw == "raw_GetRepoDataArtifacts"
        assert store.row_count(raw) == 2
        payload = store.fetch_all(f'SELECT payload FROM "{raw}" LIMIT 1')[0][0]
        assert json.loads(payload) == artifacts_payload

    def test_base_is_replaced(self, store):
        loader = DuckDBLoader(store)
        row = {c: None for c in RELEASES.column_names}
        first = NamedTable(
            name="base_releases",
            columns=list(RELEASES.column_names),
            rows=[{**row, "id": "REL1", "repository_id": "R1"}, {**row, "id": "REL2", "repository_id": "R1"}],
        )
        second = NamedTable(
            name="base_releases",
            columns=list(RELEASES.column_names),
            rows=[{**row, "id": "REL3", "repository_id": "R1"}],
        )

        loader.replace(first, RELEASES)
        loader.replace(second, RELEASES)

        assert store.fetch_all("SELECT id FROM base_releases") == [("REL3",)]

    def test_json_columns_receive_json_text(self, store):
        loader = DuckDBLoader(store)
        table = NamedTable(
            name="base_workflows",
            columns=list(WORKFLOWS.column_names),
            rows=[{
                "id": "R1_ci.yml",
                "__typename": "WorkflowFile",
                "repository_id": "R1",
                "filename": "ci.yml",
                "content": "name: ci",
                "content_parsed": '{"name": "ci"}',
            }],
        )

        loader.replace(table, WORKFLOWS)

        value = store.fetch_all("SELECT content_parsed->>'name' FROM base_workflows")[0][0]
        assert value == "ci"

    def test_failed_batch_keeps_every_table(self, store):
        loader = DuckDBLoader(store)
        release = {**{c: None for c in RELEASES.column_names}, "repository_id": "R1"}
        workflow = {**{c: None for c in WORKFLOWS.column_names}, "id": "R1_ci.yml", "repository_id": "R1"}
        loader.replace(
            NamedTable(name="base_releases", columns=list(RELEASES.column_names), rows=[{**release, "id": "REL1"}]),
            RELEASES,
        )

        tables = {
            "base_releases": NamedTable(
                name="base_releases",
                columns=list(RELEASES.column_names),
                rows=[{**release, "id": "REL2"}],
            ),
            "base_workflows": NamedTable(
                name="base_workflows",
                columns=list(WORKFLOWS.column_names),
                rows=[{**workflow, "content_parsed": "{not json"}],
            ),
        }
        with pytest.raises(StoreError) as exc_info:
            loader.replace_batch(tables, [RELEASES, WORKFLOWS])

        assert exc_info.value.context["table_name"] == "base_workflows"
        assert store.fetch_all("SELECT id FROM base_releases") == [("REL1",)]
        assert not store.table_exists("base_workflows")

        tables["base_workflows"].rows[0]["content_parsed"] = '{"name": "ci"}'
        assert loader.replace_batch(tables, [RELEASES, WORKFLOWS]) == {"base_releases": 1, "base_workflows": 1}
