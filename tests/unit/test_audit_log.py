"""
Unit tests for the fetch audit log
"""

import json
from datetime import datetime, timezone

from ingestion.audit_log import append_fetch_attempt, iter_entries, read_response_records
from models.base import QueryType


def test_append_writes_one_line_per_attempt(tmp_path):
    path = tmp_path / "logs" / "raw-responses.jsonl"

    append_fetch_attempt(path, "GetRepoDataArtifacts", "octo", "widgets", response={"data": {"repository": None}})
    append_fetch_attempt(path, "GetRepoDataArtifacts", "octo", "gadgets", error="timeout")

    lines = path.read_text().splitlines()
    assert len(lines) == 2

    first = json.loads(lines[0])
    assert first["metadata"]["queryType"] == "GetRepoDataArtifacts"
    assert first["metadata"]["inputs"] == {"owner": "octo", "name": "widgets"}
    assert first["response"] == {"data": {"repository": None}}
    assert first["error"] is None

    second = json.loads(lines[1])
    assert second["response"] is None
    assert second["error"] == "timeout"


def test_read_response_records_skips_failures(tmp_path):
    path = tmp_path / "raw-responses.jsonl"
    fetched_at = datetime(2024, 1, 15, 10, 0, tzinfo=timezone.utc)
    payload = {"repository": {"id": "R1", "name": "widgets"}}

    append_fetch_attempt(path, "GetRepoDataArtifacts", "octo", "widgets",
                         response={"data": payload}, timestamp=fetched_at)
    append_fetch_attempt(path, "GetRepoDataArtifacts", "octo", "broken", error="HTTP 502")
    append_fetch_attempt(path, "GetRepoDataArtifacts", "octo", "denied",
                         response={"errors": [{"message": "Bad credentials"}]})
    append_fetch_attempt(path, "GetRepoDataExtendedInfo", "octo", "widgets",
                         response={"data": payload})

    records = read_response_records(path, QueryType.ARTIFACTS.value)

    assert len(records) == 1
    assert records[0].payload == payload
    assert records[0].request_parameters == {"owner": "octo", "name": "widgets"}
    assert records[0].fetched_at == fetched_at


def test_read_all_query_types(tmp_path):
    path = tmp_path / "raw-responses.jsonl"
    append_fetch_attempt(path, "GetRepoDataArtifacts", "octo", "a", response={"data": {"repository": None}})
    append_fetch_attempt(path, "GetRepoDataExtendedInfo", "octo", "a", response={"data": {"repository": None}})

    records = read_response_records(path)

    assert [r.query_type for r in records] == ["GetRepoDataArtifacts", "GetRepoDataExtendedInfo"]


def test_malformed_lines_are_skipped(tmp_path):
    path = tmp_path / "raw-responses.jsonl"
    append_fetch_attempt(path, "GetRepoDataArtifacts", "octo", "a", response={"data": {}})
    with path.open("a") as f:
        f.write("{not json\n\n")

    assert len(list(iter_entries(path))) == 1
