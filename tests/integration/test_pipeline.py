"""
End-to-end tests for the pipeline script, replaying a recorded audit log
"""

import pytest

from core.config import settings
from core.store import AnalyticsStore
from ingestion.audit_log import append_fetch_attempt
from models.base import QueryType
from scripts.replay_audit_log import summarize
from scripts.run_pipeline import load_targets, main, run_pipeline


@pytest.fixture(autouse=True)
def no_search_indexes(monkeypatch):
    monkeypatch.setattr(settings, "ENABLE_SEARCH_INDEXES", False)


@pytest.fixture
def audit_log(tmp_path, artifacts_payload, extended_payload):
    path = tmp_path / "recorded" / "raw-responses.jsonl"
    inputs = {"owner": "octo", "name": "widgets"}
    append_fetch_attempt(path, QueryType.ARTIFACTS.value, "octo", "widgets",
                         response={"data": artifacts_payload}, inputs=inputs)
    append_fetch_attempt(path, QueryType.EXTENDED_INFO.value, "octo", "widgets",
                         response={"data": extended_payload}, inputs=inputs)
    append_fetch_attempt(path, QueryType.ARTIFACTS.value, "octo", "private",
                         error="Authentication failed")
    return path


@pytest.mark.asyncio
async def test_replay_builds_all_artifacts(tmp_path, audit_log):
    output = tmp_path / "output"

    exit_code = await run_pipeline(output, list(QueryType), replay_path=audit_log)

    assert exit_code == 0
    parquet = {p.name for p in (output / "parquet").glob("*.parquet")}
    assert {
        "raw_GetRepoDataArtifacts.parquet",
        "raw_GetRepoDataExtendedInfo.parquet",
        "base_repositories.parquet",
        "base_release_assets.parquet",
        "base_workflows.parquet",
        "base_branch_protection_rules.parquet",
        "agg_artifact_patterns.parquet",
        "agg_workflow_tools.parquet",
        "agg_repo_summary.parquet",
    } <= parquet

    with AnalyticsStore(output / settings.DATABASE_FILENAME) as store:
        assert store.row_count("raw_GetRepoDataArtifacts") == 1
        assert store.fetch_all("SELECT security_maturity_score FROM agg_repo_summary") == [(6,)]
        metadata = store.read_parquet_metadata(output / "parquet" / "agg_repo_summary.parquet")

    assert metadata["table_family"] == "agg"
    assert metadata["table_description"]


@pytest.mark.asyncio
async def test_replay_single_query_type(tmp_path, audit_log):
    output = tmp_path / "output"

    exit_code = await run_pipeline(output, [QueryType.ARTIFACTS], replay_path=audit_log)

    assert exit_code == 0
    assert (output / "parquet" / "agg_artifact_patterns.parquet").exists()
    assert not (output / "parquet" / "agg_repo_summary.parquet").exists()


@pytest.mark.asyncio
async def test_fetch_requires_token(tmp_path, monkeypatch):
    monkeypatch.setattr(settings, "GITHUB_TOKEN", None)

    exit_code = await run_pipeline(tmp_path, list(QueryType), input_path=tmp_path / "targets.jsonl")

    assert exit_code == 2


def test_main_requires_a_source():
    assert main(["--output", "unused"]) == 2


def test_load_targets_skips_invalid_lines(tmp_path):
    path = tmp_path / "targets.jsonl"
    path.write_text('{"owner": "octo", "name": "widgets"}\n\nnot json\n{"owner": "octo"}\n')

    assert [t.key for t in load_targets(path)] == ["octo/widgets"]


def test_summarize_audit_log(audit_log):
    counts = summarize(audit_log)

    assert counts == {"GetRepoDataArtifacts": 1, "GetRepoDataExtendedInfo": 1}
