"""
Unit tests for the GraphQL extractor
"""

import json
from unittest.mock import AsyncMock, Mock, patch

import httpx
import pytest

from core.exceptions import AuthenticationError, RateLimitError
from ingestion.extractors.graphql_extractor import FetchTarget, GraphQLExtractor
from models.base import QueryType


def make_response(status_code=200, body=None, headers=None):
    response = Mock()
    response.status_code = status_code
    response.headers = headers or {}
    response.json.return_value = body
    response.text = json.dumps(body)
    return response


def repository_body(owner, name):
    return {"data": {"repository": {"id": f"{owner}/{name}", "name": name, "nameWithOwner": f"{owner}/{name}"}}}


@pytest.fixture
def mock_client():
    with patch("httpx.AsyncClient") as client_cls:
        client = AsyncMock()
        client_cls.return_value.__aenter__.return_value = client
        yield client


@pytest.fixture
def extractor(tmp_path):
    return GraphQLExtractor(
        QueryType.ARTIFACTS,
        token="test-token",
        api_url="https://api.example.com/graphql",
        audit_log_path=tmp_path / "raw-responses.jsonl",
        batch_size=10,
        batch_pause=0,
        max_retries=3,
        retry_delay=0,
    )


def audit_entries(extractor):
    return [json.loads(line) for line in extractor.audit_log_path.read_text().splitlines()]


class TestGraphQLExtractor:
    """Test GraphQL fetching"""

    @pytest.mark.asyncio
    async def test_fetch_all_success(self, extractor, mock_client):
        mock_client.post = AsyncMock(side_effect=[
            make_response(body=repository_body("octo", "widgets")),
            make_response(body={"data": {"repository": None}, "errors": [{"type": "NOT_FOUND"}]}),
        ])

        result = await extractor.fetch_all([FetchTarget("octo", "widgets"), FetchTarget("octo", "gone")])

        assert result.status == "success"
        assert len(result.records) == 2
        assert result.records[0].query_type == "GetRepoDataArtifacts"
        assert result.records[0].request_parameters == {"owner": "octo", "name": "widgets"}
        assert result.records[1].payload == {"repository": None}

        _, kwargs = mock_client.post.call_args_list[0]
        assert kwargs["headers"]["Authorization"] == "Bearer test-token"
        assert kwargs["json"]["variables"] == {"owner": "octo", "name": "widgets"}
        assert "query GetRepoDataArtifacts" in kwargs["json"]["query"]

        entries = audit_entries(extractor)
        assert len(entries) == 2
        assert entries[0]["metadata"]["repo"] == "widgets"
        assert entries[0]["response"] == repository_body("octo", "widgets")

    @pytest.mark.asyncio
    async def test_failing_entity_does_not_abort_batch(self, extractor, mock_client):
        def respond(url, headers, json, timeout):
            if json["variables"]["name"] == "private":
                return make_response(status_code=403, body={"message": "forbidden"})
            return make_response(body=repository_body("octo", json["variables"]["name"]))

        mock_client.post = AsyncMock(side_effect=respond)
        targets = [FetchTarget("octo", "a"), FetchTarget("octo", "private"), FetchTarget("octo", "b")]

        result = await extractor.fetch_all(targets)

        assert result.status == "partial_success"
        assert [r.request_parameters["name"] for r in result.records] == ["a", "b"]
        assert len(result.failures) == 1
        assert result.failures[0].target.name == "private"
        assert result.failures[0].error_type == AuthenticationError.__name__

        errors = [e for e in audit_entries(extractor) if e["error"]]
        assert [e["metadata"]["repo"] for e in errors] == ["private"]

    @pytest.mark.asyncio
    async def test_server_error_is_retried(self, extractor, mock_client):
        mock_client.post = AsyncMock(side_effect=[
            make_response(status_code=502, body={"message": "bad gateway"}),
            make_response(body=repository_body("octo", "widgets")),
        ])

        result = await extractor.fetch_all([FetchTarget("octo", "widgets")])

        assert len(result.records) == 1
        assert mock_client.post.call_count == 2

    @pytest.mark.asyncio
    async def test_authentication_is_not_retried(self, extractor, mock_client):
        mock_client.post = AsyncMock(return_value=make_response(status_code=401, body={}))

        with pytest.raises(AuthenticationError):
            await extractor.fetch_one(mock_client, FetchTarget("octo", "widgets"))

        assert mock_client.post.call_count == 1

    @pytest.mark.asyncio
    async def test_rate_limit_exhausted(self, extractor, mock_client):
        mock_client.post = AsyncMock(
            return_value=make_response(status_code=429, body={}, headers={"Retry-After": "0"})
        )

        with pytest.raises(RateLimitError) as exc_info:
            await extractor.fetch_one(mock_client, FetchTarget("octo", "widgets"))

        assert mock_client.post.call_count == 3
        assert exc_info.value.context["retry_count"] == 3

    @pytest.mark.asyncio
    async def test_timeout_is_recorded_in_audit_log(self, extractor, mock_client):
        mock_client.post = AsyncMock(side_effect=httpx.ReadTimeout("timed out"))

        result = await extractor.fetch_all([FetchTarget("octo", "slow")])

        assert result.records == []
        assert result.failures[0].error_type == "NetworkError"
        entries = audit_entries(extractor)
        assert entries[0]["response"] is None
        assert "timeout" in entries[0]["error"].lower()

    @pytest.mark.asyncio
    async def test_body_without_data_is_a_failure(self, extractor, mock_client):
        body = {"errors": [{"message": "Something went wrong"}]}
        mock_client.post = AsyncMock(return_value=make_response(body=body))

        result = await extractor.fetch_all([FetchTarget("octo", "widgets")])

        assert result.records == []
        assert result.failures[0].message == "GraphQL response carries no data"
        entries = audit_entries(extractor)
        assert len(entries) == 1
        assert entries[0]["response"] == body

    @pytest.mark.asyncio
    async def test_batches_pause_between(self, tmp_path, mock_client):
        extractor = GraphQLExtractor(
            QueryType.EXTENDED_INFO,
            token="test-token",
            batch_size=2,
            batch_pause=0.5,
            retry_delay=0,
        )
        mock_client.post = AsyncMock(return_value=make_response(body={"data": {"repository": None}}))
        targets = [FetchTarget("octo", f"repo{i}") for i in range(5)]

        with patch("asyncio.sleep", new_callable=AsyncMock) as sleep:
            result = await extractor.fetch_all(targets)

        assert len(result.records) == 5
        assert [c.args[0] for c in sleep.await_args_list] == [0.5, 0.5]


def test_target_from_dict():
    assert FetchTarget.from_dict({"owner": "octo", "name": "widgets"}).key == "octo/widgets"
    assert FetchTarget.from_dict({"owner": "octo", "repo": "widgets"}).name == "widgets"
