"""
Pytest configuration and fixtures
"""

import copy
from datetime import datetime, timezone

import pytest

from core.store import AnalyticsStore
from models.base import QueryType
from schemas.records import ResponseRecord

FETCHED_AT = datetime(2024, 1, 15, 10, 0, tzinfo=timezone.utc)

CI_WORKFLOW = """\
name: ci
on: [push]
jobs:
  analyze:
    runs-on: ubuntu-latest
    steps:
      - uses: actions/checkout@v4
      - uses: github/codeql-action/init@v3
      - uses: sigstore/cosign-installer@v3
"""

RELEASE_WORKFLOW = """\
name: release
on:
  push:
    tags: ["v*"]
jobs:
  sbom:
    runs-on: ubuntu-latest
    steps:
      - uses: anchore/sbom-action@v0
        with:
          syft-version: v1.0.0
"""

BROKEN_WORKFLOW = "name: broken\njobs: [unclosed\n"


@pytest.fixture
def make_record():
    """Factory for response records with a fixed fetch time"""
    def _make(payload, query_type=QueryType.ARTIFACTS, owner="octo", name="widgets"):
        return ResponseRecord(
            query_type=getattr(query_type, "value", query_type),
            request_parameters={"owner": owner, "name": name},
            fetched_at=FETCHED_AT,
            payload=payload,
        )
    return _make


@pytest.fixture
def artifacts_payload():
    """GetRepoDataArtifacts data for one repository"""
    return {
        "repository": {
            "__typename": "Repository",
            "id": "R1",
            "name": "widgets",
            "nameWithOwner": "octo/widgets",
            "releases": {
                "nodes": [
                    {
                        "__typename": "Release",
                        "id": "REL1",
                        "name": "v1.0.0",
                        "tagName": "v1.0.0",
                        "url": "https://github.com/octo/widgets/releases/tag/v1.0.0",
                        "createdAt": "2024-01-10T12:00:00Z",
                        "releaseAssets": {
                            "nodes": [
                                {
                                    "__typename": "ReleaseAsset",
                                    "id": "A1",
                                    "name": "widgets.spdx.json",
                                    "downloadUrl": "https://example.com/widgets.spdx.json",
                                },
                                {
                                    "__typename": "ReleaseAsset",
                                    "id": "A2",
                                    "name": "widgets.tar.gz.sig",
                                    "downloadUrl": "https://example.com/widgets.tar.gz.sig",
                                },
                            ]
                        },
                    },
                    {
                        "tagName": "v0.9.0",
                        "name": None,
                        "createdAt": "2023-12-01T08:00:00Z",
                        "releaseAssets": None,
                    },
                ]
            },
        }
    }


@pytest.fixture
def extended_payload(artifacts_payload):
    """GetRepoDataExtendedInfo data for the same repository"""
    repository = copy.deepcopy(artifacts_payload["repository"])
    repository.update({
        "url": "https://github.com/octo/widgets",
        "description": "Widgets for everyone",
        "hasVulnerabilityAlertsEnabled": True,
        "licenseInfo": {"key": "apache-2.0", "name": "Apache License 2.0", "spdxId": "Apache-2.0"},
        "defaultBranchRef": {
            "name": "main",
            "branchProtectionRule": {
                "allowsDeletions": False,
                "allowsForcePushes": False,
                "requiresStatusChecks": True,
                "requiredApprovingReviewCount": 2,
                "pattern": "main",
            },
        },
        "branchProtectionRules": {
            "nodes": [
                {"pattern": "release/*", "isAdminEnforced": True},
                None,
            ]
        },
        "workflows": {
            "__typename": "Tree",
            "entries": [
                {"name": "ci.yml", "object": {"__typename": "Blob", "text": CI_WORKFLOW}},
                {"name": "release.yml", "object": {"__typename": "Blob", "text": RELEASE_WORKFLOW}},
                {"name": "broken.yml", "object": {"__typename": "Blob", "text": BROKEN_WORKFLOW}},
                {"name": "templates", "object": {"__typename": "Tree"}},
                {"name": "vendored", "object": {"__typename": "Commit"}},
            ],
        },
    })
    return {"repository": repository}


@pytest.fixture
def store():
    """In-memory analytical store"""
    with AnalyticsStore() as s:
        yield s
