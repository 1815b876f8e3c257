"""
Shared extraction for repository-rooted queries.
"""

from typing import Any, Dict, Optional

from ingestion.normalizers.base import QueryNormalizer, Rows, node_id, nodes
from models.repository import RELEASE_ASSETS, RELEASES


class RepositoryNormalizer(QueryNormalizer):
    """
    Base for queries rooted at `repository`.

    Handles the release -> release asset hierarchy both query types share.
    """

    root_field = "repository"

    # Value stored when a release has no title; None keeps the null
    empty_release_name: Optional[str] = None

    def add_releases(self, repository: Dict[str, Any], repo_id: str, rows: Rows):
        for ordinal, release in enumerate(nodes(repository.get("releases"))):
            release_id = node_id(release, repo_id, "release", ordinal)
            name = release.get("name")
            if name is None:
                name = self.empty_release_name

            rows[RELEASES.name].append({
                "id": release_id,
                "__typename": release.get("__typename") or "Release",
                "repository_id": repo_id,
                "name": name,
                "tagName": release.get("tagName"),
                "url": release.get("url"),
                "createdAt": release.get("createdAt"),
            })

            for asset_ordinal, asset in enumerate(nodes(release.get("releaseAssets"))):
                rows[RELEASE_ASSETS.name].append({
                    "id": node_id(asset, release_id, "asset", asset_ordinal),
                    "__typename": asset.get("__typename") or "ReleaseAsset",
                    "release_id": release_id,
                    "name": asset.get("name"),
                    "downloadUrl": asset.get("downloadUrl"),
                })

