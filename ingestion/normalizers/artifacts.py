"""
Normalizer for GetRepoDataArtifacts responses
"""

from typing import Any, Dict

from ingestion.normalizers.base import Rows
from ingestion.normalizers.repository import RepositoryNormalizer
from models.base import QueryType
from models.repository import RELEASE_ASSETS, RELEASES, REPOSITORIES


class ArtifactsNormalizer(RepositoryNormalizer):
    """
    repository -> releases -> release assets.

    Tables:
        base_repositories
        base_releases (repository_id FK)
        base_release_assets (release_id FK)
    """

    query_type = QueryType.ARTIFACTS
    tables = (REPOSITORIES, RELEASES, RELEASE_ASSETS)
    empty_release_name = ""

    def extract(self, entity: Dict[str, Any], entity_id: str, rows: Rows):
        rows[REPOSITORIES.name].append({
            "id": entity_id,
            "__typename": entity.get("__typename") or "Repository",
            "name": entity.get("name"),
            "nameWithOwner": entity.get("nameWithOwner"),
        })
        self.add_releases(entity, entity_id, rows)
