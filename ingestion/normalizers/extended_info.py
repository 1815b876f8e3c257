"""
Normalizer for GetRepoDataExtendedInfo responses.

Besides releases this query carries branch protection and the workflow
directory, which arrives as a Git object union (Tree | Blob | Commit | Tag).
"""

from typing import Any, Dict

from ingestion.normalizers.base import Rows, composite_id, nodes
from ingestion.normalizers.content import parsed_json
from ingestion.normalizers.repository import RepositoryNormalizer
from ingestion.normalizers.variants import narrow
from models.base import QueryType
from models.repository import (
    BRANCH_PROTECTION_RULES,
    RELEASE_ASSETS,
    RELEASES,
    REPOSITORIES_EXTENDED,
    WORKFLOWS,
)

RULE_FLAGS = (
    "allowsDeletions",
    "allowsForcePushes",
    "dismissesStaleReviews",
    "isAdminEnforced",
    "requiresStatusChecks",
    "requiresStrictStatusChecks",
    "requiresCodeOwnerReviews",
)


class ExtendedInfoNormalizer(RepositoryNormalizer):
    """
    Repository details, branch protection, releases and workflow files.

    Tables:
        base_repositories (license and default branch flattened in)
        base_branch_protection_rules (repository_id FK)
        base_releases (repository_id FK)
        base_release_assets (release_id FK)
        base_workflows (repository_id FK)
    """

    query_type = QueryType.EXTENDED_INFO
    tables = (
        REPOSITORIES_EXTENDED,
        BRANCH_PROTECTION_RULES,
        RELEASES,
        RELEASE_ASSETS,
        WORKFLOWS,
    )

    def extract(self, entity: Dict[str, Any], entity_id: str, rows: Rows):
        license_info = entity.get("licenseInfo") or {}
        default_branch = entity.get("defaultBranchRef") or {}

        rows[REPOSITORIES_EXTENDED.name].append({
            "id": entity_id,
            "__typename": entity.get("__typename") or "Repository",
            "name": entity.get("name"),
            "nameWithOwner": entity.get("nameWithOwner"),
            "url": entity.get("url"),
            "description": entity.get("description"),
            "hasVulnerabilityAlertsEnabled": entity.get("hasVulnerabilityAlertsEnabled"),
            "license_key": license_info.get("key") or None,
            "license_name": license_info.get("name") or None,
            "license_spdxId": license_info.get("spdxId") or None,
            "defaultBranch_name": default_branch.get("name") or None,
        })

        self.add_branch_protection_rules(entity, entity_id, rows)
        self.add_releases(entity, entity_id, rows)
        self.add_workflows(entity, entity_id, rows)

    def add_branch_protection_rules(self, repository: Dict[str, Any], repo_id: str, rows: Rows):
        default_rule = (repository.get("defaultBranchRef") or {}).get("branchProtectionRule")
        if isinstance(default_rule, dict):
            rows[BRANCH_PROTECTION_RULES.name].append(
                self._rule_row(default_rule, composite_id(repo_id, "default"), repo_id, True)
            )

        for ordinal, rule in enumerate(nodes(repository.get("branchProtectionRules"))):
            rows[BRANCH_PROTECTION_RULES.name].append(
                self._rule_row(rule, composite_id(repo_id, "rule", ordinal), repo_id, False)
            )

    def add_workflows(self, repository: Dict[str, Any], repo_id: str, rows: Rows):
        tree = narrow(repository.get("workflows"), ("Tree",))
        if tree.ignored:
            return

        for entry in tree.value.get("entries") or []:
            if not isinstance(entry, dict) or not entry.get("name"):
                continue
            blob = narrow(entry.get("object"), ("Blob",))
            if blob.ignored:
                continue

            content = blob.value.get("text")
            rows[WORKFLOWS.name].append({
                "id": composite_id(repo_id, entry["name"]),
                "__typename": "WorkflowFile",
                "repository_id": repo_id,
                "filename": entry["name"],
                "content": content,
                "content_parsed": parsed_json(content),
            })

    @staticmethod
    def _rule_row(rule: Dict[str, Any], rule_id: str, repo_id: str, is_default: bool) -> Dict[str, Any]:
        row = {
            "id": rule_id,
            "__typename": rule.get("__typename") or "BranchProtectionRule",
            "repository_id": repo_id,
            "requiredApprovingReviewCount": rule.get("requiredApprovingReviewCount"),
            "pattern": rule.get("pattern"),
            "isDefaultBranch": is_default,
        }
        for flag in RULE_FLAGS:
            row[flag] = rule.get(flag)
        return row
