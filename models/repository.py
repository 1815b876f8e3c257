from models.base import Column, TableSchema

# ----------------------------------------------------------------------------
# Shared columns
# ----------------------------------------------------------------------------

_ID = Column("id", "VARCHAR", "GraphQL node id, or a parent-scoped composite key")
_TYPENAME = Column("__typename", "VARCHAR", "GraphQL object type of the source node")


REPOSITORIES = TableSchema(
    name="base_repositories",
    description="Repositories, one row per found repository",
    columns=(
        _ID,
        _TYPENAME,
        Column("name", "VARCHAR", "Repository name"),
        Column("nameWithOwner", "VARCHAR", "owner/name slug"),
    ),
)

REPOSITORIES_EXTENDED = TableSchema(
    name="base_repositories",
    description="Repositories with license and default branch details",
    columns=REPOSITORIES.columns + (
        Column("url", "VARCHAR", "HTML URL of the repository"),
        Column("description", "VARCHAR", "Repository description"),
        Column("hasVulnerabilityAlertsEnabled", "BOOLEAN", "Dependabot alerts enabled"),
        Column("license_key", "VARCHAR", "License key (flattened from licenseInfo)"),
        Column("license_name", "VARCHAR", "License name (flattened from licenseInfo)"),
        Column("license_spdxId", "VARCHAR", "SPDX identifier (flattened from licenseInfo)"),
        Column("defaultBranch_name", "VARCHAR", "Name of the default branch"),
    ),
)

RELEASES = TableSchema(
    name="base_releases",
    description="Releases of each repository",
    foreign_keys={"repository_id": "base_repositories"},
    columns=(
        _ID,
        _TYPENAME,
        Column("repository_id", "VARCHAR", "FK to base_repositories.id"),
        Column("name", "VARCHAR", "Release title"),
        Column("tagName", "VARCHAR", "Git tag of the release"),
        Column("url", "VARCHAR", "HTML URL of the release"),
        Column("createdAt", "VARCHAR", "Creation time as reported by the API (ISO 8601)"),
    ),
)

RELEASE_ASSETS = TableSchema(
    name="base_release_assets",
    description="Files attached to each release",
    foreign_keys={"release_id": "base_releases"},
    columns=(
        _ID,
        _TYPENAME,
        Column("release_id", "VARCHAR", "FK to base_releases.id"),
        Column("name", "VARCHAR", "Asset file name"),
        Column("downloadUrl", "VARCHAR", "Direct download URL"),
    ),
)

BRANCH_PROTECTION_RULES = TableSchema(
    name="base_branch_protection_rules",
    description="Branch protection rules, including the rule on the default branch",
    foreign_keys={"repository_id": "base_repositories"},
    columns=(
        Column("id", "VARCHAR", "repository id + '_default' or '_rule_<n>'"),
        _TYPENAME,
        Column("repository_id", "VARCHAR", "FK to base_repositories.id"),
        Column("allowsDeletions", "BOOLEAN", "Matching branches can be deleted"),
        Column("allowsForcePushes", "BOOLEAN", "Force pushes are allowed"),
        Column("dismissesStaleReviews", "BOOLEAN", "New commits dismiss approvals"),
        Column("isAdminEnforced", "BOOLEAN", "Rule applies to administrators"),
        Column("requiresStatusChecks", "BOOLEAN", "Status checks must pass"),
        Column("requiresStrictStatusChecks", "BOOLEAN", "Branch must be up to date"),
        Column("requiresCodeOwnerReviews", "BOOLEAN", "Code owner review required"),
        Column("requiredApprovingReviewCount", "INTEGER", "Approvals required to merge"),
        Column("pattern", "VARCHAR", "Branch name pattern"),
        Column("isDefaultBranch", "BOOLEAN", "Rule is attached to the default branch ref"),
    ),
)

WORKFLOWS = TableSchema(
    name="base_workflows",
    description="GitHub Actions workflow files under .github/workflows",
    foreign_keys={"repository_id": "base_repositories"},
    columns=(
        Column("id", "VARCHAR", "repository id + '_' + filename"),
        _TYPENAME,
        Column("repository_id", "VARCHAR", "FK to base_repositories.id"),
        Column("filename", "VARCHAR", "Workflow file name"),
        Column("content", "VARCHAR", "Raw workflow text, null for binary blobs"),
        Column("content_parsed", "JSON", "Parsed YAML document, null when unparsable"),
    ),
)
