"""
Table definitions and shared enums.

This package defines the shape of every table the pipeline writes:

Models:
    base: Shared enums (QueryType, TableFamily, StepStatus, ...) and the
          Column / TableSchema definitions
    raw_data: Append-only raw response table, one per query type
    repository: Base tables produced by the repository normalizers

Table Families:
    Tables are partitioned by name prefix:
    - raw_*   raw responses, appended on every run
    - base_*  normalized entities, replaced on every run
    - agg_*   derived tables, replaced by the transformation runner

Usage:
    from models.base import QueryType, TableFamily
    from models.repository import RELEASES, RELEASE_ASSETS

Example:
    RELEASES.foreign_keys        # {"repository_id": "base_repositories"}
    TableFamily.of("agg_repo_summary")  # TableFamily.DERIVED
"""

__all__ = [
    "Column",
    "TableSchema",
    "QueryType",
    "TableFamily",
    "RunStatus",
    "IndexStatus",
    "StepStatus",
    "FailureKind",
    "raw_table_schema",
    "REPOSITORIES",
    "REPOSITORIES_EXTENDED",
    "RELEASES",
    "RELEASE_ASSETS",
    "BRANCH_PROTECTION_RULES",
    "WORKFLOWS",
]
