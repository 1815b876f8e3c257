"""
Pydantic schemas for data validation and serialization.

This package defines the Pydantic models that flow between pipeline stages:

Schemas:
    records: ResponseRecord (fetched payload + provenance) and NamedTable
             (normalizer output)
    results: ArtifactResult, IndexResult, ExportResult for the orchestrator;
             StepResult and TransformationReport for the transformation runner

Usage:
    from schemas.records import ResponseRecord, NamedTable
    from schemas.results import ArtifactResult, TransformationReport

Example:
    record = ResponseRecord(
        query_type="GetRepoDataArtifacts",
        request_parameters={"owner": "sigstore", "name": "cosign"},
        fetched_at=datetime.now(timezone.utc),
        payload={"repository": {...}},
    )

    # Records are immutable once created
    record.entity_key  # "sigstore/cosign"
"""

__all__ = [
    "ResponseRecord",
    "NamedTable",
    "IndexResult",
    "ExportResult",
    "ArtifactResult",
    "StepResult",
    "TransformationReport",
]
