"""
Pipeline components for fetching and persisting GraphQL responses.

This package contains everything between the GraphQL endpoint and the
analytical store:

Modules:
    audit_log: Append-only JSONL log of fetch attempts, readable for replay
    orchestrator: Artifact orchestrator driving raw, base, index and export phases

Subpackages:
    extractors: GraphQL extractor (batched, retrying) and query documents
    normalizers: Per-query-type normalizers mapping responses to base tables
    loaders: DuckDB loader (append raw, replace base)

Architecture:
    A run follows four phases:

    1. Fetch - Query each entity, batch by batch, logging every attempt
    2. Raw - Append the unflattened payloads to raw_<queryType>
    3. Normalize - Flatten each batch into its fixed set of base tables
    4. Persist - Replace base tables, build indexes, export Parquet files

    Per-entity, per-index and per-table failures are isolated; only an
    invalid payload or a store failure aborts a batch.

Usage:
    from ingestion.extractors.graphql_extractor import GraphQLExtractor, FetchTarget
    from ingestion.orchestrator import ArtifactOrchestrator

Example:
    extractor = GraphQLExtractor("GetRepoDataArtifacts", audit_log_path="output/raw-responses.jsonl")
    fetched = await extractor.fetch_all([FetchTarget("sigstore", "cosign")])

    with AnalyticsStore("output/database.db") as store:
        result = ArtifactOrchestrator(store, output_dir="output").run(fetched.records)

    print(f"Created {len(result.tables)} tables")

Error Handling:
    All components use custom exceptions from core.exceptions for
    structured error handling with retry logic and circuit breakers.
"""

__all__ = [
    "GraphQLExtractor",
    "FetchTarget",
    "ArtifactOrchestrator",
    "DuckDBLoader",
    "get_normalizer",
    "append_fetch_attempt",
    "read_response_records",
]
