"""
Core utilities and configuration for the GraphQL artifact pipeline.

This package provides foundational components used throughout the pipeline:

Modules:
    config: Application configuration and environment variable management
    store: DuckDB analytical store adapter (tables, indexes, Parquet export)
    exceptions: Custom exception hierarchy for error handling
    logging: Logging configuration and utilities

Usage:
    from core.config import settings
    from core.store import AnalyticsStore
    from core.exceptions import NormalizationError, StoreError
    from core.logging import setup_logging

Example:
    # Initialize logging
    setup_logging()

    # Open the store for one run
    with AnalyticsStore("output/database.db") as store:
        print(store.list_tables())
"""

__all__ = [
    "settings",
    "setup_logging",
    "AnalyticsStore",
    # Exceptions
    "PipelineException",
    "ExtractionError",
    "APIExtractionError",
    "NetworkError",
    "RateLimitError",
    "AuthenticationError",
    "TransformationError",
    "NormalizationError",
    "InvalidPayloadError",
    "UnknownQueryTypeError",
    "LoadError",
    "StoreError",
    "ExportError",
    "TransformationStepError",
    "StepDefinitionError",
    "RetryableError",
    "NonRetryableError",
]
