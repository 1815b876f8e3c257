from models.base import Column, TableFamily, TableSchema


def raw_table_schema(query_type: str) -> TableSchema:
    """
    Raw, unflattened responses of one query type.

    Purpose:
    - Append-only audit trail inside the store
    - Reprocessing capability
    - Debugging and data lineage

    Design Decisions:
    - JSON columns keep the payload exactly as fetched
    - loaded_at separates the appends of successive runs
    """
    return TableSchema(
        name=f"{TableFamily.RAW.prefix}{query_type}",
        description=f"Raw {query_type} responses, one row per fetched entity per run",
        columns=(
            Column("query_type", "VARCHAR", "Query type tag of the response"),
            Column("request_parameters", "JSON", "Variables that identify the queried entity"),
            Column("fetched_at", "TIMESTAMP", "UTC time the response was fetched"),
            Column("payload", "JSON", "GraphQL data object as returned by the API"),
            Column("loaded_at", "TIMESTAMP", "UTC time the row was appended to the store"),
        ),
    )
