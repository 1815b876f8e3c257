# ============================================================================
# File: ingestion/orchestrator.py
# Description: Table lifecycle for one batch of response records
# ============================================================================
"""
Artifact Orchestrator - drives a response batch through the table lifecycle.

Phases:
1. Raw - append the unflattened payloads to raw_<queryType>
2. Normalize - map the batch to its fixed set of base tables
3. Load - replace all base tables in one transaction, then index foreign keys
4. Search indexes - full-text indexes over configured text columns
5. Export - one Parquet file per table with embedded metadata

Only a structurally invalid payload or a store failure aborts the batch.
Index and export failures are isolated and reported.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence, Tuple, Union
import logging

from core.config import settings
from core.exceptions import (
    ExportError,
    InvalidPayloadError,
    LoadError,
    NormalizationError,
    StoreError,
    TransformationError,
)
from core.store import AnalyticsStore
from ingestion.loaders.duckdb_loader import DuckDBLoader
from ingestion.normalizers import QueryNormalizer, get_normalizer
from models.base import IndexStatus, RunStatus, TableFamily, TableSchema
from models.raw_data import raw_table_schema
from schemas.records import ResponseRecord
from schemas.results import ArtifactResult, ExportResult, IndexResult

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SearchIndexSpec:
    """Full-text index over the text columns of one table"""
    table: str
    columns: Tuple[str, ...]
    id_column: str = "id"


DEFAULT_SEARCH_INDEXES: Tuple[SearchIndexSpec, ...] = (
    SearchIndexSpec("base_workflows", ("content", "filename")),
    SearchIndexSpec("base_repositories", ("description", "nameWithOwner")),
    SearchIndexSpec("base_releases", ("name",)),
    SearchIndexSpec("base_release_assets", ("name",)),
)


class ArtifactOrchestrator:
    """
    Orchestrates raw -> normalized -> indexed -> exported for one store.

    The store is owned by a single pipeline run; batches are processed
    one at a time and never interleave their writes.
    """

    def __init__(
        self,
        store: AnalyticsStore,
        output_dir: Optional[Union[str, Path]] = None,
        search_indexes: Optional[Sequence[SearchIndexSpec]] = None,
        compression: Optional[str] = None,
        row_group_size: Optional[int] = None
    ):
        self.store = store
        self.output_dir = Path(output_dir) if output_dir is not None else None
        if search_indexes is None:
            search_indexes = DEFAULT_SEARCH_INDEXES if settings.ENABLE_SEARCH_INDEXES else ()
        self.search_indexes = tuple(search_indexes)
        self.compression = compression or settings.PARQUET_COMPRESSION
        self.row_group_size = row_group_size or settings.PARQUET_ROW_GROUP_SIZE
        self.loader = DuckDBLoader(store)

        # Schemas and query types of the tables this orchestrator created,
        # used to document the exported files
        self._schemas: Dict[str, TableSchema] = {}
        self._sources: Dict[str, str] = {}

    def run(
        self,
        records: Sequence[ResponseRecord],
        normalizer: Optional[QueryNormalizer] = None,
        query_type: Optional[str] = None,
        export: bool = True
    ) -> ArtifactResult:
        """
        Run the full lifecycle for one batch of a single query type.

        Args:
            records: Response records of one query type
            normalizer: Normalizer to apply (looked up by query type if omitted)
            query_type: Query type of an empty batch without a normalizer
            export: Export the batch's tables when an output directory is set

        Returns:
            ArtifactResult with status "success" or "partial_success"

        Raises:
            NormalizationError: If the batch cannot be normalized
            LoadError: If the store rejects the raw append or a base table
        """
        records = list(records)
        query_type = self._resolve_query_type(records, normalizer, query_type)
        if normalizer is None:
            normalizer = get_normalizer(query_type)

        logger.info(f"Processing {len(records)} {query_type} records")

        # --------------------------------------------------
        # PHASE 1: RAW (APPEND ONLY)
        # --------------------------------------------------
        raw_schema = raw_table_schema(query_type)
        try:
            raw_appended = self.loader.append_raw(query_type, records)
        except StoreError as e:
            raise LoadError(
                "Failed to append raw responses",
                context={"query_type": query_type, "table_name": raw_schema.name},
                original_exception=e
            )
        self._remember(raw_schema, query_type)

        # --------------------------------------------------
        # PHASE 2: NORMALIZATION
        # --------------------------------------------------
        try:
            tables = normalizer.normalize(records)
        except NormalizationError:
            raise
        except (InvalidPayloadError, TransformationError) as e:
            logger.error(
                f"Normalization failed for {query_type}: {e.message}",
                extra={"error_context": e.to_dict()}
            )
            raise NormalizationError(
                "Batch contains a structurally invalid payload",
                context={"query_type": query_type, "record_count": len(records)},
                original_exception=e
            )

        logger.info(f"Normalized {query_type}:\n{normalizer.stats(tables)}")

        # --------------------------------------------------
        # PHASE 3: LOAD (FULL REPLACE)
        # --------------------------------------------------
        # All base tables of the batch are replaced together or not at all
        try:
            row_counts = self.loader.replace_batch(tables, normalizer.tables)
        except StoreError as e:
            table_name = e.context.get("table_name")
            raise LoadError(
                f"Failed to load {table_name or 'base tables'}",
                context={
                    "query_type": query_type,
                    "table_name": table_name,
                    "rows": tables[table_name].row_count if table_name in tables else None
                },
                original_exception=e
            )
        for schema in normalizer.tables:
            self._remember(schema, query_type)

        # --------------------------------------------------
        # PHASE 4: SEARCH INDEXES
        # --------------------------------------------------
        indexes = self.build_search_indexes()

        # --------------------------------------------------
        # PHASE 5: EXPORT
        # --------------------------------------------------
        export_result = None
        if export and self.output_dir is not None:
            export_result = self.export_tables(
                [raw_schema.name, *(schema.name for schema in normalizer.tables)]
            )

        partial = any(i.status == IndexStatus.FAILED for i in indexes) or (
            export_result is not None and export_result.is_partial
        )
        result = ArtifactResult(
            query_type=query_type,
            status=RunStatus.PARTIAL if partial else RunStatus.SUCCESS,
            raw_table=raw_schema.name,
            raw_rows_appended=raw_appended,
            tables=row_counts,
            indexes=indexes,
            export=export_result,
        )

        logger.info(
            f"Artifact run completed: {result.status.value} - "
            f"Raw: {raw_appended}, Tables: {len(row_counts)}, "
            f"Rows: {sum(row_counts.values())}"
        )
        return result

    def build_search_indexes(self) -> List[IndexResult]:
        """
        Create the configured full-text indexes.

        A missing table or column is skipped; an engine error is reported
        as failed. Neither aborts the run.
        """
        results = []
        for spec in self.search_indexes:
            if not self.store.table_exists(spec.table):
                logger.info(f"Skipping search index on {spec.table}: table not present")
                results.append(IndexResult(
                    table=spec.table,
                    columns=list(spec.columns),
                    status=IndexStatus.SKIPPED,
                    reason="table not present",
                ))
                continue

            present = set(self.store.columns(spec.table))
            columns = [c for c in spec.columns if c in present]
            missing = [c for c in spec.columns if c not in present]

            if spec.id_column not in present or not columns:
                reason = (
                    f"id column {spec.id_column} not present"
                    if spec.id_column not in present
                    else "no indexable columns present"
                )
                logger.info(f"Skipping search index on {spec.table}: {reason}")
                results.append(IndexResult(
                    table=spec.table,
                    columns=list(spec.columns),
                    status=IndexStatus.SKIPPED,
                    reason=reason,
                ))
                continue

            try:
                self.store.create_search_index(spec.table, spec.id_column, columns)
            except StoreError as e:
                logger.warning(
                    f"Search index on {spec.table} failed: {e.message}",
                    extra={"error_context": e.to_dict()}
                )
                results.append(IndexResult(
                    table=spec.table,
                    columns=columns,
                    status=IndexStatus.FAILED,
                    reason=str(e.original_exception or e.message),
                ))
                continue

            logger.info(f"Created search index on {spec.table} ({', '.join(columns)})")
            results.append(IndexResult(
                table=spec.table,
                columns=columns,
                status=IndexStatus.CREATED,
                reason=f"missing columns: {', '.join(missing)}" if missing else None,
            ))
        return results

    def export_tables(
        self,
        tables: Optional[Iterable[str]] = None,
        families: Optional[Iterable[TableFamily]] = None,
        descriptions: Optional[Dict[str, str]] = None,
        output_dir: Optional[Union[str, Path]] = None
    ) -> ExportResult:
        """
        Export tables to <output>/parquet/<table>.parquet.

        Args:
            tables: Explicit table names (defaults to every table in the store)
            families: Restrict to these table families
            descriptions: Table descriptions for tables this orchestrator did not create
            output_dir: Override the orchestrator's output directory

        Returns:
            ExportResult listing exported paths and per-table failures
        """
        target = Path(output_dir) if output_dir is not None else self.output_dir
        if target is None:
            raise ExportError("No output directory configured for export")

        if tables is None:
            tables = self.store.list_tables()
        names = list(tables)
        if families is not None:
            wanted = set(families)
            names = [n for n in names if TableFamily.of(n) in wanted]

        parquet_dir = target / "parquet"
        parquet_dir.mkdir(parents=True, exist_ok=True)
        generated_at = datetime.now(timezone.utc).isoformat()

        result = ExportResult()
        for name in names:
            path = parquet_dir / f"{name}.parquet"
            try:
                metadata = self.table_metadata(name, generated_at, descriptions)
                self.store.export_parquet(
                    name,
                    path,
                    metadata=metadata,
                    compression=self.compression,
                    row_group_size=self.row_group_size,
                )
            except (StoreError, OSError) as e:
                error = ExportError(
                    f"Export of {name} failed",
                    context={"table_name": name, "path": str(path)},
                    original_exception=e
                )
                logger.warning(str(error), extra={"error_context": error.to_dict()})
                result.failed[name] = str(e)
                continue

            result.exported[name] = str(path)
            logger.debug(f"Exported {name} to {path}")

        logger.info(
            f"Exported {len(result.exported)} tables to {parquet_dir}"
            + (f", {len(result.failed)} failed" if result.failed else "")
        )
        return result

    def table_metadata(
        self,
        name: str,
        generated_at: str,
        descriptions: Optional[Dict[str, str]] = None
    ) -> Dict[str, str]:
        """Key-value metadata embedded in an exported file"""
        schema = self._schemas.get(name)
        family = TableFamily.of(name)

        description = (descriptions or {}).get(name)
        if description is None:
            description = schema.description if schema else ""

        metadata = {
            "table_name": name,
            "table_family": family.value if family else "",
            "table_description": description,
            "generated_at": generated_at,
            "source_query_type": self._sources.get(name) or ",".join(self.source_query_types),
            "row_count": str(self.store.row_count(name)),
        }
        if schema is not None:
            for column, text in schema.column_descriptions().items():
                metadata[f"column_{column}"] = text
        return metadata

    @property
    def source_query_types(self) -> List[str]:
        """Query types processed so far, in order of first appearance"""
        return list(dict.fromkeys(self._sources.values()))

    def _remember(self, schema: TableSchema, query_type: str):
        self._schemas[schema.name] = schema
        self._sources[schema.name] = query_type

    @staticmethod
    def _resolve_query_type(
        records: Sequence[ResponseRecord],
        normalizer: Optional[QueryNormalizer],
        query_type: Optional[str]
    ) -> str:
        if normalizer is not None:
            return normalizer.query_type.value
        if query_type is not None:
            return str(getattr(query_type, "value", query_type))
        if records:
            return records[0].query_type
        raise NormalizationError(
            "Cannot determine the query type of an empty batch",
            context={"record_count": 0}
        )
