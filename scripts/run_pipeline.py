"""
Script to fetch, normalize, transform and export repository data
"""

import argparse
import asyncio
import json
import sys
import os
import logging
from pathlib import Path
from typing import Dict, List, Optional

# Add current directory to path to allow imports from core, models, etc.
sys.path.append(os.getcwd())

from core.config import settings
from core.exceptions import LoadError, NormalizationError, StepDefinitionError
from core.logging import setup_logging
from core.store import AnalyticsStore
from ingestion.audit_log import read_response_records
from ingestion.extractors.graphql_extractor import FetchTarget, GraphQLExtractor
from ingestion.orchestrator import ArtifactOrchestrator
from models.base import QueryType, TableFamily
from schemas.records import ResponseRecord
from transformations.runner import TransformationRunner
from transformations.steps import default_steps

logger = logging.getLogger(__name__)


def load_targets(path: Path) -> List[FetchTarget]:
    """Targets from a JSONL file, one {"owner", "name"} object per line"""
    targets = []
    with path.open("r", encoding="utf-8") as f:
        for line_number, line in enumerate(f, start=1):
            line = line.strip()
            if not line:
                continue
            try:
                targets.append(FetchTarget.from_dict(json.loads(line)))
            except (json.JSONDecodeError, KeyError, TypeError) as e:
                logger.warning(f"Skipping invalid target on line {line_number}: {e}")
    return targets


async def fetch_batches(
    targets: List[FetchTarget],
    query_types: List[QueryType],
    audit_log: Path
) -> Dict[QueryType, List[ResponseRecord]]:
    batches = {}
    for query_type in query_types:
        extractor = GraphQLExtractor(query_type, audit_log_path=audit_log)
        result = await extractor.fetch_all(targets)
        for failure in result.failures:
            logger.warning(
                f"{query_type.value} fetch failed for {failure.target.key}: "
                f"{failure.error_type}: {failure.message}"
            )
        batches[query_type] = result.records
    return batches


async def run_pipeline(
    output_dir: Path,
    query_types: List[QueryType],
    input_path: Optional[Path] = None,
    replay_path: Optional[Path] = None
) -> int:
    """Run the pipeline; returns a process exit code"""
    output_dir.mkdir(parents=True, exist_ok=True)

    if replay_path is not None:
        logger.info(f"Replaying responses from {replay_path}")
        batches = {
            query_type: read_response_records(replay_path, query_type.value)
            for query_type in query_types
        }
    else:
        if not settings.GITHUB_TOKEN:
            logger.error("GITHUB_TOKEN is not set. Set it or use --replay.")
            return 2
        targets = load_targets(input_path)
        if not targets:
            logger.warning("No targets configured. Skipping run.")
            return 0
        batches = await fetch_batches(targets, query_types, output_dir / settings.AUDIT_LOG_FILENAME)

    exit_code = 0
    with AnalyticsStore(output_dir / settings.DATABASE_FILENAME) as store:
        orchestrator = ArtifactOrchestrator(store, output_dir=output_dir)

        for query_type in query_types:
            records = batches.get(query_type) or []
            if not records:
                logger.warning(f"No {query_type.value} records. Skipping batch.")
                continue
            try:
                result = orchestrator.run(records, query_type=query_type.value)
            except (NormalizationError, LoadError) as e:
                logger.error(
                    f"Batch {query_type.value} failed: {e.message}",
                    extra={"error_context": e.to_dict()}
                )
                exit_code = 1
                continue

            logger.info(
                f"{query_type.value}: {result.status.value}, "
                + ", ".join(f"{name}={count}" for name, count in result.tables.items())
            )

        try:
            steps = default_steps()
        except StepDefinitionError as e:
            logger.error(f"Transformation steps are invalid: {e}")
            return 1

        report = TransformationRunner(store).run(steps)
        for step in report.steps:
            logger.info(
                f"Step {step.sequence} {step.name}: {step.status.value}"
                + (f" ({step.reason})" if step.reason else "")
            )

        descriptions = {}
        for step in steps:
            descriptions.update(step.output_descriptions)
        export = orchestrator.export_tables(families=[TableFamily.DERIVED], descriptions=descriptions)
        if export.is_partial:
            logger.warning(f"Derived exports failed: {', '.join(export.failed)}")

    logger.info(f"Artifacts written to {output_dir}")
    return exit_code


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Fetch GitHub repository data and build normalized DuckDB and Parquet artifacts"
    )
    parser.add_argument(
        "--input",
        type=Path,
        help="JSONL file with one {\"owner\", \"name\"} object per line"
    )
    parser.add_argument(
        "--output",
        type=Path,
        default=Path(settings.OUTPUT_DIR),
        help="Output directory (default: OUTPUT_DIR)"
    )
    parser.add_argument(
        "--replay",
        type=Path,
        help="Rebuild from an existing audit log instead of fetching"
    )
    parser.add_argument(
        "--query-type",
        action="append",
        choices=[q.value for q in QueryType],
        help="Query type to run (repeatable, default: all)"
    )
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging()

    if args.replay is None and args.input is None:
        logger.error("Either --input or --replay is required")
        return 2

    query_types = [QueryType(q) for q in args.query_type] if args.query_type else list(QueryType)
    return asyncio.run(run_pipeline(
        output_dir=args.output,
        query_types=query_types,
        input_path=args.input,
        replay_path=args.replay,
    ))


if __name__ == "__main__":
    sys.exit(main())
