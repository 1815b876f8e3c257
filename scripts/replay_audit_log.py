"""
Script to summarize what an audit log can replay
"""

import argparse
import sys
import os
import logging
from collections import Counter
from pathlib import Path

# Add current directory to path to allow imports from core, models, etc.
sys.path.append(os.getcwd())

from core.config import settings
from core.logging import setup_logging
from ingestion.audit_log import iter_entries, read_response_records

logger = logging.getLogger(__name__)


def summarize(path: Path) -> Counter:
    """Replayable records per query type"""
    return Counter(record.query_type for record in read_response_records(path))


def main() -> int:
    parser = argparse.ArgumentParser(description="Count replayable records in an audit log")
    parser.add_argument(
        "path",
        type=Path,
        nargs="?",
        default=Path(settings.OUTPUT_DIR) / settings.AUDIT_LOG_FILENAME,
        help="Audit log path (default: OUTPUT_DIR/AUDIT_LOG_FILENAME)"
    )
    args = parser.parse_args()
    setup_logging()

    if not args.path.exists():
        logger.error(f"Audit log not found: {args.path}")
        return 1

    attempts = sum(1 for _ in iter_entries(args.path))
    counts = summarize(args.path)

    print(f"{args.path}: {attempts} fetch attempts")
    for query_type, count in sorted(counts.items()):
        print(f"  {query_type}: {count} replayable records")
    return 0


if __name__ == "__main__":
    sys.exit(main())
