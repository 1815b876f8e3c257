"""
Append-only JSONL log of fetch attempts.

Each line is one attempt:
    {"metadata": {"queryType", "timestamp", "owner", "repo", "inputs"},
     "response": <GraphQL body or null>,
     "error": <message or null>}

The log is written before anything is normalized so a run can always be
replayed from it without network access.
"""

from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Union
import json
import logging

from schemas.records import ResponseRecord

logger = logging.getLogger(__name__)


def append_fetch_attempt(
    path: Union[str, Path],
    query_type: str,
    owner: str,
    repo: str,
    response: Any = None,
    inputs: Optional[Dict[str, Any]] = None,
    error: Optional[str] = None,
    timestamp: Optional[datetime] = None
) -> Dict[str, Any]:
    """
    Append one fetch attempt to the audit log, creating it if needed.

    Returns:
        The entry that was written
    """
    timestamp = timestamp or datetime.now(timezone.utc)
    entry = {
        "metadata": {
            "queryType": query_type,
            "timestamp": timestamp.isoformat(),
            "owner": owner,
            "repo": repo,
            "inputs": inputs or {"owner": owner, "name": repo},
        },
        "response": response,
        "error": error,
    }

    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("a", encoding="utf-8") as f:
        f.write(json.dumps(entry) + "\n")
    return entry


def iter_entries(path: Union[str, Path]) -> Iterator[Dict[str, Any]]:
    """Parsed entries of an audit log; unreadable lines are logged and skipped"""
    with Path(path).open("r", encoding="utf-8") as f:
        for line_number, line in enumerate(f, start=1):
            line = line.strip()
            if not line:
                continue
            try:
                entry = json.loads(line)
            except json.JSONDecodeError as e:
                logger.warning(f"Skipping malformed audit log line {line_number}: {e}")
                continue
            if isinstance(entry, dict):
                yield entry


def read_response_records(
    path: Union[str, Path],
    query_type: Optional[str] = None
) -> List[ResponseRecord]:
    """
    Rebuild response records from an audit log for replay.

    Failed attempts (an error, or no GraphQL data) are skipped, as are
    entries of other query types when query_type is given.
    """
    records = []
    skipped = 0

    for entry in iter_entries(path):
        metadata = entry.get("metadata") or {}
        response = entry.get("response")

        if query_type is not None and metadata.get("queryType") != query_type:
            continue
        if (
            not metadata.get("queryType")
            or entry.get("error")
            or not isinstance(response, dict)
            or "data" not in response
        ):
            skipped += 1
            continue

        records.append(ResponseRecord(
            query_type=metadata.get("queryType"),
            request_parameters=metadata.get("inputs")
            or {"owner": metadata.get("owner"), "name": metadata.get("repo")},
            fetched_at=metadata.get("timestamp"),
            payload=response["data"],
        ))

    if skipped:
        logger.info(f"Skipped {skipped} failed fetch attempts in {path}")
    logger.info(f"Read {len(records)} replayable records from {path}")
    return records
