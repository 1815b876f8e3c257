"""
Pydantic schemas for fetched responses and normalized tables
"""

from pydantic import BaseModel, Field, validator
from typing import Optional, List, Dict, Any
from datetime import datetime, timezone


class ResponseRecord(BaseModel):
    """
    One fetched, provenance-tagged payload for one entity and one query type.

    Ensures:
    - The query type tag is present
    - fetched_at is timezone-aware (naive values are taken as UTC)
    - The record cannot be mutated after creation
    """

    query_type: str = Field(..., min_length=1)
    request_parameters: Dict[str, Any] = Field(default_factory=dict)
    fetched_at: datetime
    # Typed per query; left open so structurally invalid roots reach the normalizer
    payload: Any = None

    @validator("fetched_at")
    def ensure_utc(cls, v):
        """Attach UTC to naive timestamps"""
        if v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v.astimezone(timezone.utc)

    @property
    def entity_key(self) -> str:
        """owner/name of the queried entity, when present"""
        owner = self.request_parameters.get("owner")
        name = self.request_parameters.get("name")
        if owner and name:
            return f"{owner}/{name}"
        return ",".join(f"{k}={v}" for k, v in sorted(self.request_parameters.items()))

    class Config:
        frozen = True


class NamedTable(BaseModel):
    """A normalizer output table: uniform rows in a fixed column order"""

    name: str = Field(..., min_length=1)
    columns: List[str]
    rows: List[Dict[str, Any]] = Field(default_factory=list)
    description: Optional[str] = None

    @property
    def row_count(self) -> int:
        return len(self.rows)

    def column_values(self, column: str) -> List[Any]:
        return [row.get(column) for row in self.rows]
