"""
Pydantic schemas for orchestrator and transformation runner results
"""

from pydantic import BaseModel, Field
from typing import Optional, List, Dict

from models.base import FailureKind, IndexStatus, RunStatus, StepStatus


class IndexResult(BaseModel):
    """Outcome of one requested search index"""
    table: str
    columns: List[str] = Field(default_factory=list)
    status: IndexStatus
    reason: Optional[str] = None


class ExportResult(BaseModel):
    """
    Per-table export outcome.

    A failed table never hides the others: exported and failed are
    reported side by side.
    """
    exported: Dict[str, str] = Field(default_factory=dict)
    failed: Dict[str, str] = Field(default_factory=dict)

    @property
    def is_partial(self) -> bool:
        return bool(self.failed)


class ArtifactResult(BaseModel):
    """Summary of one orchestrator run over a response batch"""
    query_type: str
    status: RunStatus
    raw_table: str
    raw_rows_appended: int = 0
    tables: Dict[str, int] = Field(default_factory=dict)
    indexes: List[IndexResult] = Field(default_factory=list)
    export: Optional[ExportResult] = None


class StepResult(BaseModel):
    """Final state of one transformation step"""
    sequence: int
    name: str
    status: StepStatus = StepStatus.PENDING
    reason: Optional[str] = None
    failure_kind: Optional[FailureKind] = None
    output_row_counts: Dict[str, int] = Field(default_factory=dict)
    duration_seconds: Optional[float] = None


class TransformationReport(BaseModel):
    """Ordered results of a transformation runner pass"""
    steps: List[StepResult] = Field(default_factory=list)

    def by_name(self, name: str) -> StepResult:
        for step in self.steps:
            if step.name == name:
                return step
        raise KeyError(name)

    def names_with_status(self, status: StepStatus) -> List[str]:
        return [s.name for s in self.steps if s.status == status]

    @property
    def succeeded(self) -> List[str]:
        return self.names_with_status(StepStatus.SUCCEEDED)

    @property
    def skipped(self) -> List[str]:
        return self.names_with_status(StepStatus.SKIPPED)

    @property
    def failed(self) -> List[str]:
        return self.names_with_status(StepStatus.FAILED)
