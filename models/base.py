from dataclasses import dataclass, field
from typing import Dict, Optional, Tuple
import enum


# ============================================================================
# ENUMS
# ============================================================================

class QueryType(str, enum.Enum):
    """GraphQL query types with a registered normalizer"""
    ARTIFACTS = "GetRepoDataArtifacts"
    EXTENDED_INFO = "GetRepoDataExtendedInfo"


class TableFamily(str, enum.Enum):
    """Table families, told apart by name prefix"""
    RAW = "raw"
    BASE = "base"
    DERIVED = "agg"

    @property
    def prefix(self) -> str:
        return f"{self.value}_"

    @classmethod
    def of(cls, table_name: str) -> Optional["TableFamily"]:
        for family in cls:
            if table_name.startswith(family.prefix):
                return family
        return None


class RunStatus(str, enum.Enum):
    """Artifact run status"""
    SUCCESS = "success"
    PARTIAL = "partial_success"


class IndexStatus(str, enum.Enum):
    """Search index outcome"""
    CREATED = "created"
    SKIPPED = "skipped"
    FAILED = "failed"


class StepStatus(str, enum.Enum):
    """Transformation step state"""
    PENDING = "pending"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    SKIPPED = "skipped"
    FAILED = "failed"


class FailureKind(str, enum.Enum):
    """Why a transformation step failed"""
    EXECUTION = "execution"
    POSTCONDITION = "postcondition"


# ============================================================================
# TABLE DEFINITIONS
# ============================================================================

@dataclass(frozen=True)
class Column:
    """A typed, documented column of a store table"""
    name: str
    type: str = "VARCHAR"
    description: str = ""


@dataclass(frozen=True)
class TableSchema:
    """
    Fixed shape of a table produced by a normalizer or the raw loader.

    Design Decisions:
    - Column order is the load order and the export order
    - foreign_keys maps a column to the table it references
    """
    name: str
    columns: Tuple[Column, ...]
    description: str = ""
    foreign_keys: Dict[str, str] = field(default_factory=dict)

    @property
    def column_names(self) -> Tuple[str, ...]:
        return tuple(c.name for c in self.columns)

    def column_descriptions(self) -> Dict[str, str]:
        return {c.name: c.description for c in self.columns if c.description}
