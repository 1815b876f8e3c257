"""
Transformation step definitions and their validation.

Steps are declared in a YAML manifest beside their SQL scripts. Ordering is
a flat sequence number: a step may only rely on base tables and on tables
produced by lower-numbered steps.
"""

from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Union
import logging

import yaml
from pydantic import BaseModel, Field, ValidationError, validator

from core.exceptions import StepDefinitionError
from models.base import TableFamily

logger = logging.getLogger(__name__)

SQL_DIR = Path(__file__).parent / "sql"
DEFAULT_MANIFEST = SQL_DIR / "steps.yaml"


class ProducedTable(BaseModel):
    """A derived table a step promises to create"""
    name: str = Field(..., min_length=1)
    description: str = ""
    expected_columns: List[str] = Field(default_factory=list)


class TransformationStep(BaseModel):
    """
    One named, numbered step.

    The SQL body is opaque here; only the declared inputs and outputs are
    checked around its execution.
    """
    sequence: int = Field(..., ge=0)
    name: str = Field(..., min_length=1)
    description: str = ""
    requires: List[str] = Field(default_factory=list)
    produces: List[ProducedTable]
    script: Optional[str] = None
    sql: str = ""

    @validator("produces", pre=True)
    def expand_table_names(cls, v):
        """Allow bare table names in place of full entries"""
        if isinstance(v, list):
            return [{"name": item} if isinstance(item, str) else item for item in v]
        return v

    @property
    def output_names(self) -> List[str]:
        return [table.name for table in self.produces]

    @property
    def output_descriptions(self) -> Dict[str, str]:
        return {table.name: table.description for table in self.produces}


def validate_steps(steps: Iterable[TransformationStep]) -> List[TransformationStep]:
    """
    Check a step list and return it in sequence order.

    Raises:
        StepDefinitionError: On duplicate names or sequence numbers, a
            non-derived or doubly produced output, a step without SQL or
            outputs, or a forward reference
    """
    ordered = sorted(steps, key=lambda s: s.sequence)
    names = set()
    sequences = set()
    producer: Dict[str, TransformationStep] = {}

    for step in ordered:
        if step.name in names:
            raise StepDefinitionError(
                f"Duplicate step name {step.name}",
                context={"step": step.name}
            )
        if step.sequence in sequences:
            raise StepDefinitionError(
                f"Duplicate sequence number {step.sequence}",
                context={"step": step.name, "sequence": step.sequence}
            )
        names.add(step.name)
        sequences.add(step.sequence)

        if not step.produces:
            raise StepDefinitionError(
                f"Step {step.name} produces no tables",
                context={"step": step.name}
            )
        if not step.sql.strip():
            raise StepDefinitionError(
                f"Step {step.name} has no SQL",
                context={"step": step.name, "script": step.script}
            )

        for table in step.output_names:
            if TableFamily.of(table) != TableFamily.DERIVED:
                raise StepDefinitionError(
                    f"Step {step.name} output {table} lacks the {TableFamily.DERIVED.prefix} prefix",
                    context={"step": step.name, "table_name": table}
                )
            if table in producer:
                raise StepDefinitionError(
                    f"Table {table} is produced by both {producer[table].name} and {step.name}",
                    context={"step": step.name, "table_name": table}
                )
            producer[table] = step

    for step in ordered:
        for table in step.requires:
            source = producer.get(table)
            if source is not None and source.sequence >= step.sequence:
                raise StepDefinitionError(
                    f"Step {step.name} requires {table}, produced by later step {source.name}",
                    context={
                        "step": step.name,
                        "table_name": table,
                        "producer": source.name
                    }
                )

    return ordered


def load_steps(manifest_path: Union[str, Path] = DEFAULT_MANIFEST) -> List[TransformationStep]:
    """
    Read, resolve and validate a step manifest.

    Each step's script is read from the manifest's directory.
    """
    manifest_path = Path(manifest_path)
    try:
        document = yaml.safe_load(manifest_path.read_text(encoding="utf-8")) or {}
    except (OSError, yaml.YAMLError) as e:
        raise StepDefinitionError(
            f"Cannot read step manifest {manifest_path}",
            context={"path": str(manifest_path)},
            original_exception=e
        )

    if isinstance(document, dict):
        entries: List[Dict[str, Any]] = document.get("steps") or []
    else:
        entries = document

    steps = []
    for entry in entries:
        try:
            step = TransformationStep(**entry)
        except (TypeError, ValidationError) as e:
            raise StepDefinitionError(
                "Invalid step definition",
                context={"path": str(manifest_path), "entry": entry},
                original_exception=e
            )

        if step.script and not step.sql:
            script_path = manifest_path.parent / step.script
            try:
                sql = script_path.read_text(encoding="utf-8")
            except OSError as e:
                raise StepDefinitionError(
                    f"Cannot read script for step {step.name}",
                    context={"step": step.name, "script": str(script_path)},
                    original_exception=e
                )
            step = step.copy(update={"sql": sql})
        steps.append(step)

    logger.debug(f"Loaded {len(steps)} steps from {manifest_path}")
    return validate_steps(steps)


def default_steps() -> List[TransformationStep]:
    """The bundled artifact analysis steps"""
    return load_steps(DEFAULT_MANIFEST)
