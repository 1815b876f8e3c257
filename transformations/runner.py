# ============================================================================
# File: transformations/runner.py
# Description: Sequential derived-table runner with pre/postcondition checks
# ============================================================================
"""
Transformation Runner - applies numbered SQL steps against the store.

Each step moves pending -> running -> succeeded | skipped | failed:
- skipped: a required table is absent, or an upstream step that produces
  it did not succeed
- failed: the script raised (execution) or a declared output is missing,
  lacks expected columns, or cannot be counted (postcondition)

A failed or skipped step only halts the steps that depend on its outputs.
"""

from typing import Dict, List, Optional, Sequence
import logging
import time

from core.exceptions import StoreError
from core.store import AnalyticsStore
from models.base import FailureKind, StepStatus
from schemas.results import StepResult, TransformationReport
from transformations.steps import TransformationStep, default_steps, validate_steps

logger = logging.getLogger(__name__)


class TransformationRunner:
    """
    Runs transformation steps strictly in sequence order.

    Responsibilities:
    - Validate the step list before anything runs
    - Skip steps whose inputs are unavailable
    - Replace derived tables wholesale (outputs dropped before each run)
    - Verify declared outputs after each step
    """

    def __init__(self, store: AnalyticsStore):
        self.store = store

    def run(self, steps: Optional[Sequence[TransformationStep]] = None) -> TransformationReport:
        """
        Run the given steps (the bundled ones by default).

        Returns:
            TransformationReport with one result per step, in sequence order

        Raises:
            StepDefinitionError: If the step list is inconsistent
        """
        ordered = validate_steps(default_steps() if steps is None else steps)
        report = TransformationReport(
            steps=[StepResult(sequence=s.sequence, name=s.name) for s in ordered]
        )

        # Table name -> step whose failure or skip left it unavailable
        unavailable: Dict[str, str] = {}

        for step, result in zip(ordered, report.steps):
            self._run_step(step, result, unavailable)
            if result.status != StepStatus.SUCCEEDED:
                for table in step.output_names:
                    unavailable[table] = step.name

        logger.info(
            f"Transformations completed - Succeeded: {len(report.succeeded)}, "
            f"Skipped: {len(report.skipped)}, Failed: {len(report.failed)}"
        )
        return report

    def _run_step(self, step: TransformationStep, result: StepResult, unavailable: Dict[str, str]):
        # --------------------------------------------------
        # PRECONDITIONS
        # --------------------------------------------------
        upstream = [t for t in step.requires if t in unavailable]
        if upstream:
            producers = sorted({unavailable[t] for t in upstream})
            self._skip(
                step, result,
                f"upstream step {', '.join(producers)} did not succeed "
                f"(needs {', '.join(upstream)})"
            )
            return

        missing = [t for t in step.requires if not self.store.table_exists(t)]
        if missing:
            self._skip(step, result, f"missing source tables: {', '.join(missing)}")
            return

        # --------------------------------------------------
        # EXECUTION
        # --------------------------------------------------
        result.status = StepStatus.RUNNING
        logger.info(f"Running step {step.sequence} {step.name}")
        started = time.monotonic()

        try:
            for table in step.output_names:
                self.store.drop_table(table)
            self.store.execute_script(step.sql)
        except StoreError as e:
            self._fail(step, result, FailureKind.EXECUTION, str(e.original_exception or e.message), started)
            logger.error(
                f"Step {step.name} failed: {e.message}",
                extra={"error_context": e.to_dict()}
            )
            return

        # --------------------------------------------------
        # POSTCONDITIONS
        # --------------------------------------------------
        problems = self._check_outputs(step, result)
        if problems:
            self._fail(step, result, FailureKind.POSTCONDITION, "; ".join(problems), started)
            logger.error(f"Step {step.name} postcondition failed: {result.reason}")
            return

        result.status = StepStatus.SUCCEEDED
        result.duration_seconds = time.monotonic() - started
        logger.info(
            f"Step {step.name} succeeded in {result.duration_seconds:.2f}s: "
            + ", ".join(f"{t}={n}" for t, n in result.output_row_counts.items())
        )

    def _check_outputs(self, step: TransformationStep, result: StepResult) -> List[str]:
        problems = []
        for table in step.produces:
            if not self.store.table_exists(table.name):
                problems.append(f"output table {table.name} was not created")
                continue

            if table.expected_columns:
                present = set(self.store.columns(table.name))
                absent = [c for c in table.expected_columns if c not in present]
                if absent:
                    problems.append(f"{table.name} lacks expected columns: {', '.join(absent)}")
                    continue

            try:
                result.output_row_counts[table.name] = self.store.row_count(table.name)
            except StoreError as e:
                problems.append(f"{table.name} row count unreadable: {e.original_exception or e.message}")
        return problems

    def _skip(self, step: TransformationStep, result: StepResult, reason: str):
        # Outputs of a skipped step are not left behind from an earlier run
        for table in step.output_names:
            self.store.drop_table(table)
        result.status = StepStatus.SKIPPED
        result.reason = reason
        logger.warning(f"Skipping step {step.sequence} {step.name}: {reason}")

    @staticmethod
    def _fail(
        step: TransformationStep,
        result: StepResult,
        kind: FailureKind,
        reason: str,
        started: float
    ):
        result.status = StepStatus.FAILED
        result.failure_kind = kind
        result.reason = reason
        result.duration_seconds = time.monotonic() - started
