"""
Derived-table transformations.

Modules:
    steps: Step definitions, manifest loading and validation
    runner: Sequential runner with skip/fail semantics

The bundled steps live in sql/steps.yaml next to their SQL scripts.

Usage:
    from transformations.runner import TransformationRunner

    report = TransformationRunner(store).run()
    print(report.succeeded, report.skipped, report.failed)
"""

__all__ = [
    "TransformationStep",
    "ProducedTable",
    "load_steps",
    "default_steps",
    "validate_steps",
    "TransformationRunner",
]
