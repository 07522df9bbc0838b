"""
tdd-dag: scenario-driven verification DAG compiler and runner.

Purpose
- Package root. Defines package-level metadata and import boundaries.

Stages
- ``tdd_dag.compiler``: freeze source scenarios into hash-verified runtime copies.
- ``tdd_dag.planning``: expand a scenario catalog into a pipeline document.
- ``tdd_dag.execution``: select, schedule and run pipeline nodes with evidence.

Import boundary
- Must not have side effects at import time (no config loading, no logging init).
"""

__version__ = "0.1.0"

__all__ = ["__version__"]
