"""Domain records and the error taxonomy shared by every stage."""

from tdd_dag.domain.errors import (
    IntegrityError,
    SchemaError,
    TddDagError,
    TopologyError,
    UsageError,
)
from tdd_dag.domain.models import (
    CompiledScenario,
    ManifestRow,
    NodeOutcome,
    Pipeline,
    PipelineNode,
    RunStatus,
    Scenario,
    StabilityLayer,
    Stage,
)

__all__ = [
    "CompiledScenario",
    "IntegrityError",
    "ManifestRow",
    "NodeOutcome",
    "Pipeline",
    "PipelineNode",
    "RunStatus",
    "Scenario",
    "SchemaError",
    "StabilityLayer",
    "Stage",
    "TddDagError",
    "TopologyError",
    "UsageError",
]
