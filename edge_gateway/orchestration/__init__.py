from edge_gateway.orchestration.plan import (
    ABORT,
    FailurePolicy,
    Operation,
    OrchestrationPlan,
    ParallelGroup,
    PlanResult,
    PolicyKind,
    Step,
    StepOutcome,
    degrade_to,
    expect_json,
)
from edge_gateway.orchestration.scope import RequestScope
from edge_gateway.orchestration.caller import DownstreamCaller
from edge_gateway.orchestration.orchestrator import Orchestrator

__all__ = [
    "ABORT",
    "DownstreamCaller",
    "FailurePolicy",
    "Operation",
    "OrchestrationPlan",
    "Orchestrator",
    "ParallelGroup",
    "PlanResult",
    "PolicyKind",
    "RequestScope",
    "Step",
    "StepOutcome",
    "degrade_to",
    "expect_json",
]
