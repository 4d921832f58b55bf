from edge_gateway.faults.models import (
    Crash,
    Delay,
    FaultDecision,
    FaultRule,
    RuleContext,
    SyntheticError,
    default_rules,
)
from edge_gateway.faults.injector import FaultInjector

__all__ = [
    "Crash",
    "Delay",
    "FaultDecision",
    "FaultInjector",
    "FaultRule",
    "RuleContext",
    "SyntheticError",
    "default_rules",
]
