"""Declarative orchestration plans: stages of single steps or parallel groups."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Mapping, Union

from edge_gateway.errors import GatewayError, UpstreamError
from edge_gateway.transport.interface import CallOptions, DownstreamResponse


# ---------------------------------------------------------------------------
# Failure policy
# ---------------------------------------------------------------------------

class PolicyKind(str, Enum):
    ABORT = "abort"
    DEGRADE = "degrade"


@dataclass(frozen=True)
class FailurePolicy:
    kind: PolicyKind
    value: Any = None

    @property
    def aborts(self) -> bool:
        return self.kind is PolicyKind.ABORT


ABORT = FailurePolicy(PolicyKind.ABORT)


def degrade_to(value: Any) -> FailurePolicy:
    """Substitute ``value`` for the step's output when it fails."""
    return FailurePolicy(PolicyKind.DEGRADE, value)


# ---------------------------------------------------------------------------
# Operation (downstream call descriptor)
# ---------------------------------------------------------------------------

Transform = Callable[[Any, Mapping[str, Any]], Any]
ResponseHandler = Callable[[DownstreamResponse, Any], Any]


def expect_json(response: DownstreamResponse, step_input: Any) -> Any:
    """Default handler: a 2xx JSON body, anything else is an upstream error."""
    if not response.ok:
        raise UpstreamError(
            f"Upstream returned status {response.status_code}",
            status_code=response.status_code,
        )
    return response.json()


def _resolve(value: Any, step_input: Any) -> Any:
    return value(step_input) if callable(value) else value


@dataclass
class Operation:
    """How to turn a step input into an HTTP call and its response into a value.

    ``url``, ``body``, ``params`` and ``headers`` may be constants or
    callables of the step input.
    """

    method: str
    url: str | Callable[[Any], str]
    body: Any = None
    params: Any = None
    headers: Any = None
    handle: ResponseHandler = expect_json

    def build(self, step_input: Any) -> CallOptions:
        return CallOptions(
            method=self.method.upper(),
            url=_resolve(self.url, step_input),
            headers=dict(_resolve(self.headers, step_input) or {}),
            json=_resolve(self.body, step_input),
            params=_resolve(self.params, step_input),
        )


# ---------------------------------------------------------------------------
# Plan structure
# ---------------------------------------------------------------------------

@dataclass
class Step:
    name: str
    operation: Operation
    transform: Transform | None = None
    policy: FailurePolicy = ABORT
    inject_faults: bool = False


@dataclass
class ParallelGroup:
    name: str
    steps: list[Step]

    def __post_init__(self) -> None:
        if not self.steps:
            raise ValueError(f"Parallel group '{self.name}' has no steps")


Stage = Union[Step, ParallelGroup]


@dataclass
class OrchestrationPlan:
    name: str
    stages: list[Stage]

    def __post_init__(self) -> None:
        seen: set[str] = set()
        for name in self.step_names():
            if name in seen:
                raise ValueError(f"Duplicate step name '{name}' in plan '{self.name}'")
            seen.add(name)

    def step_names(self) -> list[str]:
        names: list[str] = []
        for stage in self.stages:
            if isinstance(stage, ParallelGroup):
                names.extend(s.name for s in stage.steps)
            else:
                names.append(stage.name)
        return names


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------

@dataclass
class StepOutcome:
    name: str
    value: Any = None
    error: BaseException | None = None
    policy: FailurePolicy = ABORT

    @property
    def failed(self) -> bool:
        return self.error is not None

    @property
    def aborts(self) -> bool:
        return self.failed and self.policy.aborts

    @property
    def degraded(self) -> bool:
        return self.failed and not self.policy.aborts


@dataclass
class PlanResult:
    plan: str
    value: Any = None
    outputs: dict[str, Any] = field(default_factory=dict)
    degraded: list[str] = field(default_factory=list)
    error: GatewayError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def unwrap(self) -> Any:
        if self.error is not None:
            raise self.error
        return self.value
