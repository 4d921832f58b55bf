"""Orchestrator: runs waterfall and fan-out/fan-in plans against one request."""

from __future__ import annotations

import asyncio
import logging
from types import MappingProxyType
from typing import Any, Mapping

from edge_gateway.errors import PlanAbortedError
from edge_gateway.logging_setup import span_logger
from edge_gateway.orchestration.caller import DownstreamCaller
from edge_gateway.orchestration.plan import (
    OrchestrationPlan,
    ParallelGroup,
    PlanResult,
    Step,
    StepOutcome,
)
from edge_gateway.orchestration.scope import RequestScope

logger = logging.getLogger(__name__)


class Orchestrator:
    """Public API: ``result = await orchestrator.run(plan, initial_input, scope=scope)``

    * A single Step runs to completion before the next stage starts; its
      transform sees the previous stage's output.
    * A ParallelGroup starts all its steps together and joins on every one
      of them settling. Its output is ``{step name: value}``.
    * The first Abort-policy failure (in declaration order, not arrival
      order) ends the plan; later stages never run.
    * A DegradeToValue failure substitutes its value and the plan goes on.
    """

    def __init__(self, caller: DownstreamCaller) -> None:
        self._caller = caller

    async def run(
        self,
        plan: OrchestrationPlan,
        initial_input: Any = None,
        *,
        scope: RequestScope,
    ) -> PlanResult:
        log = span_logger(logger, scope.server_span)
        outputs: dict[str, Any] = {}
        degraded: list[str] = []
        previous = initial_input

        for stage in plan.stages:
            view = MappingProxyType(dict(outputs))
            if isinstance(stage, Step):
                outcomes = [await self._run_step(stage, previous, view, scope)]
            elif isinstance(stage, ParallelGroup):
                # gather keeps declaration order and waits for every branch
                outcomes = list(await asyncio.gather(
                    *(self._run_step(step, previous, view, scope) for step in stage.steps)
                ))
            else:
                raise TypeError(f"Unknown stage type: {type(stage).__name__}")

            for outcome in outcomes:
                if outcome.degraded:
                    degraded.append(outcome.name)
                if not outcome.aborts:
                    outputs[outcome.name] = outcome.value

            failure = next((o for o in outcomes if o.aborts), None)
            if failure is not None:
                error = PlanAbortedError(plan.name, failure.name, failure.error)
                log.error("plan=%s aborted at step=%s: %s", plan.name, failure.name, failure.error)
                return PlanResult(
                    plan=plan.name, outputs=outputs, degraded=degraded, error=error,
                )

            if isinstance(stage, ParallelGroup):
                previous = {o.name: o.value for o in outcomes}
            else:
                previous = outcomes[0].value

        log.info("plan=%s completed degraded=%s", plan.name, degraded or "none")
        return PlanResult(plan=plan.name, value=previous, outputs=outputs, degraded=degraded)

    async def _run_step(
        self,
        step: Step,
        previous: Any,
        outputs: Mapping[str, Any],
        scope: RequestScope,
    ) -> StepOutcome:
        """Run one step; failures come back as outcomes, never as exceptions."""
        log = span_logger(logger, scope.server_span)
        try:
            step_input = step.transform(previous, outputs) if step.transform else previous
            options = step.operation.build(step_input)
            value = await self._caller.call(
                scope,
                options,
                inject_faults=step.inject_faults,
                handle=lambda response: step.operation.handle(response, step_input),
            )
        except Exception as exc:
            if step.policy.aborts:
                log.warning("step=%s failed: %s", step.name, exc)
            else:
                log.warning("step=%s failed, degrading to %r: %s", step.name, step.policy.value, exc)
                return StepOutcome(step.name, step.policy.value, error=exc, policy=step.policy)
            return StepOutcome(step.name, error=exc, policy=step.policy)
        return StepOutcome(step.name, value, policy=step.policy)
