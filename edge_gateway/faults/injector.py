"""Fault injector: decides, then applies, operator-requested failures."""

from __future__ import annotations

import asyncio
import logging
import random
from typing import Awaitable, Callable, Sequence

from edge_gateway.errors import UpstreamError
from edge_gateway.faults.models import (
    FAULTS_ENABLED_FLAG,
    NO_FAULT,
    Crash,
    Delay,
    FaultDecision,
    FaultRule,
    RuleContext,
    SyntheticError,
    default_rules,
)

logger = logging.getLogger(__name__)


class FaultInjector:
    """Evaluates rules in declared order; the first applicable rule wins.

    ``decide`` has no side effects beyond drawing from ``rng``. Its result is
    applied at two points: ``before_call`` (crash / synthetic error replace
    the call) and ``before_response`` (delay holds the obtained result).
    """

    def __init__(
        self,
        rules: Sequence[FaultRule] | None = None,
        rng: Callable[[], float] = random.random,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._rules = tuple(default_rules() if rules is None else rules)
        self._rng = rng
        self._sleep = sleep

    @property
    def rules(self) -> tuple[FaultRule, ...]:
        return self._rules

    # -- decision -----------------------------------------------------------

    def decide(self, ctx: RuleContext) -> FaultDecision:
        if not ctx.flag(FAULTS_ENABLED_FLAG):
            return NO_FAULT
        for rule in self._rules:
            if self._applies(rule, ctx):
                return self._resolve(rule, ctx)
        return NO_FAULT

    def _applies(self, rule: FaultRule, ctx: RuleContext) -> bool:
        if not ctx.flag(rule.enabled_flag):
            return False
        header_hit = rule.header_value is not None and ctx.fault_header == rule.header_value.upper()
        always = ctx.flag(rule.always_flag)
        effect = rule.effect

        if isinstance(effect, Delay):
            if ctx.flag(rule.require_header_flag) and not header_hit:
                return False
            if always:
                return True
            pct = ctx.number(effect.probability_flag, effect.probability_pct)
            return self._rng() < pct / 100
        if isinstance(effect, (Crash, SyntheticError)):
            return header_hit or always
        raise ValueError(f"unknown fault effect: {effect!r}")

    def _resolve(self, rule: FaultRule, ctx: RuleContext) -> FaultDecision:
        effect = rule.effect
        if not isinstance(effect, Delay):
            return FaultDecision(rule_id=rule.id, effect=effect)
        duration = ctx.number(effect.duration_flag, effect.duration_ms)
        jitter = ctx.number(effect.jitter_flag, effect.jitter_ms)
        if jitter > 0:
            duration += (self._rng() * 2 - 1) * jitter
        return FaultDecision(rule_id=rule.id, effect=effect, delay_ms=max(duration, 0.0))

    # -- application --------------------------------------------------------

    def before_call(self, decision: FaultDecision, path: str = "") -> None:
        """Raise in place of the downstream call when the decision says so."""
        effect = decision.effect
        if isinstance(effect, Crash):
            logger.warning(
                "FAULT_INJECTED fault_id=%s fault_type=crash path=%s", decision.rule_id, path,
            )
            raise TypeError(effect.message)
        if isinstance(effect, SyntheticError):
            logger.warning(
                "FAULT_INJECTED fault_id=%s fault_type=synthetic_error code=%s path=%s",
                decision.rule_id, effect.code, path,
            )
            raise UpstreamError(
                effect.message,
                status_code=effect.status_code,
                error_code=effect.code,
            )

    async def before_response(self, decision: FaultDecision, path: str = "") -> float:
        """Sleep for a delay decision. Returns the milliseconds slept."""
        if not isinstance(decision.effect, Delay):
            return 0.0
        logger.warning(
            "FAULT_INJECTED fault_id=%s fault_type=tail_latency delay_ms=%d path=%s",
            decision.rule_id, decision.delay_ms, path,
        )
        await self._sleep(decision.delay_ms / 1000)
        return decision.delay_ms
