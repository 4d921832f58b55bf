"""Fault rule models. Rules hold no state; every evaluation stands alone."""

from __future__ import annotations

import os
from typing import Annotated, Literal, Mapping, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

FAULT_HEADER = "x-fault"
FAULTS_ENABLED_FLAG = "FAULTS_ENABLED"


# ---------------------------------------------------------------------------
# Effects (closed set, discriminated on ``kind``)
# ---------------------------------------------------------------------------

class Crash(BaseModel):
    """Fail the way an unguarded code path would: with an unhandled TypeError."""

    kind: Literal["crash"] = "crash"
    message: str = "'NoneType' object has no attribute 'strip'"


class SyntheticError(BaseModel):
    """Fail as if the downstream dependency had returned an error."""

    kind: Literal["synthetic_error"] = "synthetic_error"
    code: str
    status_code: int = 500
    message: str = "Upstream dependency failure"


class Delay(BaseModel):
    """Hold an already-obtained response for ``duration_ms`` +/- ``jitter_ms``.

    Each ``*_flag`` names an environment variable that, when set, overrides
    the matching default at decision time.
    """

    kind: Literal["delay"] = "delay"
    duration_ms: float = 2000.0
    jitter_ms: float = 0.0
    probability_pct: float = 10.0
    duration_flag: str | None = None
    jitter_flag: str | None = None
    probability_flag: str | None = None


FaultEffect = Annotated[Union[Crash, SyntheticError, Delay], Field(discriminator="kind")]


class FaultRule(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    effect: FaultEffect
    enabled_flag: str
    always_flag: str | None = None
    header_value: str | None = None
    # delay rules only: when this flag is on, the header must match too
    require_header_flag: str | None = None


# ---------------------------------------------------------------------------
# Evaluation input / output
# ---------------------------------------------------------------------------

class RuleContext(BaseModel):
    """Environment flags and request headers a decision is made from."""

    model_config = ConfigDict(frozen=True)

    flags: dict[str, str] = Field(default_factory=dict)
    headers: dict[str, str] = Field(default_factory=dict)

    @classmethod
    def from_environ(
        cls,
        headers: Mapping[str, str],
        environ: Mapping[str, str] | None = None,
    ) -> RuleContext:
        env = os.environ if environ is None else environ
        return cls(
            flags={k: v for k, v in env.items() if k.startswith("FAULT")},
            headers={str(k).lower(): str(v) for k, v in headers.items()},
        )

    def flag(self, name: str | None) -> bool:
        return name is not None and self.flags.get(name) == "true"

    def number(self, name: str | None, default: float) -> float:
        if name is None or name not in self.flags:
            return default
        try:
            return float(self.flags[name])
        except ValueError:
            return default

    @property
    def fault_header(self) -> str:
        return self.headers.get(FAULT_HEADER, "").strip().upper()


class FaultDecision(BaseModel):
    """Outcome of one evaluation. ``effect is None`` means run normally."""

    rule_id: str | None = None
    effect: Optional[FaultEffect] = None
    delay_ms: float = 0.0

    @property
    def triggered(self) -> bool:
        return self.effect is not None

    @property
    def pre_empts_call(self) -> bool:
        return isinstance(self.effect, (Crash, SyntheticError))


NO_FAULT = FaultDecision()


def default_rules() -> list[FaultRule]:
    """The storefront's operator-controlled faults, in evaluation order."""
    return [
        FaultRule(
            id="FE-TE-01",
            effect=Crash(),
            enabled_flag="FAULT_FE_TYPEERROR_ENABLED",
            always_flag="FAULTS_FE_TYPEERROR_ALWAYS",
            header_value="FE-TE-01",
        ),
        FaultRule(
            id="FE-ERR-01",
            effect=SyntheticError(
                code="UPSTREAM_CARTS_FAILURE",
                status_code=500,
                message="Upstream dependency failure while fetching cart items",
            ),
            enabled_flag="FAULT_FE_ERROR_ENABLED",
            always_flag="FAULTS_FE_ERROR_ALWAYS",
            header_value="FE-ERR-01",
        ),
        FaultRule(
            id="FE-SLEEP-01",
            effect=Delay(
                duration_ms=2000,
                probability_pct=10,
                duration_flag="FAULT_FE_SLEEP_MS",
                jitter_flag="FAULT_FE_SLEEP_JITTER_MS",
                probability_flag="FAULT_FE_SLEEP_PCT",
            ),
            enabled_flag="FAULT_FE_SLEEP_ENABLED",
            header_value="FE-SLEEP-01",
            require_header_flag="FAULT_FE_SLEEP_REQUIRE_HEADER",
        ),
    ]
