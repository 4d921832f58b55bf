"""Error taxonomy for downstream calls and plan execution."""

from __future__ import annotations

from typing import Any


class GatewayError(Exception):
    """Base exception for every failure the gateway maps to a client response.

    Attributes:
        status_code: HTTP status returned to the inbound caller.
        error_code: Machine-readable error identifier.
        context: Extra key-value pairs attached to the error response.
    """

    status_code: int = 500

    def __init__(
        self,
        message: str,
        error_code: str = "INTERNAL_ERROR",
        status_code: int | None = None,
        **context: Any,
    ) -> None:
        super().__init__(message)
        self.error_code = error_code
        if status_code is not None:
            self.status_code = status_code
        self.context = context


class TransportError(GatewayError):
    """Connection failure or timeout reported by the HTTP transport."""

    status_code: int = 502

    def __init__(self, message: str, **context: Any) -> None:
        super().__init__(message, error_code="TRANSPORT_ERROR", **context)


class UpstreamError(GatewayError):
    """A downstream service answered, but with an error status or a bad body."""

    status_code: int = 502

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        error_code: str = "UPSTREAM_ERROR",
        **context: Any,
    ) -> None:
        super().__init__(message, error_code=error_code, status_code=status_code, **context)


class PlanAbortedError(GatewayError):
    """An Abort-policy step failed and terminated its plan."""

    def __init__(self, plan: str, step: str, cause: BaseException) -> None:
        status = cause.status_code if isinstance(cause, GatewayError) else 500
        super().__init__(
            f"Plan '{plan}' aborted at step '{step}': {cause}",
            error_code="PLAN_ABORTED",
            status_code=status,
            plan=plan,
            step=step,
        )
        self.plan = plan
        self.step = step
        self.cause = cause
