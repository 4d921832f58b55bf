"""Gateway configuration read from the environment (and ``.env``)."""

from __future__ import annotations

import os
from typing import Literal, Mapping

from pydantic import BaseModel, Field

DEFAULT_ZIPKIN_HOST = "jaeger-collector.observability.svc.cluster.local"


def _flag(value: str | None, default: bool = False) -> bool:
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


class GatewaySettings(BaseModel):
    """Process-wide settings. Fault flags live outside this model; they are
    re-read from the environment on every request."""

    service_name: str = "front-end"
    port: int = 8079
    domain: str = ""
    zipkin_base_url: str = f"http://{DEFAULT_ZIPKIN_HOST}:9411"
    trace_collector: Literal["jsonl", "zipkin", "memory", "none"] = "jsonl"
    trace_dir: str = "./traces"
    trace_id_128bit: bool = False
    tracestate_vendor: str = "edgegw"
    downstream_timeout: float = Field(default=10.0, gt=0)
    log_level: str = "INFO"

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> GatewaySettings:
        env = os.environ if environ is None else environ

        zipkin = env.get("ZIPKIN_BASE_URL")
        if not zipkin:
            host = env.get("ZIPKIN_HOST") or env.get("zipkin_host") or DEFAULT_ZIPKIN_HOST
            zipkin = f"http://{host}:{env.get('ZIPKIN_PORT', '9411')}"

        values: dict = {
            "zipkin_base_url": zipkin,
            "trace_id_128bit": _flag(env.get("TRACE_ID_128BIT")),
        }
        for field_name, var in (
            ("service_name", "SERVICE_NAME"),
            ("port", "PORT"),
            ("domain", "DOMAIN"),
            ("trace_collector", "TRACE_COLLECTOR"),
            ("trace_dir", "TRACE_DIR"),
            ("tracestate_vendor", "TRACESTATE_VENDOR"),
            ("downstream_timeout", "DOWNSTREAM_TIMEOUT_S"),
            ("log_level", "LOG_LEVEL"),
        ):
            if env.get(var):
                values[field_name] = env[var]
        return cls(**values)
