"""Catalogue pass-through flows."""

from __future__ import annotations

from typing import Any, Mapping

from edge_gateway.flows.common import relay
from edge_gateway.flows.endpoints import Endpoints
from edge_gateway.orchestration.plan import Operation, OrchestrationPlan, Step


def catalogue_plan(
    endpoints: Endpoints, path: str = "", query: Mapping[str, Any] | None = None
) -> OrchestrationPlan:
    url = f"{endpoints.catalogue}/catalogue"
    if path:
        url = f"{url}/{path.lstrip('/')}"
    return OrchestrationPlan(
        name="catalogue",
        stages=[
            Step(
                name="catalogue",
                operation=Operation("GET", url, params=dict(query) if query else None, handle=relay),
            ),
        ],
    )


def tags_plan(endpoints: Endpoints) -> OrchestrationPlan:
    return OrchestrationPlan(
        name="tags",
        stages=[Step(name="tags", operation=Operation("GET", endpoints.tags, handle=relay))],
    )


def catalogue_image_url(endpoints: Endpoints, path: str) -> str:
    return f"{endpoints.catalogue}/catalogue/images/{path.lstrip('/')}"
