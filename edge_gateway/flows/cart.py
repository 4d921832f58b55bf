"""Cart flows."""

from __future__ import annotations

from typing import Any

from edge_gateway.errors import UpstreamError
from edge_gateway.flows.common import relay
from edge_gateway.flows.endpoints import Endpoints
from edge_gateway.orchestration.plan import Operation, OrchestrationPlan, Step
from edge_gateway.transport.interface import DownstreamResponse


def get_cart_plan(endpoints: Endpoints, customer_id: str) -> OrchestrationPlan:
    return OrchestrationPlan(
        name="get-cart",
        stages=[
            Step(
                name="items",
                operation=Operation("GET", f"{endpoints.carts}/{customer_id}/items", handle=relay),
            ),
        ],
    )


def delete_cart_plan(endpoints: Endpoints, customer_id: str) -> OrchestrationPlan:
    return OrchestrationPlan(
        name="delete-cart",
        stages=[
            Step(
                name="cart",
                operation=Operation("DELETE", f"{endpoints.carts}/{customer_id}", handle=relay),
            ),
        ],
    )


def delete_item_plan(endpoints: Endpoints, customer_id: str, item_id: str) -> OrchestrationPlan:
    """Removing an item is the operator's fault-injection target."""
    return OrchestrationPlan(
        name="delete-cart-item",
        stages=[
            Step(
                name="item",
                operation=Operation(
                    "DELETE",
                    f"{endpoints.carts}/{customer_id}/items/{item_id}",
                    handle=relay,
                ),
                inject_faults=True,
            ),
        ],
    )


def _added(response: DownstreamResponse, step_input: Any) -> int:
    if response.status_code != 201:
        raise UpstreamError(
            f"Unable to add to cart. Status code: {response.status_code}",
            status_code=500,
        )
    return response.status_code


def add_item_plan(endpoints: Endpoints, customer_id: str, item_id: str) -> OrchestrationPlan:
    """Catalogue lookup (for the unit price) -> add to cart."""
    return OrchestrationPlan(
        name="add-cart-item",
        stages=[
            Step(
                name="item",
                operation=Operation("GET", f"{endpoints.catalogue}/catalogue/{item_id}"),
            ),
            Step(
                name="add",
                transform=lambda item, _: {"itemId": item["id"], "unitPrice": item["price"]},
                operation=Operation(
                    "POST",
                    f"{endpoints.carts}/{customer_id}/items",
                    body=lambda payload: payload,
                    handle=_added,
                ),
            ),
        ],
    )


def _updated(response: DownstreamResponse, step_input: Any) -> int:
    if response.status_code != 202:
        raise UpstreamError(
            f"Unable to update cart. Status code: {response.status_code}",
            status_code=500,
        )
    return response.status_code


def update_item_plan(
    endpoints: Endpoints, customer_id: str, item_id: str, quantity: int
) -> OrchestrationPlan:
    """Catalogue lookup (for the unit price) -> set the item's quantity."""
    return OrchestrationPlan(
        name="update-cart-item",
        stages=[
            Step(
                name="item",
                operation=Operation("GET", f"{endpoints.catalogue}/catalogue/{item_id}"),
            ),
            Step(
                name="update",
                transform=lambda item, _: {
                    "itemId": item["id"],
                    "quantity": quantity,
                    "unitPrice": item["price"],
                },
                operation=Operation(
                    "PATCH",
                    f"{endpoints.carts}/{customer_id}/items",
                    body=lambda payload: payload,
                    handle=_updated,
                ),
            ),
        ],
    )
