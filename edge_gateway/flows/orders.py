"""Order flows: order history and checkout."""

from __future__ import annotations

import logging
from typing import Any, Mapping

from edge_gateway.errors import UpstreamError
from edge_gateway.flows.common import embedded
from edge_gateway.flows.endpoints import Endpoints
from edge_gateway.orchestration.plan import (
    Operation,
    OrchestrationPlan,
    ParallelGroup,
    Step,
    degrade_to,
    expect_json,
)
from edge_gateway.transport.interface import DownstreamResponse

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# GET /orders
# ---------------------------------------------------------------------------

def _orders_or_empty(response: DownstreamResponse, step_input: Any) -> list[Any]:
    """Order history degrades to an empty list on anything but a clean 2xx."""
    if response.status_code == 404:
        logger.info("No orders found for customer")
        return []
    if not response.ok:
        logger.info("Orders service returned status: %d", response.status_code)
        return []
    try:
        body = response.json()
    except UpstreamError as exc:
        logger.error("Invalid JSON from orders: %s", exc)
        return []
    return embedded(body, "customerOrders")


def list_orders_plan(endpoints: Endpoints, customer_id: str) -> OrchestrationPlan:
    return OrchestrationPlan(
        name="list-orders",
        stages=[
            Step(
                name="orders",
                operation=Operation(
                    method="GET",
                    url=f"{endpoints.orders}/orders/search/customerId",
                    params={"sort": "date", "custId": customer_id},
                    handle=_orders_or_empty,
                ),
            ),
        ],
    )


# ---------------------------------------------------------------------------
# POST /orders
# ---------------------------------------------------------------------------

_REQUIRED_LINKS = ("customer", "addresses", "cards")


def _customer_links(endpoints: Endpoints, customer_id: str):
    def handle(response: DownstreamResponse, step_input: Any) -> dict[str, Any]:
        body = expect_json(response, step_input)
        if not isinstance(body, dict):
            raise UpstreamError("Customer response is not an object", status_code=502)
        if body.get("status_code") == 500:
            raise UpstreamError("Customer service returned 500", status_code=500)
        links = body.get("_links") or {}
        for name in _REQUIRED_LINKS:
            if not (links.get(name) or {}).get("href"):
                raise UpstreamError(f"Customer response missing {name} link", status_code=502)
        return {
            "order": {
                "customer": links["customer"]["href"],
                "address": None,
                "card": None,
                "items": f"{endpoints.carts}/{customer_id}/items",
            },
            "address_link": links["addresses"]["href"],
            "card_link": links["cards"]["href"],
        }

    return handle


def _first_self_link(key: str):
    def handle(response: DownstreamResponse, step_input: Any) -> str | None:
        body = expect_json(response, step_input)
        if isinstance(body, dict) and body.get("status_code") == 500:
            raise UpstreamError(f"No valid {key} found", status_code=500)
        items = embedded(body, key)
        if not items:
            logger.warning("No valid %s found in response", key)
            return None
        return ((items[0].get("_links") or {}).get("self") or {}).get("href")

    return handle


def _submitted(response: DownstreamResponse, step_input: Any) -> dict[str, Any]:
    """The orders service's own status is what the browser sees."""
    if response.status_code >= 400:
        logger.error("Order service returned error status: %d", response.status_code)
    try:
        body = response.json()
    except UpstreamError:
        body = None
    if body is None:
        body = {"message": "Order created successfully"}
    return {"status_code": response.status_code, "body": body}


def _order_payload(previous: Mapping[str, Any], outputs: Mapping[str, Any]) -> dict[str, Any]:
    order = dict(outputs["customer"]["order"])
    order["address"] = previous.get("address")
    order["card"] = previous.get("card")
    return order


def create_order_plan(endpoints: Endpoints, customer_id: str) -> OrchestrationPlan:
    """Customer -> (address | card) -> submit.

    A customer without a usable address or card still submits; the orders
    service decides whether the order is acceptable.
    """
    return OrchestrationPlan(
        name="create-order",
        stages=[
            Step(
                name="customer",
                operation=Operation(
                    method="GET",
                    url=f"{endpoints.customers}/{customer_id}",
                    handle=_customer_links(endpoints, customer_id),
                ),
            ),
            ParallelGroup(
                name="payment-details",
                steps=[
                    Step(
                        name="address",
                        transform=lambda prev, _: prev["address_link"],
                        operation=Operation(method="GET", url=lambda link: link, handle=_first_self_link("address")),
                        policy=degrade_to(None),
                    ),
                    Step(
                        name="card",
                        transform=lambda prev, _: prev["card_link"],
                        operation=Operation(method="GET", url=lambda link: link, handle=_first_self_link("card")),
                        policy=degrade_to(None),
                    ),
                ],
            ),
            Step(
                name="submit",
                transform=_order_payload,
                operation=Operation(
                    method="POST",
                    url=f"{endpoints.orders}/orders",
                    body=lambda order: order,
                    handle=_submitted,
                ),
            ),
        ],
    )
