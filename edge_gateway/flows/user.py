"""Account flows: login, registration, saved address and card, account pass-throughs."""

from __future__ import annotations

from typing import Any

from edge_gateway.errors import UpstreamError
from edge_gateway.flows.common import embedded, relay_ok
from edge_gateway.flows.endpoints import Endpoints
from edge_gateway.orchestration.plan import (
    Operation,
    OrchestrationPlan,
    Step,
    degrade_to,
    expect_json,
)
from edge_gateway.transport.interface import DownstreamResponse


def _merged(response: DownstreamResponse, customer_id: str) -> str:
    if not response.ok:
        raise UpstreamError(f"Cart merge returned status {response.status_code}", status_code=500)
    return customer_id


def _merge_step(endpoints: Endpoints, session_id: str, **kwargs: Any) -> Step:
    return Step(
        name="merge-carts",
        operation=Operation(
            "GET",
            lambda customer_id: f"{endpoints.carts}/{customer_id}/merge",
            params={"sessionId": session_id},
            handle=_merged,
        ),
        **kwargs,
    )


def _logged_in_customer(response: DownstreamResponse, step_input: Any) -> str:
    if response.status_code != 200 or not response.body:
        raise UpstreamError(f"Login rejected with status {response.status_code}", status_code=401)
    body = response.json()
    try:
        return str(body["user"]["id"])
    except (KeyError, TypeError) as exc:
        raise UpstreamError("Login response missing user id", status_code=401) from exc


def login_plan(endpoints: Endpoints, authorization: str, session_id: str) -> OrchestrationPlan:
    """Login -> merge the anonymous cart. A failed merge does not block login."""
    return OrchestrationPlan(
        name="login",
        stages=[
            Step(
                name="login",
                operation=Operation(
                    "GET",
                    endpoints.login,
                    headers={"Authorization": authorization} if authorization else None,
                    handle=_logged_in_customer,
                ),
            ),
            _merge_step(endpoints, session_id, policy=degrade_to(None)),
        ],
    )


def _registered_customer(response: DownstreamResponse, step_input: Any) -> str:
    if response.status_code != 200 or not response.body:
        raise UpstreamError(f"Register rejected with status {response.status_code}", status_code=500)
    body = response.json()
    if isinstance(body, dict) and body.get("error"):
        raise UpstreamError(str(body["error"]), status_code=500)
    try:
        return str(body["id"])
    except (KeyError, TypeError) as exc:
        raise UpstreamError("Register response missing id", status_code=500) from exc


def register_plan(endpoints: Endpoints, customer: dict[str, Any], session_id: str) -> OrchestrationPlan:
    return OrchestrationPlan(
        name="register",
        stages=[
            Step(
                name="register",
                operation=Operation("POST", endpoints.register, body=customer, handle=_registered_customer),
            ),
            _merge_step(endpoints, session_id),
        ],
    )


def _first_address(response: DownstreamResponse, step_input: Any) -> dict[str, Any]:
    body = expect_json(response, step_input)
    items = embedded(body, "address")
    if isinstance(body, dict) and body.get("status_code") == 500 or not items:
        return {"status_code": 500}
    return items[0]


def _card_digits(response: DownstreamResponse, step_input: Any) -> dict[str, Any]:
    body = expect_json(response, step_input)
    items = embedded(body, "card")
    if isinstance(body, dict) and body.get("status_code") == 500 or not items:
        return {"status_code": 500}
    return {"number": str(items[0].get("longNum", ""))[-4:]}


def address_plan(endpoints: Endpoints, customer_id: str) -> OrchestrationPlan:
    return OrchestrationPlan(
        name="customer-address",
        stages=[
            Step(
                name="address",
                operation=Operation("GET", f"{endpoints.customers}/{customer_id}/addresses", handle=_first_address),
            ),
        ],
    )


def card_plan(endpoints: Endpoints, customer_id: str) -> OrchestrationPlan:
    return OrchestrationPlan(
        name="customer-card",
        stages=[
            Step(
                name="card",
                operation=Operation("GET", f"{endpoints.customers}/{customer_id}/cards", handle=_card_digits),
            ),
        ],
    )


# ---------------------------------------------------------------------------
# Account pass-throughs (customers, addresses, cards)
# ---------------------------------------------------------------------------

ACCOUNT_RESOURCES = ("customers", "addresses", "cards")


def _resource_url(endpoints: Endpoints, resource: str) -> str:
    if resource not in ACCOUNT_RESOURCES:
        raise ValueError(f"Unknown account resource '{resource}'")
    return getattr(endpoints, resource)


def _passthrough(name: str, method: str, url: str, body: Any = None) -> OrchestrationPlan:
    return OrchestrationPlan(
        name=name,
        stages=[Step(name=name, operation=Operation(method, url, body=body, handle=relay_ok))],
    )


def get_resource_plan(endpoints: Endpoints, resource: str, resource_id: str | None = None) -> OrchestrationPlan:
    """GET one account resource, or the whole collection when ``resource_id`` is None."""
    url = _resource_url(endpoints, resource)
    if resource_id is not None:
        url = f"{url}/{resource_id}"
    return _passthrough(f"get-{resource}", "GET", url)


def create_resource_plan(
    endpoints: Endpoints,
    resource: str,
    body: dict[str, Any],
    customer_id: str | None = None,
) -> OrchestrationPlan:
    """POST a new resource. Addresses and cards are owned by ``customer_id``."""
    payload = dict(body)
    if customer_id is not None:
        payload["userID"] = customer_id
    return _passthrough(f"create-{resource}", "POST", _resource_url(endpoints, resource), payload)


def delete_resource_plan(endpoints: Endpoints, resource: str, resource_id: str) -> OrchestrationPlan:
    return _passthrough(f"delete-{resource}", "DELETE", f"{_resource_url(endpoints, resource)}/{resource_id}")
