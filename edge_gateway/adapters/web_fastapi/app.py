"""FastAPI storefront adapter: thin translation layer, no business logic."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Mapping

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, Response, StreamingResponse

from edge_gateway import create_gateway
from edge_gateway.errors import GatewayError
from edge_gateway.flows import (
    Relayed,
    add_item_plan,
    address_plan,
    card_plan,
    catalogue_image_url,
    catalogue_plan,
    create_order_plan,
    create_resource_plan,
    delete_cart_plan,
    delete_item_plan,
    delete_resource_plan,
    get_cart_plan,
    get_resource_plan,
    list_orders_plan,
    login_plan,
    register_plan,
    tags_plan,
    update_item_plan,
)
from edge_gateway.gateway import Gateway
from edge_gateway.logging_setup import configure_logging, span_logger
from edge_gateway.orchestration.plan import OrchestrationPlan
from edge_gateway.orchestration.scope import RequestScope
from edge_gateway.tracing.models import Span
from edge_gateway.tracing.propagation import RequestAccessor

logger = logging.getLogger(__name__)

SESSION_COOKIE = "md.sid"
CUSTOMER_COOKIE = "customer_id"
LOGGED_IN_COOKIE = "logged_in"


class StarletteRequestAccessor(RequestAccessor):
    def __init__(self, request: Request) -> None:
        self._request = request
        self.span: Span | None = None

    @property
    def headers(self) -> Mapping[str, str]:
        return self._request.headers

    @property
    def method(self) -> str:
        return self._request.method

    @property
    def path(self) -> str:
        return self._request.url.path


# ---------------------------------------------------------------------------
# Request helpers
# ---------------------------------------------------------------------------

def _scope(request: Request) -> RequestScope:
    return request.state.scope


def _customer_id(request: Request) -> str:
    customer_id = request.cookies.get(CUSTOMER_COOKIE) or request.query_params.get("custId")
    if not customer_id:
        raise GatewayError("Customer not identified", error_code="UNAUTHORIZED", status_code=401)
    return customer_id


def _require_login(request: Request) -> str:
    if not request.cookies.get(LOGGED_IN_COOKIE):
        raise GatewayError("User not logged in", error_code="UNAUTHORIZED", status_code=401)
    return _customer_id(request)


async def _json_object(request: Request) -> dict[str, Any]:
    try:
        body = await request.json()
    except ValueError as exc:
        raise GatewayError("Request body must be JSON", error_code="BAD_REQUEST", status_code=400) from exc
    if not isinstance(body, dict):
        raise GatewayError("Request body must be a JSON object", error_code="BAD_REQUEST", status_code=400)
    return body


def _relayed(value: Relayed) -> Response:
    return Response(content=value.body, status_code=value.status_code, media_type=value.content_type)


def _logged_in(response: Response, customer_id: str) -> Response:
    response.set_cookie(CUSTOMER_COOKIE, customer_id, httponly=True)
    response.set_cookie(LOGGED_IN_COOKIE, "true")
    return response


async def _stream(gateway: Gateway, scope: RequestScope, url: str) -> StreamingResponse:
    """Pull the first chunk eagerly so upstream errors still map to a status."""
    chunks = gateway.stream(scope, url)
    try:
        first = await chunks.__anext__()
    except StopAsyncIteration:
        first = b""

    async def body() -> AsyncIterator[bytes]:
        if first:
            yield first
        async for chunk in chunks:
            yield chunk

    return StreamingResponse(body())


def create_app(gateway: Gateway | None = None) -> FastAPI:
    gateway = gateway or create_gateway()
    endpoints = gateway.endpoints

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        await gateway.aclose()

    app = FastAPI(title="Edge Gateway", version="0.1.0", lifespan=lifespan)
    app.state.gateway = gateway

    async def run(request: Request, plan: OrchestrationPlan, initial_input: Any = None) -> Any:
        result = await gateway.run(plan, _scope(request), initial_input)
        return result.unwrap()

    # -- tracing + errors ---------------------------------------------------

    @app.middleware("http")
    async def trace_requests(request: Request, call_next):
        scope = gateway.handle_inbound(StarletteRequestAccessor(request))
        request.state.scope = scope
        try:
            response = await call_next(request)
        except Exception as exc:
            span_logger(logger, scope.server_span).exception("Unhandled error on %s", request.url.path)
            await gateway.finish_inbound(scope, exc)
            return JSONResponse(
                {"error_code": "INTERNAL_ERROR", "message": str(exc)},
                status_code=500,
            )
        error = getattr(request.state, "error", None)
        await gateway.finish_inbound(scope, error if error is not None else response.status_code)
        return response

    @app.exception_handler(GatewayError)
    async def gateway_error(request: Request, exc: GatewayError) -> JSONResponse:
        request.state.error = exc
        scope = getattr(request.state, "scope", None)
        span_logger(logger, scope.server_span if scope else None).error(
            "%s %s failed: %s", request.method, request.url.path, exc,
        )
        return JSONResponse(
            {"error_code": exc.error_code, "message": str(exc), **exc.context},
            status_code=exc.status_code,
        )

    # -- orders -------------------------------------------------------------

    @app.get("/orders")
    async def get_orders(request: Request) -> JSONResponse:
        customer_id = _require_login(request)
        return JSONResponse(await run(request, list_orders_plan(endpoints, customer_id)), status_code=201)

    @app.post("/orders")
    async def create_order(request: Request) -> JSONResponse:
        customer_id = _require_login(request)
        submitted = await run(request, create_order_plan(endpoints, customer_id))
        return JSONResponse(submitted["body"], status_code=submitted["status_code"])

    @app.get("/orders/{path:path}")
    async def order_passthrough(path: str, request: Request) -> StreamingResponse:
        _require_login(request)
        return await _stream(gateway, _scope(request), f"{endpoints.orders}/orders/{path}")

    # -- cart ---------------------------------------------------------------

    @app.get("/cart")
    async def get_cart(request: Request) -> Response:
        return _relayed(await run(request, get_cart_plan(endpoints, _customer_id(request))))

    @app.delete("/cart")
    async def delete_cart(request: Request) -> Response:
        return _relayed(await run(request, delete_cart_plan(endpoints, _customer_id(request))))

    @app.post("/cart")
    async def add_to_cart(request: Request) -> Response:
        customer_id = _customer_id(request)
        body = await request.json()
        item_id = body.get("id") if isinstance(body, dict) else None
        if not item_id:
            raise GatewayError("Item ID is required", error_code="BAD_REQUEST", status_code=400)
        status = await run(request, add_item_plan(endpoints, customer_id, str(item_id)))
        return Response(status_code=status)

    @app.delete("/cart/{item_id}")
    async def delete_cart_item(item_id: str, request: Request) -> Response:
        return _relayed(await run(request, delete_item_plan(endpoints, _customer_id(request), item_id)))

    @app.post("/cart/update")
    async def update_cart_item(request: Request) -> Response:
        customer_id = _customer_id(request)
        body = await _json_object(request)
        if body.get("id") is None:
            raise GatewayError("Item ID is required", error_code="BAD_REQUEST", status_code=400)
        if body.get("quantity") is None:
            raise GatewayError("Quantity is required", error_code="BAD_REQUEST", status_code=400)
        try:
            quantity = int(body["quantity"])
        except (TypeError, ValueError) as exc:
            raise GatewayError("Quantity must be a number", error_code="BAD_REQUEST", status_code=400) from exc
        status = await run(request, update_item_plan(endpoints, customer_id, str(body["id"]), quantity))
        return Response(status_code=status)

    # -- user ---------------------------------------------------------------

    @app.get("/login")
    async def login(request: Request) -> JSONResponse:
        plan = login_plan(
            endpoints,
            request.headers.get("authorization", ""),
            request.cookies.get(SESSION_COOKIE, ""),
        )
        result = await gateway.run(plan, _scope(request))
        result.unwrap()
        customer_id = result.outputs["login"]
        return _logged_in(JSONResponse({"id": customer_id}), customer_id)

    @app.post("/register")
    async def register(request: Request) -> JSONResponse:
        customer = await request.json()
        plan = register_plan(endpoints, customer, request.cookies.get(SESSION_COOKIE, ""))
        customer_id = await run(request, plan)
        return _logged_in(JSONResponse({"id": customer_id}), customer_id)

    @app.get("/address")
    async def get_address(request: Request) -> JSONResponse:
        return JSONResponse(await run(request, address_plan(endpoints, _customer_id(request))))

    @app.get("/card")
    async def get_card(request: Request) -> JSONResponse:
        return JSONResponse(await run(request, card_plan(endpoints, _customer_id(request))))

    # -- account pass-throughs ----------------------------------------------

    @app.get("/customers/{customer_id}")
    async def get_customer(customer_id: str, request: Request) -> Response:
        # the identified customer is returned, whatever id the path names
        return _relayed(await run(request, get_resource_plan(endpoints, "customers", _customer_id(request))))

    @app.get("/cards/{card_id}")
    async def get_card_details(card_id: str, request: Request) -> Response:
        return _relayed(await run(request, get_resource_plan(endpoints, "cards", card_id)))

    @app.get("/customers")
    async def list_customers(request: Request) -> Response:
        return _relayed(await run(request, get_resource_plan(endpoints, "customers")))

    @app.get("/addresses")
    async def list_addresses(request: Request) -> Response:
        return _relayed(await run(request, get_resource_plan(endpoints, "addresses")))

    @app.get("/cards")
    async def list_cards(request: Request) -> Response:
        return _relayed(await run(request, get_resource_plan(endpoints, "cards")))

    @app.post("/customers")
    async def create_customer(request: Request) -> Response:
        body = await _json_object(request)
        return _relayed(await run(request, create_resource_plan(endpoints, "customers", body)))

    @app.post("/addresses")
    async def create_address(request: Request) -> Response:
        body = await _json_object(request)
        plan = create_resource_plan(endpoints, "addresses", body, customer_id=_customer_id(request))
        return _relayed(await run(request, plan))

    @app.post("/cards")
    async def create_card(request: Request) -> Response:
        body = await _json_object(request)
        plan = create_resource_plan(endpoints, "cards", body, customer_id=_customer_id(request))
        return _relayed(await run(request, plan))

    @app.delete("/customers/{resource_id}")
    async def delete_customer(resource_id: str, request: Request) -> Response:
        return _relayed(await run(request, delete_resource_plan(endpoints, "customers", resource_id)))

    @app.delete("/addresses/{resource_id}")
    async def delete_address(resource_id: str, request: Request) -> Response:
        return _relayed(await run(request, delete_resource_plan(endpoints, "addresses", resource_id)))

    @app.delete("/cards/{resource_id}")
    async def delete_card(resource_id: str, request: Request) -> Response:
        return _relayed(await run(request, delete_resource_plan(endpoints, "cards", resource_id)))

    # -- catalogue ----------------------------------------------------------

    @app.get("/catalogue")
    async def get_catalogue(request: Request) -> Response:
        plan = catalogue_plan(endpoints, query=dict(request.query_params))
        return _relayed(await run(request, plan))

    @app.get("/catalogue/images/{path:path}")
    async def catalogue_image(path: str, request: Request) -> StreamingResponse:
        return await _stream(gateway, _scope(request), catalogue_image_url(endpoints, path))

    @app.get("/catalogue/{item_id}")
    async def get_item(item_id: str, request: Request) -> Response:
        return _relayed(await run(request, catalogue_plan(endpoints, item_id)))

    @app.get("/tags")
    async def get_tags(request: Request) -> Response:
        return _relayed(await run(request, tags_plan(endpoints)))

    @app.get("/health")
    async def health() -> JSONResponse:
        return JSONResponse({"status": "ok", "service": gateway.settings.service_name})

    return app


# Module-level instance for ``uvicorn edge_gateway.adapters.web_fastapi.app:app``
app = create_app()


def serve() -> None:
    """Entry-point for ``gateway-web`` console script."""
    import uvicorn

    settings = app.state.gateway.settings
    configure_logging(settings.log_level, settings.service_name)
    uvicorn.run(
        "edge_gateway.adapters.web_fastapi.app:app",
        host="0.0.0.0",
        port=settings.port,
        log_level=settings.log_level.lower(),
        log_config=None,
    )
