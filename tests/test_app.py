"""End-to-end tests for the FastAPI storefront adapter."""

from __future__ import annotations

from edge_gateway.errors import UpstreamError
from edge_gateway.tracing.models import SpanKind

TRACE = "463ac35c9f6413ad"
SPAN = "a2fb4a1d1a96d312"
B3 = {"X-B3-TraceId": TRACE, "X-B3-SpanId": SPAN, "X-B3-Sampled": "1"}


def _login(client, customer_id: str = "1") -> None:
    client.cookies.set("customer_id", customer_id)
    client.cookies.set("logged_in", "true")


def _customer(customer_id: str = "1") -> dict:
    base = f"http://user/customers/{customer_id}"
    return {
        "firstName": "Ada",
        "_links": {
            "customer": {"href": base},
            "addresses": {"href": f"{base}/addresses"},
            "cards": {"href": f"{base}/cards"},
        },
    }


def _embedded(key: str, href: str, **fields) -> dict:
    return {"_embedded": {key: [{"_links": {"self": {"href": href}}, **fields}]}}


class TestTracing:
    def test_health_records_server_span(self, client, collector):
        response = client.get("/health", headers=B3)

        assert response.status_code == 200
        assert response.json() == {"status": "ok", "service": "front-end"}
        server = collector.by_name("GET /health")[0]
        assert server.kind is SpanKind.SERVER
        assert server.context.trace_id == TRACE
        assert server.tags["http.status_code"] == 200
        assert collector.flushes == 1

    def test_downstream_call_continues_inbound_trace(self, client, transport, collector):
        transport.route("GET", "http://carts/carts/1/items", json_body=[{"itemId": "a"}])
        client.cookies.set("customer_id", "1")

        response = client.get("/cart", headers={**B3, "X-Correlation-Id": "corr-1"})

        assert response.status_code == 200
        assert response.json() == [{"itemId": "a"}]
        outbound = transport.calls[0].headers
        assert outbound["x-b3-traceid"] == TRACE
        assert outbound["x-b3-parentspanid"] == SPAN
        assert outbound["x-correlation-id"] == "corr-1"
        trace = collector.by_trace(TRACE)
        assert {s.kind for s in trace} == {SpanKind.SERVER, SpanKind.CLIENT}

    def test_request_without_headers_starts_trace(self, client, transport, collector):
        transport.route("GET", "http://catalogue/tags", json_body={"tags": ["blue"]})

        client.get("/tags")

        server = collector.by_name("GET /tags")[0]
        client_span = collector.by_name("GET catalogue /tags")[0]
        assert client_span.context.trace_id == server.context.trace_id
        assert client_span.context.parent_span_id == server.context.span_id

    def test_error_response_marks_server_span(self, client, collector):
        response = client.get("/cart")

        assert response.status_code == 401
        assert response.json()["error_code"] == "UNAUTHORIZED"
        server = collector.by_name("GET /cart")[0]
        assert server.error is True
        assert server.tags["http.status_code"] == 401
        assert server.events[0].detail["error.kind"] == "GatewayError"


class TestOrders:
    def test_orders_require_login(self, client, transport):
        client.cookies.set("customer_id", "1")
        assert client.get("/orders").status_code == 401
        assert client.post("/orders").status_code == 401
        assert transport.calls == []

    def test_list_orders(self, client, transport):
        _login(client)
        transport.route(
            "GET",
            "http://orders/orders/search/customerId",
            json_body={"_embedded": {"customerOrders": [{"id": "o1"}]}},
        )

        response = client.get("/orders")

        assert response.status_code == 201
        assert response.json() == [{"id": "o1"}]
        assert transport.calls[0].params == {"sort": "date", "custId": "1"}

    def test_list_orders_degrades_to_empty(self, client, transport):
        _login(client)
        transport.route("GET", "http://orders/orders/search/customerId", status=404)

        response = client.get("/orders")

        assert response.status_code == 201
        assert response.json() == []

    def test_create_order(self, client, transport, collector):
        _login(client)
        transport.route("GET", "http://user/customers/1", json_body=_customer())
        transport.route(
            "GET", "http://user/customers/1/addresses",
            json_body=_embedded("address", "http://user/addresses/a1"),
        )
        transport.route(
            "GET", "http://user/customers/1/cards",
            json_body=_embedded("card", "http://user/cards/c1"),
        )
        transport.route("POST", "http://orders/orders", status=201, json_body={"id": "o9"})

        response = client.post("/orders", headers=B3)

        assert response.status_code == 201
        assert response.json() == {"id": "o9"}
        submitted = transport.calls_to("http://orders/orders")[0].json
        assert submitted == {
            "customer": "http://user/customers/1",
            "address": "http://user/addresses/a1",
            "card": "http://user/cards/c1",
            "items": "http://carts/carts/1/items",
        }
        # one server span plus four client spans, all in one trace
        assert len(collector.by_trace(TRACE)) == 5

    def test_create_order_with_missing_card_still_submits(self, client, transport):
        _login(client)
        transport.route("GET", "http://user/customers/1", json_body=_customer())
        transport.route(
            "GET", "http://user/customers/1/addresses",
            json_body=_embedded("address", "http://user/addresses/a1"),
        )
        transport.route("GET", "http://user/customers/1/cards", status=500)
        transport.route("POST", "http://orders/orders", status=406, json_body={"message": "no card"})

        response = client.post("/orders")

        assert response.status_code == 406
        assert transport.calls_to("http://orders/orders")[0].json["card"] is None

    def test_create_order_customer_failure_aborts(self, client, transport):
        _login(client)
        transport.route("GET", "http://user/customers/1", status=500)

        response = client.post("/orders")

        assert response.status_code == 500
        body = response.json()
        assert body["error_code"] == "PLAN_ABORTED"
        assert body["step"] == "customer"
        assert transport.calls_to("http://orders/orders") == []

    def test_order_passthrough_streams(self, client, transport):
        _login(client)
        transport.route("GET", "http://orders/orders/o9", body=b'{"id": "o9", "total": 12.5}')

        response = client.get("/orders/o9")

        assert response.status_code == 200
        assert response.content == b'{"id": "o9", "total": 12.5}'


class TestCart:
    def test_add_item(self, client, transport):
        client.cookies.set("customer_id", "1")
        transport.route("GET", "http://catalogue/catalogue/sock-1", json_body={"id": "sock-1", "price": 7.99})
        transport.route("POST", "http://carts/carts/1/items", status=201)

        response = client.post("/cart", json={"id": "sock-1"})

        assert response.status_code == 201
        assert transport.calls_to("http://carts/carts/1/items")[0].json == {"itemId": "sock-1", "unitPrice": 7.99}

    def test_add_item_rejected(self, client, transport):
        client.cookies.set("customer_id", "1")
        transport.route("GET", "http://catalogue/catalogue/sock-1", json_body={"id": "sock-1", "price": 7.99})
        transport.route("POST", "http://carts/carts/1/items", status=200)

        response = client.post("/cart", json={"id": "sock-1"})

        assert response.status_code == 500
        assert "Unable to add to cart. Status code: 200" in response.json()["message"]

    def test_add_item_requires_id(self, client):
        client.cookies.set("customer_id", "1")
        assert client.post("/cart", json={}).status_code == 400

    def test_delete_item(self, client, transport):
        client.cookies.set("customer_id", "1")
        transport.route("DELETE", "http://carts/carts/1/items/sock-1", status=202)

        assert client.delete("/cart/sock-1").status_code == 202

    def test_delete_item_injected_error(self, client, transport, collector, monkeypatch):
        monkeypatch.setenv("FAULTS_ENABLED", "true")
        monkeypatch.setenv("FAULT_FE_ERROR_ENABLED", "true")
        client.cookies.set("customer_id", "1")
        transport.route("DELETE", "http://carts/carts/1/items/sock-1", status=202)

        response = client.delete("/cart/sock-1", headers={**B3, "X-Fault": "FE-ERR-01"})

        assert response.status_code == 500
        assert transport.calls == []
        client_span = collector.by_name("DELETE carts /carts/1/items/sock-1")[0]
        assert client_span.error is True
        assert client_span.context.trace_id == TRACE

    def test_delete_item_injected_crash(self, client, transport, monkeypatch):
        monkeypatch.setenv("FAULTS_ENABLED", "true")
        monkeypatch.setenv("FAULT_FE_TYPEERROR_ENABLED", "true")
        monkeypatch.setenv("FAULTS_FE_TYPEERROR_ALWAYS", "true")
        client.cookies.set("customer_id", "1")

        response = client.delete("/cart/sock-1")

        assert response.status_code == 500
        assert transport.calls == []

    def test_get_cart_is_not_fault_injected(self, client, transport, monkeypatch):
        monkeypatch.setenv("FAULTS_ENABLED", "true")
        monkeypatch.setenv("FAULT_FE_ERROR_ENABLED", "true")
        monkeypatch.setenv("FAULTS_FE_ERROR_ALWAYS", "true")
        client.cookies.set("customer_id", "1")
        transport.route("GET", "http://carts/carts/1/items", json_body=[])

        assert client.get("/cart").status_code == 200

    def test_update_item(self, client, transport):
        client.cookies.set("customer_id", "1")
        transport.route("GET", "http://catalogue/catalogue/sock-1", json_body={"id": "sock-1", "price": 7.99})
        transport.route("PATCH", "http://carts/carts/1/items", status=202)

        response = client.post("/cart/update", json={"id": "sock-1", "quantity": "3"})

        assert response.status_code == 202
        assert transport.calls_to("http://carts/carts/1/items")[0].json == {
            "itemId": "sock-1",
            "quantity": 3,
            "unitPrice": 7.99,
        }

    def test_update_item_rejected(self, client, transport):
        client.cookies.set("customer_id", "1")
        transport.route("GET", "http://catalogue/catalogue/sock-1", json_body={"id": "sock-1", "price": 7.99})
        transport.route("PATCH", "http://carts/carts/1/items", status=200)

        response = client.post("/cart/update", json={"id": "sock-1", "quantity": 3})

        assert response.status_code == 500
        assert "Unable to update cart. Status code: 200" in response.json()["message"]

    def test_update_item_requires_id_and_quantity(self, client, transport):
        client.cookies.set("customer_id", "1")

        assert client.post("/cart/update", json={"quantity": 3}).status_code == 400
        assert client.post("/cart/update", json={"id": "sock-1"}).status_code == 400
        assert client.post("/cart/update", json={"id": "sock-1", "quantity": "many"}).status_code == 400
        assert transport.calls == []


class TestUser:
    def test_login_sets_cookies_even_if_merge_fails(self, client, transport):
        transport.route("GET", "http://user/login", json_body={"user": {"id": "57"}})
        transport.route("GET", "http://carts/carts/57/merge", status=500)
        client.cookies.set("md.sid", "anon-1")

        response = client.get("/login", headers={"Authorization": "Basic dXNlcjpwYXNz"})

        assert response.status_code == 200
        assert response.json() == {"id": "57"}
        assert response.cookies.get("customer_id") == "57"
        assert response.cookies.get("logged_in") == "true"
        assert transport.calls[0].headers["Authorization"] == "Basic dXNlcjpwYXNz"
        assert transport.calls_to("http://carts/carts/57/merge")[0].params == {"sessionId": "anon-1"}

    def test_login_is_not_a_post(self, client, transport):
        transport.route("GET", "http://user/login", json_body={"user": {"id": "57"}})

        assert client.post("/login", headers={"Authorization": "Basic eDp5"}).status_code == 405
        assert transport.calls == []

    def test_login_rejected(self, client, transport):
        transport.route("GET", "http://user/login", status=401)

        response = client.get("/login", headers={"Authorization": "Basic bad"})

        assert response.status_code == 401
        assert transport.calls_to("http://carts/carts/57/merge") == []

    def test_register(self, client, transport):
        transport.route("POST", "http://user/register", json_body={"id": "58"})
        transport.route("GET", "http://carts/carts/58/merge", status=202)

        response = client.post("/register", json={"username": "ada", "password": "pw"})

        assert response.status_code == 200
        assert response.json() == {"id": "58"}
        assert transport.calls_to("http://user/register")[0].json == {"username": "ada", "password": "pw"}

    def test_register_error_body(self, client, transport):
        transport.route("POST", "http://user/register", json_body={"error": "username taken"})

        response = client.post("/register", json={"username": "ada"})

        assert response.status_code == 500
        assert "username taken" in response.json()["message"]

    def test_card_shows_last_four_digits(self, client, transport):
        client.cookies.set("customer_id", "1")
        transport.route(
            "GET", "http://user/customers/1/cards",
            json_body=_embedded("card", "http://user/cards/c1", longNum="4111111111111234"),
        )

        assert client.get("/card").json() == {"number": "1234"}

    def test_address(self, client, transport):
        client.cookies.set("customer_id", "1")
        transport.route(
            "GET", "http://user/customers/1/addresses",
            json_body=_embedded("address", "http://user/addresses/a1", street="Main"),
        )

        assert client.get("/address").json()["street"] == "Main"

    def test_customer_id_from_query(self, client, transport):
        transport.route("GET", "http://user/customers/9/addresses", json_body={})

        assert client.get("/address", params={"custId": "9"}).json() == {"status_code": 500}


class TestAccountPassthrough:
    def test_get_customer_uses_identified_customer(self, client, transport):
        client.cookies.set("customer_id", "1")
        transport.route("GET", "http://user/customers/1", json_body={"firstName": "Ada"})

        response = client.get("/customers/99")

        assert response.status_code == 200
        assert response.json() == {"firstName": "Ada"}
        assert transport.calls_to("http://user/customers/99") == []

    def test_collections_and_card_details(self, client, transport):
        transport.route("GET", "http://user/customers", json_body={"_embedded": {"customer": []}})
        transport.route("GET", "http://user/addresses", json_body={"_embedded": {"address": []}})
        transport.route("GET", "http://user/cards", json_body={"_embedded": {"card": []}})
        transport.route("GET", "http://user/cards/c1", json_body={"longNum": "4111"})

        assert client.get("/customers").json() == {"_embedded": {"customer": []}}
        assert client.get("/addresses").json() == {"_embedded": {"address": []}}
        assert client.get("/cards").json() == {"_embedded": {"card": []}}
        assert client.get("/cards/c1").json() == {"longNum": "4111"}

    def test_upstream_status_is_answered_as_200(self, client, transport):
        transport.route("GET", "http://user/cards/missing", status=404, json_body={"error": "not found"})

        response = client.get("/cards/missing")

        assert response.status_code == 200
        assert response.json() == {"error": "not found"}

    def test_create_address_adds_owner(self, client, transport):
        client.cookies.set("customer_id", "1")
        transport.route("POST", "http://user/addresses", json_body={"id": "a2"})

        response = client.post("/addresses", json={"street": "Main"})

        assert response.json() == {"id": "a2"}
        assert transport.calls[0].json == {"street": "Main", "userID": "1"}

    def test_create_card_adds_owner(self, client, transport):
        client.cookies.set("customer_id", "1")
        transport.route("POST", "http://user/cards", json_body={"id": "c2"})

        client.post("/cards", json={"longNum": "4111111111111234"})

        assert transport.calls[0].json == {"longNum": "4111111111111234", "userID": "1"}

    def test_create_address_requires_customer(self, client, transport):
        assert client.post("/addresses", json={"street": "Main"}).status_code == 401
        assert transport.calls == []

    def test_create_customer_is_not_owned(self, client, transport):
        transport.route("POST", "http://user/customers", json_body={"id": "58"})

        response = client.post("/customers", json={"username": "ada"})

        assert response.json() == {"id": "58"}
        assert transport.calls[0].json == {"username": "ada"}

    def test_create_rejects_non_object_body(self, client, transport):
        assert client.post("/customers", json=["ada"]).status_code == 400
        assert transport.calls == []

    def test_deletes(self, client, transport):
        for resource in ("customers", "addresses", "cards"):
            transport.route("DELETE", f"http://user/{resource}/x1", json_body={"status": True})

            response = client.delete(f"/{resource}/x1")

            assert response.status_code == 200
            assert response.json() == {"status": True}
        assert [c.method for c in transport.calls] == ["DELETE"] * 3


class TestCatalogue:
    def test_catalogue_relays_query(self, client, transport):
        transport.route("GET", "http://catalogue/catalogue", json_body=[{"id": "sock-1"}])

        response = client.get("/catalogue", params={"tags": "blue", "size": "5"})

        assert response.json() == [{"id": "sock-1"}]
        assert transport.calls[0].params == {"tags": "blue", "size": "5"}

    def test_item_relays_status(self, client, transport):
        transport.route("GET", "http://catalogue/catalogue/nope", status=404, json_body={"error": "not found"})

        response = client.get("/catalogue/nope")

        assert response.status_code == 404
        assert response.json() == {"error": "not found"}

    def test_image_stream(self, client, transport, collector):
        transport.route("GET", "http://catalogue/catalogue/images/sock.jpg", body=b"\xff\xd8JPEGDATA")

        response = client.get("/catalogue/images/sock.jpg")

        assert response.content == b"\xff\xd8JPEGDATA"
        span = collector.by_name("GET catalogue /catalogue/images/sock.jpg")[0]
        assert span.finished
        assert span.tags["http.status_code"] == 200

    def test_image_upstream_error(self, client, transport):
        transport.route(
            "GET", "http://catalogue/catalogue/images/gone.jpg",
            raises=UpstreamError("gone", status_code=404),
        )

        assert client.get("/catalogue/images/gone.jpg").status_code == 404
