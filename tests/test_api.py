"""HTTP surface: routing, payload validation and error mapping."""

import time
from uuid import uuid4

import pytest
from fastapi.testclient import TestClient

from bookstore.api.deps import get_deadline
from bookstore.main import app
from bookstore.services.orders import OrderService
from bookstore.store import MemoryStore


@pytest.fixture()
def client():
    app.state.store = MemoryStore()
    app.state.notifier = None
    yield TestClient(app)
    app.dependency_overrides.clear()
    app.state.store = None


def create_book(client, name="Dune", price=12.5, inventory=10):
    resp = client.post("/v1/books", json={"name": name, "price": price, "inventory": inventory})
    assert resp.status_code == 201
    return resp.json()


def create_order(client):
    resp = client.post("/v1/orders", json={"purchaser_id": str(uuid4())})
    assert resp.status_code == 201
    return resp.json()


def assert_error(resp, status_code, error_code):
    assert resp.status_code == status_code
    assert resp.json()["error_code"] == error_code
    assert resp.json()["error_message"]


class TestServiceEndpoints:
    def test_ping(self, client):
        resp = client.get("/ping")
        assert resp.status_code == 204
        assert resp.content == b""

    def test_health(self, client):
        assert client.get("/health").json() == {"status": "ok"}

    def test_info(self, client):
        assert client.get("/v1/_info").json()["service"] == "bookstore"

    def test_metrics(self, client):
        client.get("/health")
        assert client.get("/metrics").status_code == 200


class TestBooksEndpoints:
    def test_create_and_get(self, client):
        book = create_book(client)

        assert book["name"] == "Dune"
        assert book["price"] == 12.5
        assert book["inventory"] == 10
        assert book["archived"] is False

        resp = client.get(f"/v1/books/{book['id']}")
        assert resp.status_code == 200
        assert resp.json()["id"] == book["id"]

    def test_create_with_missing_fields(self, client):
        assert_error(client.post("/v1/books", json={"name": "Dune", "price": 1.0}), 400, 100)
        assert_error(client.post("/v1/books", json={"price": 1.0, "inventory": 1}), 400, 100)

    def test_create_with_price_out_of_range(self, client):
        assert_error(client.post("/v1/books", json={"name": "Dune", "price": 10000, "inventory": 1}), 400, 100)

    def test_create_with_sub_cent_price(self, client):
        assert_error(client.post("/v1/books", json={"name": "Dune", "price": "1.005", "inventory": 1}), 400, 100)
        assert client.get("/v1/books").json()["items_total"] == 0

    def test_malformed_body(self, client):
        resp = client.post("/v1/books", content=b"{not json", headers={"Content-Type": "application/json"})
        assert_error(resp, 400, 102)

    def test_wrong_field_type(self, client):
        assert_error(client.post("/v1/books", json={"name": "Dune", "price": "cheap", "inventory": 1}), 400, 102)

    def test_malformed_id(self, client):
        assert_error(client.get("/v1/books/not-a-uuid"), 400, 103)

    def test_unknown_book(self, client):
        assert_error(client.get(f"/v1/books/{uuid4()}"), 404, 101)

    def test_update_leaves_inventory(self, client):
        book = create_book(client, inventory=7)

        resp = client.put(f"/v1/books/{book['id']}", json={"name": "Dune II", "price": 20})

        assert resp.status_code == 200
        assert resp.json()["name"] == "Dune II"
        assert resp.json()["price"] == 20.0
        assert resp.json()["inventory"] == 7

    def test_archive(self, client):
        book = create_book(client)

        resp = client.delete(f"/v1/books/{book['id']}")

        assert resp.status_code == 200
        assert resp.json()["archived"] is True
        assert client.get("/v1/books").json()["items_total"] == 0
        assert client.get("/v1/books", params={"archived": "true"}).json()["items_total"] == 1


class TestListingEndpoint:
    def test_empty(self, client):
        assert client.get("/v1/books").json() == {
            "page_current": 0, "page_total": 0, "page_size": 0, "items_total": 0, "results": [],
        }

    def test_filter_sort_and_page(self, client):
        for name, price in [("alpha", 5), ("beta", 15), ("gamma", 25), ("delta", 35)]:
            create_book(client, name=name, price=price)

        resp = client.get("/v1/books", params={
            "min_price": "10", "sort_by": "price", "sort_direction": "desc", "page": "2", "page_size": "2",
        })

        assert resp.status_code == 200
        body = resp.json()
        assert body["page_current"] == 2
        assert body["page_total"] == 2
        assert body["items_total"] == 3
        assert [b["name"] for b in body["results"]] == ["beta"]

    @pytest.mark.parametrize("params,error_code", [
        ({"min_price": "abc"}, 104),
        ({"max_price": "10001"}, 104),
        ({"min_price": "-1"}, 104),
        ({"sort_by": "title"}, 105),
        ({"sort_direction": "up"}, 105),
        ({"page": "0"}, 106),
        ({"page": "one"}, 106),
        ({"page_size": "31"}, 106),
        ({"page_size": "0"}, 106),
    ])
    def test_invalid_query(self, client, params, error_code):
        assert_error(client.get("/v1/books", params=params), 400, error_code)

    def test_page_out_of_range(self, client):
        create_book(client)
        assert_error(client.get("/v1/books", params={"page": "2"}), 400, 107)


class TestOrdersEndpoints:
    def test_create_order(self, client):
        order = create_order(client)

        assert order["status"] == "accepting_items"
        assert order["total_price"] == 0
        assert order["items"] == []

    def test_create_order_without_purchaser(self, client):
        assert_error(client.post("/v1/orders", json={}), 400, 117)

    def test_add_units(self, client):
        book = create_book(client, price=12.5, inventory=10)
        order = create_order(client)

        resp = client.put(f"/v1/orders/{order['order_id']}/items",
                          json={"book_id": book["id"], "book_units_to_add": 3})

        assert resp.status_code == 200
        assert resp.json()["book_units"] == 3
        assert resp.json()["unit_price_at_order"] == 12.5
        assert client.get(f"/v1/books/{book['id']}").json()["inventory"] == 7

        stored = client.get(f"/v1/orders/{order['order_id']}").json()
        assert stored["total_price"] == 37.5
        assert [i["book_id"] for i in stored["items"]] == [book["id"]]

    def test_remove_all_units(self, client):
        book = create_book(client, inventory=10)
        order = create_order(client)
        url = f"/v1/orders/{order['order_id']}/items"
        client.put(url, json={"book_id": book["id"], "book_units_to_add": 2})

        resp = client.put(url, json={"book_id": book["id"], "book_units_to_add": -2})

        assert resp.status_code == 200
        assert resp.json()["book_units"] == 0
        assert client.get(f"/v1/orders/{order['order_id']}").json()["items"] == []

    def test_blank_update(self, client):
        order = create_order(client)
        url = f"/v1/orders/{order['order_id']}/items"

        assert_error(client.put(url, json={"book_units_to_add": 1}), 400, 116)
        assert_error(client.put(url, json={"book_id": str(uuid4()), "book_units_to_add": 0}), 400, 116)

    def test_business_rule_errors(self, client):
        book = create_book(client, inventory=1)
        order = create_order(client)
        url = f"/v1/orders/{order['order_id']}/items"

        assert_error(client.put(url, json={"book_id": book["id"], "book_units_to_add": 2}), 400, 113)
        assert_error(client.put(url, json={"book_id": book["id"], "book_units_to_add": -1}), 400, 114)
        assert_error(client.put(url, json={"book_id": str(uuid4()), "book_units_to_add": 1}), 404, 101)

        client.delete(f"/v1/books/{book['id']}")
        assert_error(client.put(url, json={"book_id": book["id"], "book_units_to_add": 1}), 400, 112)

    def test_unknown_order(self, client):
        book = create_book(client)
        resp = client.put(f"/v1/orders/{uuid4()}/items", json={"book_id": book["id"], "book_units_to_add": 1})
        assert_error(resp, 404, 110)
        assert_error(client.get(f"/v1/orders/{uuid4()}"), 404, 110)

    def test_submitted_order_rejects_changes(self, client):
        book = create_book(client)
        order = create_order(client)

        resp = client.post(f"/v1/orders/{order['order_id']}/submit")
        assert resp.status_code == 200
        assert resp.json()["status"] == "submitted"

        resp = client.put(f"/v1/orders/{order['order_id']}/items",
                          json={"book_id": book["id"], "book_units_to_add": 1})
        assert_error(resp, 400, 111)
        assert_error(client.post(f"/v1/orders/{order['order_id']}/submit"), 400, 111)


class TestFailureMapping:
    def test_deadline_exceeded(self, client):
        book = create_book(client)
        order = create_order(client)
        app.dependency_overrides[get_deadline] = lambda: time.monotonic() - 1

        resp = client.put(f"/v1/orders/{order['order_id']}/items",
                          json={"book_id": book["id"], "book_units_to_add": 1})

        assert_error(resp, 504, 109)

    def test_unexpected_error(self, client, monkeypatch):
        def explode(self, order_id, deadline=None):
            raise RuntimeError("unexpected")

        monkeypatch.setattr(OrderService, "get_order", explode)
        resp = TestClient(app, raise_server_exceptions=False).get(f"/v1/orders/{uuid4()}")

        assert_error(resp, 500, 108)
