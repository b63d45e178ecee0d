"""Integration tests for the checkout hold endpoints."""

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from storefront.api.routes import reservation_router


@pytest.fixture()
def client():
    app = FastAPI()
    app.include_router(reservation_router)
    return TestClient(app)


@pytest.fixture()
def product_id(register_product):
    return register_product({"M": 5})


def _reserve(client, product_id, quantity, session_id="sess-a", **extra):
    return client.post(
        "/reservations",
        json={"product_id": product_id, "variant_key": "M", "quantity": quantity, "session_id": session_id, **extra},
    )


def _available(client, product_id, session_id):
    response = client.get(
        "/reservations/availability",
        params={"product_id": product_id, "variant_key": "M", "session_id": session_id},
    )
    return response.json()["available"]


class TestReservationAPI:
    def test_reserve_returns_201(self, client, product_id):
        response = _reserve(client, product_id, 2, ttl_minutes=10)
        assert response.status_code == 201
        assert response.json()["quantity"] == 2
        assert _available(client, product_id, "sess-b") == 3

    def test_over_reserve_returns_409(self, client, product_id):
        _reserve(client, product_id, 4)
        response = _reserve(client, product_id, 2, session_id="sess-b")
        assert response.status_code == 409
        assert response.json()["detail"]["available"] == 1

    def test_unknown_variant_returns_404(self, client, product_id):
        response = client.post(
            "/reservations",
            json={"product_id": product_id, "variant_key": "XL", "quantity": 1, "session_id": "s"},
        )
        assert response.status_code == 404

    def test_release(self, client, product_id):
        reservation_id = _reserve(client, product_id, 5).json()["reservation_id"]

        assert client.delete(f"/reservations/{reservation_id}").json() == {"status": "released"}
        assert client.delete(f"/reservations/{reservation_id}").json() == {"status": "not_found"}
        assert _available(client, product_id, "sess-b") == 5

    def test_sweep_leaves_live_holds(self, client, product_id):
        _reserve(client, product_id, 1)
        response = client.post("/reservations/sweep", json={"product_id": product_id})
        assert response.json() == {"removed": 0}
        assert _available(client, product_id, "sess-b") == 4
