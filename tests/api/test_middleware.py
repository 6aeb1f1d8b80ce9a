"""Tests for RequestIDMiddleware."""

from uuid import UUID

import pytest
from fastapi import FastAPI, Request
from starlette.testclient import TestClient

from api.middleware import RequestIDMiddleware


@pytest.fixture
def client():
    """App that echoes request.state.request_id."""
    app = FastAPI()
    app.add_middleware(RequestIDMiddleware)

    @app.get("/echo")
    async def echo(request: Request):
        return {"request_id": request.state.request_id}

    return TestClient(app)


class TestGeneratedIds:
    """No incoming header: a fresh UUID per request."""

    def test_header_matches_request_state(self, client):
        response = client.get("/echo")

        request_id = response.headers["X-Request-ID"]
        UUID(request_id)
        assert response.json() == {"request_id": request_id}

    def test_ids_differ_between_requests(self, client):
        ids = {client.get("/echo").headers["X-Request-ID"] for _ in range(3)}

        assert len(ids) == 3


class TestIncomingIds:
    """Caller-supplied IDs are propagated for tracing across services."""

    def test_incoming_id_reused(self, client):
        response = client.get("/echo", headers={"X-Request-ID": "trace-123"})

        assert response.headers["X-Request-ID"] == "trace-123"
        assert response.json()["request_id"] == "trace-123"

    def test_empty_incoming_id_replaced(self, client):
        response = client.get("/echo", headers={"X-Request-ID": ""})

        UUID(response.headers["X-Request-ID"])
