"""Pytest configuration: an in-memory backend behind httpx.MockTransport."""
import json

import httpx
import pytest
import pytest_asyncio

from ECommerceAdmin.client import ApiClient
from ECommerceAdmin.models import SessionContext

BASE_URL = "http://backend.test/api"


class FakeBackend:
    """Routes ``(method, path)`` to canned responses and records every request.

    A route body may be a callable taking the ``httpx.Request``; unknown routes
    answer 404 the way the real backend does.
    """

    def __init__(self):
        self.routes = {}
        self.requests = []

    def add(self, method, path, json_body=None, status=200):
        self.routes[(method, path)] = (status, json_body)

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path[len("/api"):]
        route = self.routes.get((request.method, path))
        if route is None:
            return httpx.Response(404, json={"message": "Route not found"})
        status, body = route
        if callable(body):
            body = body(request)
        if body is None:
            return httpx.Response(status)
        return httpx.Response(status, json=body)

    @property
    def last(self) -> httpx.Request:
        return self.requests[-1]

    def body_of(self, request: httpx.Request):
        return json.loads(request.content) if request.content else None

    def calls(self, method, path):
        return [r for r in self.requests if r.method == method and r.url.path == "/api" + path]


@pytest.fixture
def backend():
    return FakeBackend()


@pytest.fixture
def session():
    return SessionContext(token="test-token", user={"name": "Admin"}, user_id="user-1")


@pytest_asyncio.fixture
async def client(backend, session):
    api = ApiClient(session=session, base_url=BASE_URL, transport=httpx.MockTransport(backend.handler))
    yield api
    await api.aclose()
