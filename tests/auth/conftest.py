"""Auth test fixtures — a scripted account API behind httpx.MockTransport."""

from __future__ import annotations

import asyncio
import json

import httpx
import pytest
import pytest_asyncio

from livesync.auth.coordinator import CredentialRefreshCoordinator
from livesync.session.store import SessionStore

BASE_URL = "http://api.test/v1"


class FakeAccountApi:
    """Minimal account server.

    - POST /auth/refresh answers with `refresh_status` / `refresh_body` after
      `refresh_delay` seconds (so concurrent 401s overlap the refresh).
    - Every other path returns `protected_body` when the bearer token equals
      `valid_token`, else 401.
    - `routes` pins a canned response for an exact (method, path).
    """

    def __init__(self) -> None:
        self.valid_token = "access-new"
        self.refresh_status = 200
        self.refresh_body: object = {"tokens": {"accessToken": "access-new"}}
        self.refresh_delay = 0.05
        self.refresh_error: Exception | None = None
        self.protected_body: object = [{"asset": "USDT", "available": "100.00"}]
        self.refresh_calls = 0
        self.refresh_payloads: list[dict] = []
        self.requests: list[httpx.Request] = []
        self.routes: dict[tuple[str, str], httpx.Response] = {}

    async def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path.removeprefix("/v1")

        if (request.method, path) in self.routes:
            return self.routes[(request.method, path)]

        if path == "/auth/refresh":
            self.refresh_calls += 1
            self.refresh_payloads.append(json.loads(request.content))
            await asyncio.sleep(self.refresh_delay)
            if self.refresh_error is not None:
                raise self.refresh_error
            return httpx.Response(self.refresh_status, json=self.refresh_body)

        if request.headers.get("authorization") == f"Bearer {self.valid_token}":
            return httpx.Response(200, json=self.protected_body)
        return httpx.Response(401, json={"message": "Unauthorized"})

    def protected_requests(self, path: str) -> list[httpx.Request]:
        return [r for r in self.requests if r.url.path == f"/v1{path}"]


@pytest.fixture
def fake_api() -> FakeAccountApi:
    return FakeAccountApi()


@pytest_asyncio.fixture
async def coordinator(store: SessionStore, fake_api: FakeAccountApi):
    """Coordinator over the seeded store, talking to the fake API."""
    client = httpx.AsyncClient(transport=httpx.MockTransport(fake_api.handler))
    coord = CredentialRefreshCoordinator(store, base_url=BASE_URL, client=client)
    yield coord
    await client.aclose()
