"""Tests for AccountApiClient — login/logout and snapshot helpers."""

from __future__ import annotations

import httpx
import pytest

from livesync.auth.client import AccountApiClient
from livesync.auth.coordinator import CredentialRefreshCoordinator
from livesync.common.exceptions import ApiConnectionError, ApiRequestError

LOGIN_RESPONSE = {
    "user": {"userId": "u-9", "email": "new@example.com", "role": "USER"},
    "tokens": {"accessToken": "access-login", "refreshToken": "refresh-login"},
}


@pytest.fixture
def api(coordinator: CredentialRefreshCoordinator) -> AccountApiClient:
    return AccountApiClient(coordinator)


class TestLogin:
    """Login stores the returned session."""

    @pytest.mark.asyncio
    async def test_success_stores_session(self, api, fake_api, store) -> None:
        fake_api.routes[("POST", "/auth/login")] = httpx.Response(200, json=LOGIN_RESPONSE)

        session = await api.login("new@example.com", "hunter2")

        assert session is not None
        assert session.user.user_id == "u-9"
        assert await store.get_access_token() == "access-login"
        assert await store.get_refresh_token() == "refresh-login"

    @pytest.mark.asyncio
    async def test_sends_two_factor_code(self, api, fake_api) -> None:
        fake_api.routes[("POST", "/auth/login")] = httpx.Response(200, json=LOGIN_RESPONSE)

        await api.login("new@example.com", "hunter2", two_factor_code="123456")

        body = fake_api.requests[0].content
        assert b'"twoFactorCode": "123456"' in body

    @pytest.mark.asyncio
    async def test_rejected_returns_none(self, api, fake_api, store) -> None:
        fake_api.routes[("POST", "/auth/login")] = httpx.Response(
            401, json={"message": "Invalid credentials"}
        )

        assert await api.login("a@b.c", "wrong") is None
        # Login 401 never triggers a refresh and leaves the old session alone
        assert fake_api.refresh_calls == 0
        assert await store.get_access_token() == "access-old"

    @pytest.mark.asyncio
    async def test_server_error_raises(self, api, fake_api) -> None:
        fake_api.routes[("POST", "/auth/login")] = httpx.Response(
            503, json={"message": ["Service", "unavailable"]}
        )

        with pytest.raises(ApiRequestError) as exc_info:
            await api.login("a@b.c", "pw")

        assert exc_info.value.context["status"] == 503
        assert "Service; unavailable" in str(exc_info.value)

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "response",
        [
            httpx.Response(200, text="<html>maintenance</html>"),
            httpx.Response(200, json={"user": {}, "tokens": {"accessToken": ["a"]}}),
        ],
    )
    async def test_unusable_success_body_raises(self, api, fake_api, store, response) -> None:
        fake_api.routes[("POST", "/auth/login")] = response

        with pytest.raises(ApiRequestError) as exc_info:
            await api.login("a@b.c", "pw")

        assert exc_info.value.context == {"path": "/auth/login", "status": 200}
        assert await store.get_access_token() == "access-old"


class TestLogout:
    """Logout always clears the local session."""

    @pytest.mark.asyncio
    async def test_posts_refresh_token_and_clears(self, api, fake_api, store) -> None:
        fake_api.routes[("POST", "/auth/logout")] = httpx.Response(204)

        await api.logout()

        request = fake_api.requests[0]
        assert request.url.path == "/v1/auth/logout"
        assert request.content == b'{"refreshToken": "refresh-old"}'
        assert await store.get_session() is None

    @pytest.mark.asyncio
    async def test_clears_even_when_server_unreachable(self, store) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("down", request=request)

        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        api = AccountApiClient(
            CredentialRefreshCoordinator(store, base_url="http://api.test/v1", client=client)
        )

        with pytest.raises(ApiConnectionError):
            await api.logout()

        assert await store.get_session() is None
        await client.aclose()

    @pytest.mark.asyncio
    async def test_signed_out_skips_server_call(self, empty_store, fake_api) -> None:
        client = httpx.AsyncClient(transport=httpx.MockTransport(fake_api.handler))
        api = AccountApiClient(
            CredentialRefreshCoordinator(empty_store, base_url="http://api.test/v1", client=client)
        )

        await api.logout()

        assert fake_api.requests == []
        await client.aclose()


class TestSnapshots:
    """Authenticated JSON helpers."""

    @pytest.mark.asyncio
    async def test_get_balances_after_refresh(self, api, fake_api) -> None:
        balances = await api.get_balances()
        assert balances == [{"asset": "USDT", "available": "100.00"}]
        assert fake_api.refresh_calls == 1

    @pytest.mark.asyncio
    async def test_get_balances_non_list_is_empty(self, api, fake_api) -> None:
        fake_api.protected_body = {"unexpected": True}
        assert await api.get_balances() == []

    @pytest.mark.asyncio
    async def test_list_orders_drops_none_filters(self, api, fake_api) -> None:
        fake_api.valid_token = "access-old"
        fake_api.protected_body = {"items": [], "total": 0}

        result = await api.list_orders(status="OPEN", symbol=None, limit=20)

        assert result == {"items": [], "total": 0}
        params = fake_api.requests[0].url.params
        assert params["status"] == "OPEN"
        assert params["limit"] == "20"
        assert "symbol" not in params

    @pytest.mark.asyncio
    async def test_get_json_raises_on_final_error(self, api, fake_api) -> None:
        fake_api.refresh_status = 500

        with pytest.raises(ApiRequestError) as exc_info:
            await api.get_json("/wallet/balances")

        assert exc_info.value.context == {"path": "/wallet/balances", "status": 401}

    @pytest.mark.asyncio
    async def test_get_json_non_json_body_raises(self, api, fake_api) -> None:
        """A 200 from a proxy error page surfaces as an API error, not a decode crash."""
        fake_api.routes[("GET", "/wallet/balances")] = httpx.Response(
            200, text="<html>Bad gateway</html>", headers={"Content-Type": "text/html"}
        )

        with pytest.raises(ApiRequestError) as exc_info:
            await api.get_json("/wallet/balances")

        assert exc_info.value.context == {"path": "/wallet/balances", "status": 200}
