"""Account API client — login/logout and the account snapshots the feeds poll.

Thin typed layer over CredentialRefreshCoordinator. Login and logout are the
only session writers besides the refresh coordinator itself.

Usage:
    from livesync.auth.client import AccountApiClient

    api = AccountApiClient(coordinator)
    session = await api.login("trader@example.com", "hunter2")
    balances = await api.get_balances()
    await api.logout()
"""

from __future__ import annotations

from typing import Any

import httpx

from livesync.auth.coordinator import CredentialRefreshCoordinator
from livesync.common.exceptions import ApiRequestError
from livesync.common.logging import get_logger
from livesync.session.models import AuthSession
from livesync.session.store import SessionStore

logger = get_logger("AUTH")


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return f"API error {response.status_code}"
    if isinstance(body, dict):
        message = body.get("message")
        if isinstance(message, list):
            return "; ".join(str(m) for m in message)
        if message:
            return str(message)
    return f"API error {response.status_code}"


class AccountApiClient:
    """Authenticated account operations.

    Args:
        coordinator: The refresh coordinator all requests go through.
    """

    def __init__(self, coordinator: CredentialRefreshCoordinator) -> None:
        self.coordinator = coordinator

    @property
    def store(self) -> SessionStore:
        return self.coordinator.store

    # ─── Session lifecycle ───

    async def login(
        self,
        email: str,
        password: str,
        two_factor_code: str | None = None,
    ) -> AuthSession | None:
        """Log in and persist the returned session.

        Returns:
            The stored session, or None if the server rejected the credentials.

        Raises:
            ApiRequestError: Server error (5xx).
        """
        body: dict[str, Any] = {"email": email, "password": password}
        if two_factor_code:
            body["twoFactorCode"] = two_factor_code

        response = await self.coordinator.request("POST", "/auth/login", json_data=body)
        if response.status_code >= 500:
            raise ApiRequestError(
                _error_message(response),
                context={"path": "/auth/login", "status": response.status_code},
            )
        if not response.is_success:
            logger.warning(
                "Login rejected",
                extra={"data": {"status": response.status_code}},
            )
            return None

        try:
            session = AuthSession.model_validate(response.json())
        except ValueError as exc:
            raise ApiRequestError(
                "Login response is not a valid session",
                context={"path": "/auth/login", "status": response.status_code},
            ) from exc
        await self.store.set_session(session)
        logger.info(
            "Logged in",
            extra={"data": {"role": session.user.role if session.user else None}},
        )
        return session

    async def logout(self) -> None:
        """Revoke the refresh token server-side (when present) and clear the session.

        The local session is cleared even if the server call fails.
        """
        refresh_token = await self.store.get_refresh_token()
        try:
            if refresh_token:
                await self.coordinator.request(
                    "POST",
                    "/auth/logout",
                    json_data={"refreshToken": refresh_token},
                )
        finally:
            await self.store.clear_session()
            logger.info("Logged out")

    # ─── Account snapshots ───

    async def get_json(self, path: str, params: dict[str, Any] | None = None) -> Any:
        """GET an authenticated JSON resource.

        Raises:
            ApiRequestError: Any non-2xx final response, or a body that is not JSON.
        """
        response = await self.coordinator.request("GET", path, params=params)
        if not response.is_success:
            raise ApiRequestError(
                _error_message(response),
                context={"path": path, "status": response.status_code},
            )
        try:
            return response.json()
        except ValueError as exc:
            raise ApiRequestError(
                "Response is not JSON",
                context={"path": path, "status": response.status_code},
            ) from exc

    async def get_balances(self) -> list[dict[str, Any]]:
        data = await self.get_json("/wallet/balances")
        return data if isinstance(data, list) else []

    async def list_orders(self, **filters: Any) -> Any:
        """List orders; keyword filters become query parameters (None values dropped)."""
        params = {k: v for k, v in filters.items() if v is not None}
        return await self.get_json("/orders", params=params or None)
