"""Credential refresh coordinator — authenticated requests with single-flight refresh.

Every request gets `Authorization: Bearer <access token>` from the session
store (when signed in) and a JSON `Content-Type` when it carries a body and
the caller set none. On a 401 from anything other than the login, refresh or
registration endpoints, the coordinator refreshes the access token and
retries the request exactly once.

Single-flight: at most one refresh runs per coordinator at any time. The
first 401 starts it; every caller that hits a 401 while it is running awaits
the same task and gets the same new token. The task clears its own handle
before publishing its result, so a 401 that arrives after a refresh has
settled always starts a fresh one instead of reusing a stale token.

Refresh failure (no stored refresh token, endpoint unreachable, non-2xx, no
`tokens.accessToken` in the body, malformed credentials, or a session that
was cleared while the refresh ran) clears the session, and every waiting
caller gets its original 401 response back unchanged.

Usage:
    from livesync.auth.coordinator import CredentialRefreshCoordinator
    from livesync.session import SessionStore

    coordinator = CredentialRefreshCoordinator(SessionStore(backend))
    response = await coordinator.request("GET", "/wallet/balances")
    await coordinator.aclose()
"""

from __future__ import annotations

import asyncio
import json
from typing import Any

import httpx
from pydantic import ValidationError

from livesync.common.config import get_settings
from livesync.common.exceptions import ApiConnectionError, AuthRefreshError
from livesync.common.logging import get_logger
from livesync.common.metrics import LIVESYNC_AUTH_REFRESH_TOTAL
from livesync.session.store import SessionStore

logger = get_logger("AUTH")

# Requests to these endpoints never trigger refresh-on-401 (prevents refresh loops).
REFRESH_EXCLUDED_PATHS = ("/auth/login", "/auth/refresh", "/auth/register")

JSON_CONTENT_TYPE = "application/json"


def is_refresh_excluded(url: str) -> bool:
    """True if a 401 from this URL must be returned as-is."""
    return any(path in url for path in REFRESH_EXCLUDED_PATHS)


class CredentialRefreshCoordinator:
    """Wraps authenticated HTTP requests with 401 recovery.

    Args:
        store: SessionStore holding the credential pair.
        base_url: API base URL; defaults to settings.api_base_url.
        client: Optional httpx.AsyncClient to borrow (closed only if owned).
        refresh_path: Path of the token refresh endpoint.
    """

    def __init__(
        self,
        store: SessionStore,
        *,
        base_url: str | None = None,
        client: httpx.AsyncClient | None = None,
        refresh_path: str = "/auth/refresh",
    ) -> None:
        settings = get_settings()
        self.store = store
        self.base_url = (base_url or settings.api_base_url).rstrip("/")
        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(timeout=settings.request_timeout_seconds)
        self.refresh_path = refresh_path
        self._refresh_task: asyncio.Task[str | None] | None = None

    @property
    def refresh_in_flight(self) -> bool:
        return self._refresh_task is not None

    def build_url(self, path: str) -> str:
        if path.startswith(("http://", "https://")):
            return path
        return f"{self.base_url}{path}"

    # ─── Authenticated requests ───

    async def request(
        self,
        method: str,
        path: str,
        *,
        json_data: Any = None,
        content: str | bytes | None = None,
        data: dict[str, Any] | None = None,
        params: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ) -> httpx.Response:
        """Send an authenticated request, refreshing the token once on 401.

        Args:
            method: HTTP method.
            path: Path relative to base_url (or an absolute URL).
            json_data: JSON-serializable body.
            content: Raw body; defaults to a JSON content type.
            data: Form body; sent with the client's form encoding.
            params: Query parameters.
            headers: Extra headers; a caller-supplied Content-Type wins.

        Returns:
            The final response. A 401 is returned unchanged when recovery is
            not possible or the retry fails again.

        Raises:
            ApiConnectionError: Network failure or timeout.
        """
        url = self.build_url(path)
        base_headers = httpx.Headers(headers or {})

        if json_data is not None:
            content = json.dumps(json_data)
        if content is not None and "content-type" not in base_headers:
            base_headers["Content-Type"] = JSON_CONTENT_TYPE

        request_headers = httpx.Headers(base_headers)
        access_token = await self.store.get_access_token()
        if access_token:
            request_headers["Authorization"] = f"Bearer {access_token}"

        response = await self._send(
            method, url, headers=request_headers, content=content, data=data, params=params
        )

        if response.status_code != 401 or is_refresh_excluded(url):
            return response

        refreshed_token = await self.refresh_access_token()
        if not refreshed_token:
            return response

        retry_headers = httpx.Headers(base_headers)
        retry_headers["Authorization"] = f"Bearer {refreshed_token}"
        logger.info(
            "Retrying request with refreshed token",
            extra={"data": {"method": method, "url": url}},
        )
        return await self._send(
            method, url, headers=retry_headers, content=content, data=data, params=params
        )

    async def _send(
        self,
        method: str,
        url: str,
        *,
        headers: httpx.Headers,
        content: str | bytes | None,
        data: dict[str, Any] | None,
        params: dict[str, Any] | None,
    ) -> httpx.Response:
        try:
            return await self.client.request(
                method,
                url,
                headers=headers,
                content=content,
                data=data,
                params=params,
            )
        except httpx.RequestError as exc:
            raise ApiConnectionError(
                f"Network error: {exc}",
                context={"url": url, "method": method},
            ) from exc

    # ─── Single-flight refresh ───

    async def refresh_access_token(self) -> str | None:
        """Join the in-flight refresh or start a new one.

        Returns:
            The new access token, or None if the refresh failed (in which
            case the session has been cleared).
        """
        task = self._refresh_task
        if task is None:
            task = asyncio.ensure_future(self._run_refresh())
            self._refresh_task = task
        else:
            logger.debug("Joining in-flight token refresh")
        # Shielded: a cancelled waiter must not abort the shared refresh.
        return await asyncio.shield(task)

    async def _run_refresh(self) -> str | None:
        try:
            return await self._attempt_refresh()
        finally:
            self._refresh_task = None

    async def _attempt_refresh(self) -> str | None:
        try:
            access_token = await self._perform_refresh()
        except AuthRefreshError as exc:
            LIVESYNC_AUTH_REFRESH_TOTAL.labels(outcome="failure").inc()
            logger.warning(
                "Token refresh failed, clearing session",
                extra={"data": {"error": str(exc)}},
            )
            await self.store.clear_session()
            return None

        LIVESYNC_AUTH_REFRESH_TOTAL.labels(outcome="success").inc()
        logger.info("Access token refreshed")
        return access_token

    async def _perform_refresh(self) -> str:
        """Call the refresh endpoint and persist the merged credential pair.

        Raises:
            AuthRefreshError: On any failure; the caller clears the session.
        """
        refresh_token = await self.store.get_refresh_token()
        if not refresh_token:
            raise AuthRefreshError("No refresh token stored")

        url = self.build_url(self.refresh_path)
        try:
            response = await self.client.post(
                url,
                json={"refreshToken": refresh_token},
                headers={"Content-Type": JSON_CONTENT_TYPE},
            )
        except httpx.RequestError as exc:
            raise AuthRefreshError(
                f"Network error: {exc}",
                context={"path": self.refresh_path},
            ) from exc

        if not response.is_success:
            raise AuthRefreshError(
                "Refresh rejected",
                context={"path": self.refresh_path, "status": response.status_code},
            )

        try:
            payload = response.json()
        except ValueError as exc:
            raise AuthRefreshError(
                "Refresh response is not JSON",
                context={"path": self.refresh_path},
            ) from exc

        tokens = payload.get("tokens") if isinstance(payload, dict) else None
        if not isinstance(tokens, dict) or not tokens.get("accessToken"):
            raise AuthRefreshError(
                "Refresh response has no access token",
                context={"path": self.refresh_path},
            )

        user = payload.get("user")
        try:
            updated = await self.store.update_tokens(
                tokens, user=user if isinstance(user, dict) else None
            )
        except ValidationError as exc:
            raise AuthRefreshError(
                "Refresh response has malformed credentials",
                context={"path": self.refresh_path, "errors": exc.error_count()},
            ) from exc
        if updated is None:
            raise AuthRefreshError(
                "Session was cleared while the refresh was in flight",
                context={"path": self.refresh_path},
            )
        return updated.tokens.access_token

    # ─── Lifecycle ───

    async def aclose(self) -> None:
        """Close the underlying HTTP client if this coordinator owns it."""
        if self._owns_client:
            await self.client.aclose()
