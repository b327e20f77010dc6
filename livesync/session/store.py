"""Session store — the single owner of the persisted credential pair.

Wraps a SessionBackend with validation, serialized writes, field-level token
merging, and optional change notification. The refresh coordinator, the
account client (login/logout) and stream header factories all go through
this class; nothing else mutates the session.

Writes are serialized by an asyncio.Lock and each write replaces the stored
session as a whole, so a reader sees either the previous or the next session,
never a mix. Models are frozen, so a session returned by get_session() can be
shared freely.

Usage:
    from livesync.session import SessionStore, FileSessionBackend

    store = SessionStore(FileSessionBackend("~/.livesync/session.json"))
    unsubscribe = store.subscribe(lambda session: print("changed", session))
    await store.set_session({"tokens": {"accessToken": "a", "refreshToken": "r"}})
    token = await store.get_access_token()
"""

from __future__ import annotations

import asyncio
import inspect
from collections.abc import Awaitable, Callable
from typing import Any

from pydantic import ValidationError

from livesync.common.logging import get_logger
from livesync.common.metrics import LIVESYNC_SESSION_WRITES_TOTAL
from livesync.session.backends import MemorySessionBackend, SessionBackend
from livesync.session.models import AuthSession, CredentialPair, SessionUser

logger = get_logger("SESSION")

SessionChangeHandler = Callable[[AuthSession | None], Awaitable[None] | None]


class SessionStore:
    """Durable credential storage with a narrow read/write/clear interface.

    Args:
        backend: Storage capability. Defaults to an in-memory backend.
    """

    def __init__(self, backend: SessionBackend | None = None) -> None:
        self.backend = backend if backend is not None else MemorySessionBackend()
        self._lock = asyncio.Lock()
        self._handlers: list[SessionChangeHandler] = []

    # ─── Reads ───

    async def get_session(self) -> AuthSession | None:
        """Return the stored session, or None when signed out or unreadable."""
        data = await self.backend.read_session()
        if data is None:
            return None
        try:
            return AuthSession.model_validate(data)
        except ValidationError:
            logger.warning("Stored session failed validation, treating as signed out")
            return None

    async def get_access_token(self) -> str | None:
        session = await self.get_session()
        return session.tokens.access_token if session else None

    async def get_refresh_token(self) -> str | None:
        session = await self.get_session()
        return session.tokens.refresh_token if session else None

    async def is_authenticated(self) -> bool:
        return bool(await self.get_access_token())

    # ─── Writes ───

    async def set_session(self, session: AuthSession | dict[str, Any] | None) -> None:
        """Replace the stored session. None clears it."""
        if session is None:
            await self.clear_session()
            return
        if not isinstance(session, AuthSession):
            session = AuthSession.model_validate(session)

        async with self._lock:
            await self.backend.write_session(session.to_wire())
        LIVESYNC_SESSION_WRITES_TOTAL.labels(operation="set").inc()
        logger.debug(
            "Session stored",
            extra={"data": {"authenticated": session.is_authenticated}},
        )
        await self._notify(session)

    async def clear_session(self) -> None:
        async with self._lock:
            await self.backend.write_session(None)
        LIVESYNC_SESSION_WRITES_TOTAL.labels(operation="clear").inc()
        logger.info("Session cleared")
        await self._notify(None)

    async def update_tokens(
        self,
        tokens: CredentialPair | dict[str, Any],
        user: SessionUser | dict[str, Any] | None = None,
    ) -> AuthSession | None:
        """Merge new token fields into the stored pair and persist the result.

        Returned fields overwrite, omitted fields are preserved from the
        prior pair. The stored user is kept unless a new one is given.
        Nothing is written when no session is stored: a refresh that settles
        after logout must not sign the user back in.

        Returns:
            The session as persisted, or None if there was no session to update.

        Raises:
            pydantic.ValidationError: `tokens` or `user` is malformed.
        """
        if isinstance(tokens, CredentialPair):
            tokens = tokens.to_wire()
        if isinstance(user, dict):
            user = SessionUser.model_validate(user)

        async with self._lock:
            current = await self.get_session()
            if current is None:
                logger.info("No session to update, token update dropped")
                return None
            updated = AuthSession(
                user=user if user is not None else current.user,
                tokens=current.tokens.merged_with(tokens),
            )
            await self.backend.write_session(updated.to_wire())

        LIVESYNC_SESSION_WRITES_TOTAL.labels(operation="set").inc()
        logger.debug("Session tokens updated", extra={"data": {"fields": sorted(tokens)}})
        await self._notify(updated)
        return updated

    # ─── Change notification ───

    def subscribe(self, handler: SessionChangeHandler) -> Callable[[], None]:
        """Register a change handler. Returns a callable that unsubscribes it.

        Handlers only fire when the backend broadcasts; on other backends
        subscribing is a harmless no-op.
        """
        self._handlers.append(handler)

        def unsubscribe() -> None:
            if handler in self._handlers:
                self._handlers.remove(handler)

        return unsubscribe

    async def _notify(self, session: AuthSession | None) -> None:
        if not getattr(self.backend, "broadcasts", False):
            return
        for handler in list(self._handlers):
            try:
                result = handler(session)
                if inspect.isawaitable(result):
                    await result
            except Exception as exc:
                logger.warning(
                    "Session change handler failed",
                    extra={"data": {"error": str(exc)}},
                )
