"""Storage backends for the session store.

A backend is the narrow, platform-specific capability behind SessionStore:
read the serialized session, write it (None clears), and say whether writes
should be broadcast to change listeners.

- MemorySessionBackend: process memory; broadcasts.
- FileSessionBackend: plain JSON file, atomic replace; broadcasts (the
  browser-storage flavour, where other open contexts get notified).
- SecureFileSessionBackend: Fernet-encrypted file; no broadcast (the
  on-device secure-storage flavour).

Unreadable or corrupt stored data reads as "no session", never as an error.
"""

from __future__ import annotations

import asyncio
import json
import os
import tempfile
from pathlib import Path
from typing import Any, Protocol, runtime_checkable

from cryptography.fernet import InvalidToken

from livesync.common.config import get_settings
from livesync.common.encryption import decrypt_text, encrypt_text
from livesync.common.exceptions import SessionStorageError
from livesync.common.logging import get_logger

logger = get_logger("SESSION")


@runtime_checkable
class SessionBackend(Protocol):
    """Capability interface every session backend implements."""

    broadcasts: bool

    async def read_session(self) -> dict[str, Any] | None: ...

    async def write_session(self, data: dict[str, Any] | None) -> None: ...


class MemorySessionBackend:
    """Keeps the serialized session in memory. Useful for tests and short-lived tools."""

    broadcasts = True

    def __init__(self, initial: dict[str, Any] | None = None) -> None:
        self._data = json.loads(json.dumps(initial)) if initial is not None else None

    async def read_session(self) -> dict[str, Any] | None:
        if self._data is None:
            return None
        return json.loads(json.dumps(self._data))

    async def write_session(self, data: dict[str, Any] | None) -> None:
        self._data = json.loads(json.dumps(data)) if data is not None else None


class FileSessionBackend:
    """Persists the session as JSON in a single file.

    Writes go to a temporary file in the same directory followed by
    os.replace, so a concurrent reader sees either the old or the new file.

    Args:
        path: File path. Defaults to settings.session_file.
    """

    broadcasts = True

    def __init__(self, path: str | os.PathLike[str] | None = None) -> None:
        path = path or get_settings().session_file
        if not path:
            raise ValueError("A session file path is required (argument or SESSION_FILE)")
        self.path = Path(path)

    async def read_session(self) -> dict[str, Any] | None:
        raw = await asyncio.to_thread(self._read_text)
        if raw is None:
            return None
        try:
            text = self._decode(raw)
            data = json.loads(text)
        except (InvalidToken, ValueError):
            logger.warning(
                "Stored session is unreadable, treating as signed out",
                extra={"data": {"path": str(self.path)}},
            )
            return None
        if not isinstance(data, dict):
            return None
        return data

    async def write_session(self, data: dict[str, Any] | None) -> None:
        if data is None:
            await asyncio.to_thread(self._remove)
            return
        payload = self._encode(json.dumps(data))
        await asyncio.to_thread(self._write_text, payload)

    # ─── Encoding hooks ───

    def _encode(self, text: str) -> str:
        return text

    def _decode(self, raw: str) -> str:
        return raw

    # ─── Blocking I/O (run in a worker thread) ───

    def _read_text(self) -> str | None:
        try:
            return self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError as exc:
            raise SessionStorageError(
                f"Failed to read session file: {exc}",
                context={"path": str(self.path)},
            ) from exc

    def _write_text(self, payload: str) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=self.path.parent, prefix=".session-")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as fh:
                    fh.write(payload)
                os.replace(tmp_name, self.path)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except OSError as exc:
            raise SessionStorageError(
                f"Failed to write session file: {exc}",
                context={"path": str(self.path)},
            ) from exc

    def _remove(self) -> None:
        try:
            self.path.unlink(missing_ok=True)
        except OSError as exc:
            raise SessionStorageError(
                f"Failed to remove session file: {exc}",
                context={"path": str(self.path)},
            ) from exc


class SecureFileSessionBackend(FileSessionBackend):
    """Fernet-encrypted session file. Does not broadcast changes.

    Args:
        path: File path. Defaults to settings.session_file.
        encryption_key: Fernet key. Defaults to settings.session_encryption_key.
    """

    broadcasts = False

    def __init__(
        self,
        path: str | os.PathLike[str] | None = None,
        encryption_key: str | None = None,
    ) -> None:
        super().__init__(path)
        self._key = encryption_key or get_settings().session_encryption_key
        if not self._key:
            raise ValueError(
                "An encryption key is required (argument or SESSION_ENCRYPTION_KEY)"
            )

    def _encode(self, text: str) -> str:
        return encrypt_text(text, key=self._key)

    def _decode(self, raw: str) -> str:
        return decrypt_text(raw, key=self._key)
