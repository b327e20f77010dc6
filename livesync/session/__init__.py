"""Session storage: credential models, platform backends, and the store itself.

Public API:
    - SessionStore: validated, serialized access to the persisted session
    - MemorySessionBackend / FileSessionBackend / SecureFileSessionBackend
    - AuthSession, CredentialPair, SessionUser
"""

from __future__ import annotations

from livesync.session.backends import (
    FileSessionBackend,
    MemorySessionBackend,
    SecureFileSessionBackend,
    SessionBackend,
)
from livesync.session.models import AuthSession, CredentialPair, SessionUser
from livesync.session.store import SessionStore

__all__ = [
    "AuthSession",
    "CredentialPair",
    "FileSessionBackend",
    "MemorySessionBackend",
    "SecureFileSessionBackend",
    "SessionBackend",
    "SessionStore",
    "SessionUser",
]
