"""Root test configuration — shared fixtures for all test modules.

IMPORTANT: Environment variables are set BEFORE any livesync imports
so that config.py can load Settings without a .env file.
"""

from __future__ import annotations

import os

# Set required env vars before importing anything from livesync
from cryptography.fernet import Fernet

_TEST_FERNET_KEY = Fernet.generate_key().decode()
os.environ.setdefault("SESSION_ENCRYPTION_KEY", _TEST_FERNET_KEY)
os.environ.setdefault("API_BASE_URL", "http://api.test/v1")
os.environ.setdefault("ENVIRONMENT", "testing")

# Now safe to import livesync modules
import pytest

from livesync.common.config import get_settings
from livesync.session.backends import MemorySessionBackend
from livesync.session.store import SessionStore

# ─── Clear cached settings so test env vars are used ───
get_settings.cache_clear()


# ─── Session fixtures ───


@pytest.fixture
def session_data() -> dict:
    """A signed-in session as the login endpoint returns it."""
    return {
        "user": {"userId": "u-1", "email": "trader@example.com", "role": "USER"},
        "tokens": {
            "accessToken": "access-old",
            "refreshToken": "refresh-old",
            "accessTokenTtl": "15m",
            "refreshTokenExpiresAt": "2026-03-01T00:00:00Z",
        },
    }


@pytest.fixture
def store(session_data: dict) -> SessionStore:
    """SessionStore seeded with a signed-in session (in-memory backend)."""
    return SessionStore(MemorySessionBackend(session_data))


@pytest.fixture
def empty_store() -> SessionStore:
    """SessionStore with no session (signed out)."""
    return SessionStore(MemorySessionBackend())
