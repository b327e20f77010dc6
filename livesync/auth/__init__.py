"""Authenticated requests with single-flight token refresh.

Public API:
    - CredentialRefreshCoordinator: bearer injection + 401 recovery
    - AccountApiClient: login/logout and account snapshot helpers
    - is_refresh_excluded, REFRESH_EXCLUDED_PATHS
"""

from __future__ import annotations

from livesync.auth.client import AccountApiClient
from livesync.auth.coordinator import (
    REFRESH_EXCLUDED_PATHS,
    CredentialRefreshCoordinator,
    is_refresh_excluded,
)

__all__ = [
    "REFRESH_EXCLUDED_PATHS",
    "AccountApiClient",
    "CredentialRefreshCoordinator",
    "is_refresh_excluded",
]
