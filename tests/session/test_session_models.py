"""Tests for credential models: aliases, extras and field-level merging."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from livesync.session.models import AuthSession, CredentialPair


class TestCredentialPair:
    """Tests for CredentialPair parsing and serialization."""

    def test_parses_camel_case(self) -> None:
        pair = CredentialPair.model_validate({"accessToken": "a", "refreshToken": "r"})
        assert pair.access_token == "a"
        assert pair.refresh_token == "r"
        assert pair.is_authenticated is True

    def test_server_expiry_aliases(self) -> None:
        """accessTokenTtl / refreshTokenExpiresAt map onto the expiry fields."""
        pair = CredentialPair.model_validate(
            {"accessTokenTtl": "15m", "refreshTokenExpiresAt": "2026-03-01T00:00:00Z"}
        )
        assert pair.access_token_expiry == "15m"
        assert pair.refresh_token_expiry == "2026-03-01T00:00:00Z"

    def test_numeric_ttl_kept_as_text(self) -> None:
        """A TTL sent as seconds is accepted and stored as text."""
        pair = CredentialPair.model_validate({"accessToken": "a", "accessTokenTtl": 900})
        assert pair.access_token_expiry == "900"
        assert pair.to_wire()["accessTokenExpiry"] == "900"

    def test_non_scalar_expiry_rejected(self) -> None:
        with pytest.raises(ValidationError):
            CredentialPair.model_validate({"accessTokenTtl": {"seconds": 900}})

    def test_missing_access_token_is_unauthenticated(self) -> None:
        assert CredentialPair().is_authenticated is False
        assert CredentialPair(access_token="").is_authenticated is False

    def test_unknown_fields_survive_round_trip(self) -> None:
        """Extra token fields from the server are kept in to_wire()."""
        pair = CredentialPair.model_validate({"accessToken": "a", "refreshTokenJwt": "jwt"})
        assert pair.to_wire() == {"accessToken": "a", "refreshTokenJwt": "jwt"}

    def test_is_frozen(self) -> None:
        pair = CredentialPair(access_token="a")
        with pytest.raises(ValidationError):
            pair.access_token = "b"


class TestMerge:
    """Returned fields overwrite, omitted fields are preserved."""

    def test_omitted_fields_preserved(self) -> None:
        old = CredentialPair.model_validate(
            {"accessToken": "a1", "refreshToken": "r1", "accessTokenExpiry": "15m"}
        )
        merged = old.merged_with({"accessToken": "a2"})

        assert merged.access_token == "a2"
        assert merged.refresh_token == "r1"
        assert merged.access_token_expiry == "15m"

    def test_null_does_not_erase(self) -> None:
        old = CredentialPair(access_token="a1", refresh_token="r1")
        merged = old.merged_with({"accessToken": "a2", "refreshToken": None})
        assert merged.refresh_token == "r1"

    def test_alias_in_update_overwrites_canonical_field(self) -> None:
        """A new accessTokenTtl replaces a stored accessTokenExpiry."""
        old = CredentialPair(access_token="a1", access_token_expiry="15m")
        merged = old.merged_with({"accessToken": "a2", "accessTokenTtl": "30m"})
        assert merged.access_token_expiry == "30m"

    def test_original_unchanged(self) -> None:
        old = CredentialPair(access_token="a1")
        old.merged_with({"accessToken": "a2"})
        assert old.access_token == "a1"


class TestAuthSession:
    """Tests for the AuthSession wrapper."""

    def test_parses_login_payload(self, session_data: dict) -> None:
        session = AuthSession.model_validate(session_data)
        assert session.user is not None
        assert session.user.user_id == "u-1"
        assert session.user.email == "trader@example.com"
        assert session.is_authenticated is True

    def test_to_wire_round_trip(self, session_data: dict) -> None:
        session = AuthSession.model_validate(session_data)
        again = AuthSession.model_validate(session.to_wire())
        assert again == session

    def test_without_user(self) -> None:
        session = AuthSession.model_validate({"tokens": {"accessToken": "a"}})
        assert session.user is None
        assert "user" not in session.to_wire()
