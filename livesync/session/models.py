"""Pydantic models for the stored authentication session.

Wire names are camelCase (matching the auth endpoints); Python attributes
are snake_case. Unknown token fields returned by the server (for example
`refreshTokenJwt`) are kept as extras so they survive a round trip through
storage and a refresh merge.

Usage:
    from livesync.session.models import AuthSession

    session = AuthSession.model_validate(
        {"user": {"email": "a@b.c"}, "tokens": {"accessToken": "...", "refreshToken": "..."}}
    )
    session.is_authenticated  # True
"""

from __future__ import annotations

from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class CredentialPair(BaseModel):
    """Access/refresh token bundle.

    Absence of `access_token` means "unauthenticated". Expiry fields are kept
    as the server sends them (TTL strings, seconds, or ISO timestamps; numbers
    are stored as text). They are informational only.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="allow",
        frozen=True,
    )

    access_token: str | None = None
    refresh_token: str | None = None
    access_token_expiry: str | None = Field(
        default=None,
        validation_alias=AliasChoices("accessTokenExpiry", "accessTokenTtl", "access_token_expiry"),
    )
    refresh_token_expiry: str | None = Field(
        default=None,
        validation_alias=AliasChoices(
            "refreshTokenExpiry", "refreshTokenExpiresAt", "refresh_token_expiry"
        ),
    )

    @field_validator("access_token_expiry", "refresh_token_expiry", mode="before")
    @classmethod
    def _expiry_as_text(cls, value: Any) -> Any:
        # TTLs may arrive as seconds (900) instead of "15m"
        if isinstance(value, int | float) and not isinstance(value, bool):
            return str(value)
        return value

    @property
    def is_authenticated(self) -> bool:
        return bool(self.access_token)

    def to_wire(self) -> dict[str, Any]:
        """Serialize to camelCase, dropping unset (None) fields."""
        return self.model_dump(by_alias=True, exclude_none=True)

    def merged_with(self, update: dict[str, Any]) -> CredentialPair:
        """Return a new pair where fields in `update` overwrite this pair's.

        Fields the update omits (or sends as null) are preserved.
        """
        merged = self.to_wire()
        # Normalize server aliases (accessTokenTtl, ...) before overlaying
        merged.update(CredentialPair.model_validate(update).to_wire())
        return CredentialPair.model_validate(merged)


class SessionUser(BaseModel):
    """Identity of the logged-in user as returned by login/refresh."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="allow",
        frozen=True,
    )

    user_id: str | None = None
    email: str | None = None
    role: str | None = None


class AuthSession(BaseModel):
    """The persisted session: optional user plus the credential pair."""

    model_config = ConfigDict(frozen=True)

    user: SessionUser | None = None
    tokens: CredentialPair = Field(default_factory=CredentialPair)

    @property
    def is_authenticated(self) -> bool:
        return self.tokens.is_authenticated

    def to_wire(self) -> dict[str, Any]:
        data: dict[str, Any] = {"tokens": self.tokens.to_wire()}
        if self.user is not None:
            data["user"] = self.user.model_dump(by_alias=True, exclude_none=True)
        return data
