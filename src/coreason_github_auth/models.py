# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_github_auth

"""
Data models for the coreason-github-auth package.
"""

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, SecretStr, field_validator


class AuthInfo(BaseModel):
    """
    The join record binding an external GitHub account to a local user.

    At most one AuthInfo exists per (provider, uid) pair.

    Attributes:
        provider (str): The provider name, e.g. "github".
        uid (str): The issuer-assigned subject identifier, as a decimal string.
        user_id (str): Primary key of the bound local user. Empty when the host has no user model.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    provider: str = Field(..., min_length=1)
    uid: str = Field(..., min_length=1)
    user_id: str = ""

    @field_validator("uid", mode="before")
    @classmethod
    def render_decimal(cls, v: Any) -> Any:
        """GitHub ids are integers; the key is always stored as their decimal string."""
        if isinstance(v, int) and not isinstance(v, bool):
            return str(v)
        return v

    @property
    def key(self) -> tuple[str, str]:
        return (self.provider, self.uid)


class GithubProfile(BaseModel):
    """
    The subset of GitHub's authenticated-user payload the provider relies on.

    Only ``id`` is required; everything else is display data.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    id: int = Field(..., description="Stable numeric account id.")
    login: str | None = None
    name: str | None = None
    email: str | None = None
    avatar_url: str | None = None
    html_url: str | None = None

    @field_validator("id", mode="before")
    @classmethod
    def reject_non_integer(cls, v: Any) -> Any:
        if isinstance(v, bool) or not isinstance(v, int):
            raise ValueError("GitHub account id must be an integer")
        return v


class TokenResponse(BaseModel):
    """
    Successful response from the token endpoint.

    Attributes:
        access_token (SecretStr): The bearer token for the GitHub API. Protected from logging.
        token_type (str): Usually "bearer".
        scope (str): Comma separated scopes actually granted.
    """

    model_config = ConfigDict(extra="ignore")

    access_token: SecretStr
    token_type: str = "bearer"
    scope: str = ""


class IdentityPrincipal(BaseModel):
    """Principal returned when the host has no user model: the linked identity itself."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["identity"] = "identity"
    identity: AuthInfo


class UserPrincipal(BaseModel):
    """Principal returned when the host has a user model: the bound local user."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    kind: Literal["user"] = "user"
    user: Any
    identity: AuthInfo


Principal = IdentityPrincipal | UserPrincipal
