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
Configuration for the GitHub provider.
"""

from typing import Any, Callable

from pydantic import Field, SecretStr, ValidationInfo, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

AUTHORIZE_URL = "https://github.com/login/oauth/authorize"
TOKEN_URL = "https://github.com/login/oauth/access_token"
USER_URL = "https://api.github.com/user"


class GithubProviderConfig(BaseSettings):
    """
    Configuration settings for the GitHub OAuth provider.

    Attributes:
        client_id (str): The OAuth App client ID issued by GitHub.
        client_secret (SecretStr): The OAuth App client secret.
        authorize_url (str): The authorization endpoint. Defaults to github.com.
        token_url (str): The token endpoint. Defaults to github.com.
        user_url (str): The authenticated-user endpoint. Defaults to api.github.com.
        redirect_url (str | None): Fixed callback URL. Derived from the request when unset.
        scopes (list[str]): Requested OAuth scopes, in order.
        http_timeout (float | None): Timeout for issuer calls. None leaves timing to the caller.
        state_ttl (int): Lifetime of the state token in seconds.
        authorize_handler (Callable | None): Replaces the default callback work when set.
    """

    model_config = SettingsConfigDict(
        env_prefix="COREASON_GITHUB_",
        case_sensitive=False,
        frozen=True,
    )

    client_id: str = ""
    client_secret: SecretStr = SecretStr("")
    unsafe_local_dev: bool = False
    authorize_url: str = AUTHORIZE_URL
    token_url: str = TOKEN_URL
    user_url: str = USER_URL
    redirect_url: str | None = None
    scopes: list[str] = Field(default_factory=list)
    http_timeout: float | None = Field(default=None, description="Timeout in seconds for GitHub calls.")
    state_ttl: int = Field(default=600, gt=0)
    max_response_bytes: int = Field(default=1_000_000, gt=0)
    pii_salt: SecretStr = SecretStr("coreason-unsafe-default-salt")
    authorize_handler: Callable[..., Any] | None = Field(default=None, exclude=True)

    @field_validator("authorize_url", "token_url", "user_url", mode="after")
    @classmethod
    def validate_https(cls, v: str, info: ValidationInfo) -> str:
        """
        Ensures issuer endpoints use HTTPS, unless strictly opted out for local dev.
        """
        v = v.strip()
        if v.startswith("http://") and not info.data.get("unsafe_local_dev", False):
            raise ValueError("HTTPS is required for production. Set 'unsafe_local_dev=True' only for local testing.")
        if not v.startswith(("https://", "http://")):
            raise ValueError(f"'{v}' is not an absolute URL")
        return v

    @field_validator("redirect_url")
    @classmethod
    def blank_redirect_is_unset(cls, v: str | None) -> str | None:
        if v is not None and not v.strip():
            return None
        return v
