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
Per-request OAuth client configuration.
"""

from typing import TYPE_CHECKING

from authlib.oauth2.rfc6749.parameters import prepare_grant_uri
from pydantic import BaseModel, ConfigDict, Field, SecretStr
from starlette.requests import Request

from coreason_github_auth.config import GithubProviderConfig

if TYPE_CHECKING:
    from coreason_github_auth.host import AuthSession

CALLBACK_SUFFIX = "callback"


class OAuthClientConfig(BaseModel):
    """
    Fully resolved client configuration for one login or callback request.
    """

    model_config = ConfigDict(frozen=True)

    client_id: str
    client_secret: SecretStr
    authorize_url: str
    token_url: str
    redirect_url: str
    scopes: tuple[str, ...] = Field(default_factory=tuple)

    def authorization_url(self, state: str) -> str:
        """
        Builds the issuer authorization URL carrying ``state``.

        An empty scope list omits the ``scope`` parameter entirely.
        """
        return prepare_grant_uri(
            self.authorize_url,
            client_id=self.client_id,
            response_type="code",
            redirect_uri=self.redirect_url,
            scope=list(self.scopes) or None,
            state=state,
        )


def resolve_redirect_url(
    config: GithubProviderConfig, request: Request, session: "AuthSession", provider_name: str
) -> str:
    """
    Returns the configured redirect URL, or ``<scheme>://<host><callback path>`` from the request.

    The scheme falls back to ``http`` when the request does not carry one.
    """
    if config.redirect_url:
        return config.redirect_url

    scheme = request.url.scheme or "http"
    host = request.headers.get("host") or request.url.netloc
    return f"{scheme}://{host}{session.auth_url(f'{provider_name}/{CALLBACK_SUFFIX}')}"


def build_oauth_config(
    config: GithubProviderConfig, request: Request, session: "AuthSession", provider_name: str = "github"
) -> OAuthClientConfig:
    """
    Derives the OAuth client configuration from static settings plus the inbound request.

    Args:
        config: The provider configuration.
        request: The inbound request (used for the default redirect URL).
        session: The host session, which owns callback path construction.
        provider_name: The provider path segment.

    Returns:
        OAuthClientConfig: The populated client configuration.
    """
    return OAuthClientConfig(
        client_id=config.client_id,
        client_secret=config.client_secret,
        authorize_url=config.authorize_url,
        token_url=config.token_url,
        redirect_url=resolve_redirect_url(config, request, session, provider_name),
        scopes=tuple(config.scopes),
    )
