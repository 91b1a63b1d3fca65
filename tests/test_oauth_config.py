# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_github_auth

from collections.abc import Callable
from urllib.parse import parse_qs, urlsplit

from starlette.requests import Request

from coreason_github_auth.config import GithubProviderConfig
from coreason_github_auth.host import SessionContext
from coreason_github_auth.oauth_config import build_oauth_config


def test_redirect_url_derived_from_request(
    config: GithubProviderConfig, session: SessionContext, request_factory: Callable[..., Request]
) -> None:
    oauth = build_oauth_config(config, request_factory(scheme="https", host="app.example.com"), session)

    assert oauth.redirect_url == "https://app.example.com/auth/github/callback"
    assert oauth.client_id == "x"
    assert oauth.client_secret.get_secret_value() == "y"
    assert oauth.authorize_url == config.authorize_url
    assert oauth.token_url == config.token_url


def test_missing_scheme_defaults_to_http(
    config: GithubProviderConfig, session: SessionContext, request_factory: Callable[..., Request]
) -> None:
    oauth = build_oauth_config(config, request_factory(scheme="", host="app.example.com:8080"), session)

    assert oauth.redirect_url == "http://app.example.com:8080/auth/github/callback"


def test_configured_redirect_url_is_used_verbatim(
    session: SessionContext, request_factory: Callable[..., Request]
) -> None:
    config = GithubProviderConfig(client_id="x", client_secret="y", redirect_url="https://fixed.example/cb?x=1")
    oauth = build_oauth_config(config, request_factory(), session)

    assert oauth.redirect_url == "https://fixed.example/cb?x=1"


def test_redirect_url_follows_session_prefix(
    config: GithubProviderConfig, host, request_factory: Callable[..., Request]
) -> None:
    session = SessionContext(auth=host, prefix="/accounts/")
    oauth = build_oauth_config(config, request_factory(), session)

    assert oauth.redirect_url == "http://example.com/accounts/github/callback"


def test_authorization_url_carries_state_and_scopes(
    session: SessionContext, request_factory: Callable[..., Request]
) -> None:
    config = GithubProviderConfig(client_id="x", client_secret="y", scopes=["read:user", "user:email"])
    url = build_oauth_config(config, request_factory(), session).authorization_url("signed-state")

    parts = urlsplit(url)
    query = parse_qs(parts.query)
    assert f"{parts.scheme}://{parts.netloc}{parts.path}" == "https://github.com/login/oauth/authorize"
    assert query["response_type"] == ["code"]
    assert query["client_id"] == ["x"]
    assert query["redirect_uri"] == ["http://example.com/auth/github/callback"]
    assert query["scope"] == ["read:user user:email"]
    assert query["state"] == ["signed-state"]
    assert "y" not in query.get("client_secret", [])


def test_empty_scopes_omit_scope_parameter(
    config: GithubProviderConfig, session: SessionContext, request_factory: Callable[..., Request]
) -> None:
    url = build_oauth_config(config, request_factory(), session).authorization_url("s")

    assert "scope" not in parse_qs(urlsplit(url).query)
