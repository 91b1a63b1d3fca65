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
GithubProvider: the login, register, callback and logout surface handed to the host framework.
"""

from typing import Any

import httpx
from authlib.jose.errors import JoseError
from opentelemetry import trace
from opentelemetry.instrumentation.httpx import HTTPXClientInstrumentor
from opentelemetry.trace import Status, StatusCode
from starlette.requests import Request
from starlette.responses import RedirectResponse, Response

from coreason_github_auth.config import GithubProviderConfig
from coreason_github_auth.exceptions import ConfigError, CoreasonAuthError, IssuerError
from coreason_github_auth.host import AuthorizeHandler, AuthSession
from coreason_github_auth.issuer_client import GithubIssuerClient
from coreason_github_auth.linker import IdentityLinker
from coreason_github_auth.models import Principal
from coreason_github_auth.oauth_config import OAuthClientConfig, build_oauth_config
from coreason_github_auth.state_token import StateReplayCache, StateTokenSigner
from coreason_github_auth.transport import SafeAsyncTransport
from coreason_github_auth.utils.logger import logger

tracer = trace.get_tracer(__name__)


class GithubProvider:
    """
    OAuth 2.0 authorization code provider for GitHub.

    Holds no per-flow state: the in-flight login is carried by the signed ``state`` parameter,
    so one instance can serve concurrent requests. Handles its HTTP client via async context manager.
    """

    name = "github"

    def __init__(
        self,
        config: GithubProviderConfig | None = None,
        client: httpx.AsyncClient | None = None,
        replay_cache: StateReplayCache | None = None,
    ) -> None:
        """
        Initialize the GithubProvider.

        Args:
            config: The provider configuration. Loaded from the environment when omitted.
            client: External async client (optional). If not provided, a `SafeAsyncTransport` client is created.
            replay_cache: Optional cache making each state token single use.

        Raises:
            ConfigError: If the client ID or client secret is blank.
        """
        if config is None:
            config = GithubProviderConfig()

        if not config.client_id.strip():
            raise ConfigError("Github's ClientID can't be blank")
        if not config.client_secret.get_secret_value().strip():
            raise ConfigError("Github's ClientSecret can't be blank")

        self.config = config
        self.replay_cache = replay_cache
        self._internal_client = client is None

        if client:
            self._client = client
        else:
            transport = httpx.AsyncHTTPTransport() if config.unsafe_local_dev else SafeAsyncTransport()
            self._client = httpx.AsyncClient(transport=transport, timeout=config.http_timeout)
            HTTPXClientInstrumentor().instrument_client(self._client)

        self.issuer = GithubIssuerClient(
            self._client,
            user_url=config.user_url,
            max_response_bytes=config.max_response_bytes,
        )
        self.linker = IdentityLinker(self.name, config.pii_salt)

    async def __aenter__(self) -> "GithubProvider":
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._internal_client:
            await self._client.aclose()

    @property
    def authorize_handler(self) -> AuthorizeHandler:
        """The configured override, or the default state-check, exchange and link sequence."""
        return self.config.authorize_handler or self.authorize

    def get_name(self) -> str:
        return self.name

    def oauth_config(self, request: Request, session: AuthSession) -> OAuthClientConfig:
        return build_oauth_config(self.config, request, session, self.name)

    def state_signer(self, session: AuthSession) -> StateTokenSigner:
        return StateTokenSigner(
            session.auth.signing_method,
            session.auth.signing_secret,
            ttl=self.config.state_ttl,
            replay_cache=self.replay_cache,
        )

    def login(self, request: Request, session: AuthSession) -> Response:
        """
        Redirects the browser to GitHub's authorization page with a freshly minted state token.

        A signing failure is logged and an empty state is sent; the callback then rejects the flow.
        """
        try:
            state = self.state_signer(session).mint()
        except (JoseError, ValueError) as e:
            logger.error(f"Failed to sign state token: {e}")
            state = ""

        url = self.oauth_config(request, session).authorization_url(state)
        return RedirectResponse(url, status_code=302)

    def register(self, request: Request, session: AuthSession) -> Response:
        """Same as login: first sightings are registered by the linker."""
        return self.login(request, session)

    async def callback(self, request: Request, session: AuthSession) -> Response:
        """Hands the callback to the host login handler with this provider's authorize handler."""
        return await session.auth.login_handler(request, session, self.authorize_handler)

    def logout(self, request: Request, session: AuthSession) -> None:
        """Session teardown belongs to the host."""

    def serve_http(self, request: Request, session: AuthSession) -> None:
        """The provider serves no additional routes."""

    async def authorize(self, request: Request, session: AuthSession) -> Principal:
        """
        Default callback work: verify state, exchange the code, fetch the profile and link it.

        Args:
            request: The callback request carrying ``state`` and ``code``.
            session: The host session.

        Returns:
            Principal: The logged-in identity or user.

        Raises:
            UnexpectedSigningMethodError: If the state token uses another algorithm.
            UnauthorizedError: If the state token is invalid.
            IssuerError: If GitHub reports an error or a call to GitHub fails.
            InvalidAccountError: If the identity exists without a bound user.
            PersistenceError: If the identity store fails.
        """
        with tracer.start_as_current_span("github_authorize") as span:
            try:
                params = request.query_params
                self.state_signer(session).verify(params.get("state", ""))

                if "error" in params:
                    description = params.get("error_description") or params["error"]
                    raise IssuerError(f"GitHub authorization failed: {description}")

                code = params.get("code", "")
                if not code:
                    raise IssuerError("Callback is missing the authorization code")

                token = await self.issuer.exchange(self.oauth_config(request, session), code)
                profile = await self.issuer.fetch_profile(token.access_token.get_secret_value())
                principal = await self.linker.link(session.auth.get_store(request), profile)
            except CoreasonAuthError as e:
                span.record_exception(e)
                span.set_status(Status(StatusCode.ERROR, str(e)))
                raise

            span.set_attribute("auth.principal_kind", principal.kind)
            span.set_status(Status(StatusCode.OK))
            return principal
