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
GitHub client for the server-to-server legs of the authorization code flow.
"""

import anyio
import httpx
from opentelemetry import trace
from opentelemetry.trace import Status, StatusCode
from pydantic import ValidationError

from coreason_github_auth.config import USER_URL
from coreason_github_auth.exceptions import IssuerError
from coreason_github_auth.models import GithubProfile, TokenResponse
from coreason_github_auth.oauth_config import OAuthClientConfig
from coreason_github_auth.transport import DEFAULT_MAX_RESPONSE_BYTES, safe_json_fetch
from coreason_github_auth.utils.logger import logger

tracer = trace.get_tracer(__name__)

GITHUB_API_ACCEPT = "application/vnd.github+json"


class GithubIssuerClient:
    """
    Exchanges authorization codes and fetches the authenticated user's profile.

    Attributes:
        client (httpx.AsyncClient): The HTTP client used for every call.
        user_url (str): The authenticated-user endpoint.
        max_response_bytes (int): Response size cap.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        user_url: str = USER_URL,
        max_response_bytes: int = DEFAULT_MAX_RESPONSE_BYTES,
        profile_attempts: int = 3,
    ) -> None:
        self.client = client
        self.user_url = user_url
        self.max_response_bytes = max_response_bytes
        self.profile_attempts = profile_attempts

    async def exchange(self, oauth_config: OAuthClientConfig, code: str) -> TokenResponse:
        """
        Exchanges an authorization code for an access token.

        Never retried: GitHub codes are single use.

        Args:
            oauth_config: The resolved client configuration.
            code: The ``code`` query parameter from the callback.

        Returns:
            TokenResponse: The issued token.

        Raises:
            IssuerError: On transport failure, non-2xx status, an OAuth error body or a malformed payload.
        """
        with tracer.start_as_current_span("github_token_exchange") as span:
            data = {
                "grant_type": "authorization_code",
                "code": code,
                "client_id": oauth_config.client_id,
                "client_secret": oauth_config.client_secret.get_secret_value(),
                "redirect_uri": oauth_config.redirect_url,
            }
            try:
                payload = await safe_json_fetch(
                    self.client,
                    oauth_config.token_url,
                    method="POST",
                    max_bytes=self.max_response_bytes,
                    data=data,
                    headers={"Accept": "application/json"},
                )
                if "error" in payload:
                    # GitHub reports bad codes with a 200 and an error body
                    description = payload.get("error_description") or payload["error"]
                    raise IssuerError(f"Token exchange rejected: {description}")
                token = TokenResponse(**payload)
            except httpx.HTTPStatusError as e:
                span.record_exception(e)
                span.set_status(Status(StatusCode.ERROR, str(e)))
                logger.error(f"Token exchange failed with status {e.response.status_code}")
                raise IssuerError(f"Token exchange failed with status {e.response.status_code}") from e
            except httpx.HTTPError as e:
                span.record_exception(e)
                span.set_status(Status(StatusCode.ERROR, str(e)))
                logger.error(f"Token exchange failed: {e}")
                raise IssuerError(f"Token exchange failed: {e}") from e
            except ValidationError as e:
                span.set_status(Status(StatusCode.ERROR, "invalid token response"))
                raise IssuerError(f"Invalid token response: {e}") from e
            except IssuerError as e:
                span.record_exception(e)
                span.set_status(Status(StatusCode.ERROR, str(e)))
                logger.warning(str(e))
                raise

            span.set_status(Status(StatusCode.OK))
            return token

    async def fetch_profile(self, access_token: str) -> GithubProfile:
        """
        Fetches the authenticated user from GitHub.

        Retries transport failures up to ``profile_attempts`` times with exponential backoff
        (initial=0.1s, max=1.0s). HTTP error statuses are not retried.

        Args:
            access_token: The bearer token from ``exchange``.

        Returns:
            GithubProfile: The profile with its stable numeric id.

        Raises:
            IssuerError: On transport failure, non-2xx status or a payload without an integer ``id``.
        """
        wait_initial = 0.1
        wait_max = 1.0
        headers = {
            "Authorization": f"Bearer {access_token}",
            "Accept": GITHUB_API_ACCEPT,
        }

        with tracer.start_as_current_span("github_fetch_profile") as span:
            for attempt in range(self.profile_attempts):
                try:
                    payload = await safe_json_fetch(
                        self.client, self.user_url, max_bytes=self.max_response_bytes, headers=headers
                    )
                    profile = GithubProfile(**payload)
                    span.set_status(Status(StatusCode.OK))
                    return profile
                except httpx.TransportError as e:
                    if attempt == self.profile_attempts - 1:
                        span.record_exception(e)
                        span.set_status(Status(StatusCode.ERROR, str(e)))
                        raise IssuerError(f"Failed to fetch GitHub profile: {e}") from e
                    logger.info(f"Profile fetch attempt {attempt + 1} failed, retrying: {e}")
                    await anyio.sleep(min(wait_initial * (2**attempt), wait_max))
                except httpx.HTTPStatusError as e:
                    span.record_exception(e)
                    span.set_status(Status(StatusCode.ERROR, str(e)))
                    logger.error(f"Profile fetch failed with status {e.response.status_code}")
                    raise IssuerError(f"Profile fetch failed with status {e.response.status_code}") from e
                except httpx.HTTPError as e:
                    span.record_exception(e)
                    span.set_status(Status(StatusCode.ERROR, str(e)))
                    raise IssuerError(f"Failed to fetch GitHub profile: {e}") from e
                except ValidationError as e:
                    span.set_status(Status(StatusCode.ERROR, "invalid profile"))
                    raise IssuerError(f"Invalid GitHub profile: {e}") from e

        raise IssuerError("Failed to fetch GitHub profile")  # pragma: no cover
