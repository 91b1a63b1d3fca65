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
The host authentication framework surface consumed by providers, plus a Starlette reference host.
"""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Protocol

from pydantic import SecretStr
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from coreason_github_auth.exceptions import (
    CoreasonAuthError,
    InvalidAccountError,
    IssuerError,
    UnauthorizedError,
)
from coreason_github_auth.models import Principal
from coreason_github_auth.store import IdentityStore
from coreason_github_auth.utils.logger import logger

AuthorizeHandler = Callable[[Request, "AuthSession"], Awaitable[Principal]]
LoginSuccessHook = Callable[[Request, Principal], Awaitable[Response]]

SERVER_ERROR_DETAILS = {
    500: "Internal error",
    502: "GitHub authorization failed",
}


class AuthHost(Protocol):
    """The host framework's authentication object (signing material, storage, login handler)."""

    signing_method: str
    signing_secret: SecretStr

    def get_store(self, request: Request) -> IdentityStore:
        """Returns the persistence handle scoped to ``request``."""
        ...

    async def login_handler(self, request: Request, session: "AuthSession", authorize: AuthorizeHandler) -> Response:
        """Runs ``authorize`` and turns its principal or error into a response."""
        ...


class AuthSession(Protocol):
    """Per-request view of the host handed to providers."""

    @property
    def auth(self) -> AuthHost: ...

    def auth_url(self, suffix: str) -> str:
        """Returns the absolute path of ``suffix`` under the host's auth prefix."""
        ...


@dataclass(frozen=True)
class SessionContext:
    """AuthSession bound to an auth host and the path prefix its routes are mounted under."""

    auth: AuthHost
    prefix: str = "/auth"

    def auth_url(self, suffix: str) -> str:
        return f"{self.prefix.rstrip('/')}/{suffix.lstrip('/')}"


def error_status(error: CoreasonAuthError) -> int:
    """Maps provider errors to HTTP statuses."""
    if isinstance(error, UnauthorizedError):
        return 401
    if isinstance(error, InvalidAccountError):
        return 403
    if isinstance(error, IssuerError):
        return 502
    return 500


class StarletteAuthHost:
    """
    Reference AuthHost for Starlette applications.

    Sessions after login belong to the application: pass ``on_login`` to set cookies or redirect.
    Without it the principal is rendered as JSON.
    """

    def __init__(
        self,
        signing_secret: SecretStr | str,
        store: IdentityStore | Callable[[Request], IdentityStore],
        signing_method: str = "HS256",
        on_login: LoginSuccessHook | None = None,
    ) -> None:
        self.signing_method = signing_method
        self.signing_secret = (
            signing_secret if isinstance(signing_secret, SecretStr) else SecretStr(signing_secret)
        )
        self._store = store
        self._on_login = on_login

    def get_store(self, request: Request) -> IdentityStore:
        if callable(self._store):
            return self._store(request)
        return self._store

    async def login_handler(self, request: Request, session: AuthSession, authorize: AuthorizeHandler) -> Response:
        try:
            principal = await authorize(request, session)
        except CoreasonAuthError as e:
            status = error_status(e)
            if status >= 500:
                # Full message goes to the log only
                logger.error(f"Login failed with {status}: {type(e).__name__}: {e}")
                detail = SERVER_ERROR_DETAILS.get(status, "Internal error")
            else:
                logger.info(f"Login rejected with {status}: {type(e).__name__}")
                detail = str(e)
            return JSONResponse({"error": type(e).__name__, "detail": detail}, status_code=status)

        if self._on_login is not None:
            return await self._on_login(request, principal)

        return JSONResponse(
            {
                "kind": principal.kind,
                "provider": principal.identity.provider,
                "uid": principal.identity.uid,
                "user_id": principal.identity.user_id,
            }
        )
