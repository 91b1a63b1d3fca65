# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_github_auth

import json
import socket
from collections.abc import Callable, Generator
from dataclasses import dataclass, field
from typing import Any
from unittest.mock import MagicMock, patch

import httpx
import pytest
from starlette.requests import Request

from coreason_github_auth.config import GithubProviderConfig
from coreason_github_auth.host import SessionContext, StarletteAuthHost
from coreason_github_auth.store import MemoryIdentityStore

SIGNING_SECRET = "test-signing-secret-0123456789abcdef"
TOKEN_URL = "https://github.com/login/oauth/access_token"
USER_URL = "https://api.github.com/user"


@dataclass
class User:
    id: str


@pytest.fixture(autouse=True)
def mock_dns_resolution() -> Generator[MagicMock, None, None]:
    """
    Globally patches socket.getaddrinfo to return a safe public IP by default so that
    no test resolves real hostnames.
    """
    safe_response = [(socket.AF_INET, socket.SOCK_STREAM, 6, "", ("140.82.112.3", 443))]

    with patch("socket.getaddrinfo", return_value=safe_response) as mock:
        yield mock


@dataclass
class StubGithub:
    """Records calls and answers the token and user endpoints."""

    profile: dict[str, Any] = field(default_factory=lambda: {"id": 42, "login": "octocat"})
    token_status: int = 200
    token_body: dict[str, Any] = field(
        default_factory=lambda: {"access_token": "gho_stub", "token_type": "bearer", "scope": ""}
    )
    user_status: int = 200
    calls: list[httpx.Request] = field(default_factory=list)

    def paths(self) -> list[str]:
        return [str(r.url.copy_with(query=None)) for r in self.calls]

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.calls.append(request)
        url = str(request.url.copy_with(query=None))
        if url == TOKEN_URL:
            return httpx.Response(self.token_status, content=json.dumps(self.token_body).encode())
        if url == USER_URL:
            return httpx.Response(self.user_status, json=self.profile)
        return httpx.Response(404)

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self.handler))


@pytest.fixture
def github() -> StubGithub:
    return StubGithub()


@pytest.fixture
def config() -> GithubProviderConfig:
    return GithubProviderConfig(client_id="x", client_secret="y")


@pytest.fixture
def store() -> MemoryIdentityStore:
    return MemoryIdentityStore()


@pytest.fixture
def host(store: MemoryIdentityStore) -> StarletteAuthHost:
    return StarletteAuthHost(signing_secret=SIGNING_SECRET, store=store)


@pytest.fixture
def session(host: StarletteAuthHost) -> SessionContext:
    return SessionContext(auth=host, prefix="/auth")


def make_request(
    path: str = "/auth/github/login",
    query: str = "",
    scheme: str = "http",
    host: str = "example.com",
) -> Request:
    scope = {
        "type": "http",
        "method": "GET",
        "scheme": scheme,
        "path": path,
        "root_path": "",
        "query_string": query.encode("ascii"),
        "headers": [(b"host", host.encode("ascii"))],
        "server": (host, 80),
    }
    return Request(scope)


@pytest.fixture
def request_factory() -> Callable[..., Request]:
    return make_request
