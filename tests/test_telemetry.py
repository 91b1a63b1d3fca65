# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_github_auth

from collections.abc import Generator
from unittest.mock import AsyncMock, patch
from urllib.parse import urlencode

import pytest
from opentelemetry.sdk.trace import ReadableSpan, TracerProvider
from opentelemetry.sdk.trace.export import SimpleSpanProcessor
from opentelemetry.sdk.trace.export.in_memory_span_exporter import InMemorySpanExporter
from opentelemetry.trace import StatusCode
from pydantic import SecretStr

from coreason_github_auth.config import GithubProviderConfig
from coreason_github_auth.exceptions import IssuerError, PersistenceError, UnauthorizedError
from coreason_github_auth.host import SessionContext
from coreason_github_auth.issuer_client import GithubIssuerClient
from coreason_github_auth.linker import IdentityLinker
from coreason_github_auth.models import GithubProfile
from coreason_github_auth.oauth_config import OAuthClientConfig
from coreason_github_auth.provider import GithubProvider
from coreason_github_auth.state_token import StateTokenSigner
from coreason_github_auth.store import MemoryIdentityStore
from coreason_github_auth.utils.logger import anonymize

from .conftest import SIGNING_SECRET, TOKEN_URL, StubGithub, make_request


@pytest.fixture
def exporter() -> Generator[InMemorySpanExporter, None, None]:
    """Routes every module-level tracer to an in-memory exporter."""
    exporter = InMemorySpanExporter()
    provider = TracerProvider()
    provider.add_span_processor(SimpleSpanProcessor(exporter))
    tracer = provider.get_tracer("test_tracer")

    with (
        patch("coreason_github_auth.issuer_client.tracer", tracer),
        patch("coreason_github_auth.linker.tracer", tracer),
        patch("coreason_github_auth.provider.tracer", tracer),
    ):
        yield exporter


@pytest.fixture
def oauth_config() -> OAuthClientConfig:
    return OAuthClientConfig(
        client_id="x",
        client_secret=SecretStr("y"),
        authorize_url="https://github.com/login/oauth/authorize",
        token_url=TOKEN_URL,
        redirect_url="http://example.com/auth/github/callback",
    )


def only_span(exporter: InMemorySpanExporter, name: str) -> ReadableSpan:
    spans = [s for s in exporter.get_finished_spans() if s.name == name]
    assert len(spans) == 1
    return spans[0]


def assert_failed(span: ReadableSpan) -> None:
    assert span.status.status_code == StatusCode.ERROR
    assert "exception" in [event.name for event in span.events]


@pytest.mark.asyncio
async def test_token_exchange_span(
    exporter: InMemorySpanExporter, github: StubGithub, oauth_config: OAuthClientConfig
) -> None:
    async with github.client() as client:
        await GithubIssuerClient(client).exchange(oauth_config, "abc")

    assert only_span(exporter, "github_token_exchange").status.status_code == StatusCode.OK


@pytest.mark.asyncio
async def test_token_exchange_span_records_failure(
    exporter: InMemorySpanExporter, github: StubGithub, oauth_config: OAuthClientConfig
) -> None:
    github.token_status = 500

    async with github.client() as client:
        with pytest.raises(IssuerError):
            await GithubIssuerClient(client).exchange(oauth_config, "abc")

    assert_failed(only_span(exporter, "github_token_exchange"))


@pytest.mark.asyncio
async def test_fetch_profile_span(exporter: InMemorySpanExporter, github: StubGithub) -> None:
    async with github.client() as client:
        await GithubIssuerClient(client).fetch_profile("gho_stub")

    assert only_span(exporter, "github_fetch_profile").status.status_code == StatusCode.OK


@pytest.mark.asyncio
async def test_fetch_profile_span_records_failure(exporter: InMemorySpanExporter, github: StubGithub) -> None:
    github.user_status = 503

    async with github.client() as client:
        with pytest.raises(IssuerError):
            await GithubIssuerClient(client).fetch_profile("gho_stub")

    assert_failed(only_span(exporter, "github_fetch_profile"))


@pytest.mark.asyncio
async def test_link_identity_span_carries_hashed_account(exporter: InMemorySpanExporter) -> None:
    salt = SecretStr("telemetry-salt")

    await IdentityLinker("github", salt).link(MemoryIdentityStore(), GithubProfile(id=42))

    span = only_span(exporter, "link_identity")
    assert span.status.status_code == StatusCode.OK
    assert span.attributes is not None
    assert span.attributes["enduser.id"] == anonymize("42", salt)
    assert "42" not in span.attributes.values()


@pytest.mark.asyncio
async def test_link_identity_span_records_failure(exporter: InMemorySpanExporter) -> None:
    store = MemoryIdentityStore()
    store.find_identity = AsyncMock(side_effect=ConnectionError("down"))  # type: ignore[method-assign]

    with pytest.raises(PersistenceError):
        await IdentityLinker("github", SecretStr("salt")).link(store, GithubProfile(id=1))

    assert_failed(only_span(exporter, "link_identity"))


@pytest.mark.asyncio
async def test_authorize_span_parents_every_step(
    exporter: InMemorySpanExporter, config: GithubProviderConfig, github: StubGithub, session: SessionContext
) -> None:
    provider = GithubProvider(config, client=github.client())
    state = StateTokenSigner("HS256", SecretStr(SIGNING_SECRET)).mint()
    request = make_request(path="/auth/github/callback", query=urlencode({"state": state, "code": "abc"}))

    await provider.authorize(request, session)

    root = only_span(exporter, "github_authorize")
    assert root.status.status_code == StatusCode.OK
    assert root.attributes is not None
    assert root.attributes["auth.principal_kind"] == "identity"
    for name in ("github_token_exchange", "github_fetch_profile", "link_identity"):
        child = only_span(exporter, name)
        assert child.parent is not None
        assert child.parent.span_id == root.context.span_id


@pytest.mark.asyncio
async def test_authorize_span_records_rejected_state(
    exporter: InMemorySpanExporter, config: GithubProviderConfig, github: StubGithub, session: SessionContext
) -> None:
    provider = GithubProvider(config, client=github.client())
    request = make_request(path="/auth/github/callback", query=urlencode({"state": "forged", "code": "abc"}))

    with pytest.raises(UnauthorizedError):
        await provider.authorize(request, session)

    assert_failed(only_span(exporter, "github_authorize"))
    assert [s.name for s in exporter.get_finished_spans()] == ["github_authorize"]
