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
Starlette routing for a provider: login, register, callback and logout.
"""

from starlette.requests import Request
from starlette.responses import PlainTextResponse, Response
from starlette.routing import Mount, Route

from coreason_github_auth.host import AuthHost, SessionContext
from coreason_github_auth.provider import GithubProvider


def create_auth_routes(provider: GithubProvider, host: AuthHost, prefix: str = "/auth") -> Mount:
    """
    Mounts the provider under ``<prefix>/<provider name>``.

    The callback path matches the default redirect URL, ``<prefix>/<provider name>/callback``,
    including any path the application itself is mounted under.
    """
    name = provider.get_name()
    prefix = prefix.rstrip("/")
    base = f"{prefix}/{name}"

    def session_for(request: Request) -> SessionContext:
        # Starlette appends each matched mount path to root_path, ours included
        root_path = request.scope.get("root_path", "")
        if root_path.endswith(base):
            root_path = root_path[: -len(base)]
        return SessionContext(auth=host, prefix=f"{root_path.rstrip('/')}{prefix}")

    async def login(request: Request) -> Response:
        return provider.login(request, session_for(request))

    async def register(request: Request) -> Response:
        return provider.register(request, session_for(request))

    async def callback(request: Request) -> Response:
        return await provider.callback(request, session_for(request))

    async def logout(request: Request) -> Response:
        provider.logout(request, session_for(request))
        return PlainTextResponse("")

    return Mount(
        base,
        routes=[
            Route("/login", login, methods=["GET"], name=f"{name}_login"),
            Route("/register", register, methods=["GET"], name=f"{name}_register"),
            Route("/callback", callback, methods=["GET"], name=f"{name}_callback"),
            Route("/logout", logout, methods=["GET"], name=f"{name}_logout"),
        ],
    )
