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
GitHub OAuth 2.0 login provider binding GitHub accounts to local identities and users.
"""

__version__ = "0.1.0"
__author__ = "Gowtham A Rao"
__email__ = "gowtham.rao@coreason.ai"

from .config import GithubProviderConfig
from .exceptions import (
    ConfigError,
    CoreasonAuthError,
    InvalidAccountError,
    IssuerError,
    PersistenceError,
    UnauthorizedError,
    UnexpectedSigningMethodError,
)
from .host import AuthHost, AuthSession, SessionContext, StarletteAuthHost
from .linker import IdentityLinker
from .models import AuthInfo, GithubProfile, IdentityPrincipal, Principal, UserPrincipal
from .provider import GithubProvider
from .routes import create_auth_routes
from .state_token import StateTokenSigner
from .store import IdentityStore, MemoryIdentityStore

__all__ = [
    "AuthHost",
    "AuthInfo",
    "AuthSession",
    "ConfigError",
    "CoreasonAuthError",
    "GithubProfile",
    "GithubProvider",
    "GithubProviderConfig",
    "IdentityLinker",
    "IdentityPrincipal",
    "IdentityStore",
    "InvalidAccountError",
    "IssuerError",
    "MemoryIdentityStore",
    "PersistenceError",
    "Principal",
    "SessionContext",
    "StarletteAuthHost",
    "StateTokenSigner",
    "UnauthorizedError",
    "UnexpectedSigningMethodError",
    "UserPrincipal",
    "create_auth_routes",
]
