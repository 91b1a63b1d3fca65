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
Custom exceptions for the coreason-github-auth package.
"""


class CoreasonAuthError(Exception):
    """Base exception for all coreason-github-auth errors."""


class ConfigError(CoreasonAuthError):
    """Raised when the provider is constructed with missing client credentials."""


class UnauthorizedError(CoreasonAuthError):
    """
    Raised when the callback state token is invalid (bad signature, wrong subject, expired, malformed).
    """


class UnexpectedSigningMethodError(UnauthorizedError):
    """Raised when the state token header names a different algorithm than the configured one."""


class StateReplayError(UnauthorizedError):
    """Raised when a state token has already been consumed."""


class IssuerError(CoreasonAuthError):
    """Raised for transport failures, non-2xx responses or malformed payloads from GitHub."""


class OversizedResponseError(IssuerError):
    """Raised when an issuer response is too large."""


class InvalidAccountError(CoreasonAuthError):
    """Raised when a linked identity has no bound user while the host has a user model."""


class PersistenceError(CoreasonAuthError):
    """Raised when the identity store fails."""
