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
Signed OAuth ``state`` tokens binding a callback to the login that started it.
"""

import heapq
import secrets
import threading
import time
from typing import Any, Protocol

from authlib.jose import JsonWebToken
from authlib.jose.errors import (
    BadSignatureError,
    ExpiredTokenError,
    InvalidClaimError,
    JoseError,
    MissingClaimError,
    UnsupportedAlgorithmError,
)
from pydantic import SecretStr

from coreason_github_auth.exceptions import (
    StateReplayError,
    UnauthorizedError,
    UnexpectedSigningMethodError,
)
from coreason_github_auth.utils.logger import logger

STATE_SUBJECT = "state"


class StateReplayCache(Protocol):
    """Protocol for a store of consumed state token ids (``jti``)."""

    def consume(self, jti: str, expires_at: int) -> bool:
        """
        Records ``jti`` as consumed until ``expires_at`` (epoch seconds).

        Returns True on first use and False if the id was already consumed. Implementations
        shared between processes must make the check-and-set atomic.
        """
        ...


class MemoryStateReplayCache:
    """
    Process-local StateReplayCache.

    Entries are dropped once their token would have expired anyway, oldest first. Only effective
    when every callback for a login lands on the same process.
    """

    def __init__(self) -> None:
        self._expiry: dict[str, int] = {}
        self._queue: list[tuple[int, str]] = []
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._expiry)

    def consume(self, jti: str, expires_at: int) -> bool:
        with self._lock:
            self._evict(int(time.time()))
            if jti in self._expiry:
                return False
            self._expiry[jti] = expires_at
            heapq.heappush(self._queue, (expires_at, jti))
            return True

    def _evict(self, now: int) -> None:
        while self._queue and self._queue[0][0] < now:
            _, jti = heapq.heappop(self._queue)
            self._expiry.pop(jti, None)


class StateTokenSigner:
    """
    Mints and verifies state tokens: compact JWS with subject "state" and a short expiry.

    Attributes:
        signing_method (str): The JWS algorithm, e.g. "HS256".
        ttl (int): Token lifetime in seconds.
    """

    def __init__(
        self,
        signing_method: str,
        secret: SecretStr,
        ttl: int = 600,
        replay_cache: StateReplayCache | None = None,
    ) -> None:
        self.signing_method = signing_method
        self.ttl = ttl
        self._secret = secret
        self._replay_cache = replay_cache
        # Only the configured algorithm is accepted; "none" and downgrades are rejected by the parser
        self._jwt = JsonWebToken([signing_method])

    @property
    def _key(self) -> bytes:
        return self._secret.get_secret_value().encode("utf-8")

    def mint(self) -> str:
        """
        Returns a signed state token.

        Raises:
            JoseError: If the token cannot be signed with the configured method and secret.
        """
        now = int(time.time())
        claims = {
            "sub": STATE_SUBJECT,
            "iat": now,
            "exp": now + self.ttl,
            "jti": secrets.token_urlsafe(16),
        }
        token: bytes = self._jwt.encode({"alg": self.signing_method}, claims, self._key)
        return token.decode("ascii")

    def verify(self, token: str) -> dict[str, Any]:
        """
        Verifies a state token returned on the callback.

        Args:
            token: The raw ``state`` query parameter.

        Returns:
            dict[str, Any]: The validated claims.

        Raises:
            UnexpectedSigningMethodError: If the header algorithm is not the configured one.
            UnauthorizedError: For bad signatures, wrong or missing subject, expiry or malformed input.
            StateReplayError: If a replay cache is configured and the token was already consumed.
        """
        claims_options = {
            "sub": {"essential": True, "value": STATE_SUBJECT},
            "exp": {"essential": True},
        }
        try:
            claims = self._jwt.decode(token.strip(), self._key, claims_options=claims_options)
            claims.validate()
        except UnsupportedAlgorithmError as e:
            logger.warning(f"State token rejected: unexpected signing method (expected {self.signing_method})")
            raise UnexpectedSigningMethodError("unexpected signing method") from e
        except BadSignatureError as e:
            logger.warning("State token rejected: bad signature")
            raise UnauthorizedError("Invalid state token signature") from e
        except ExpiredTokenError as e:
            logger.info("State token rejected: expired")
            raise UnauthorizedError("State token has expired") from e
        except (MissingClaimError, InvalidClaimError) as e:
            logger.warning(f"State token rejected: {e}")
            raise UnauthorizedError(f"Invalid state token claims: {e}") from e
        except (JoseError, ValueError) as e:
            # Any other parse failure is surfaced with the parser's own message
            raise UnauthorizedError(str(e)) from e

        payload = dict(claims)
        if self._replay_cache is not None:
            jti = payload.get("jti")
            if not jti or not self._replay_cache.consume(str(jti), int(payload["exp"])):
                logger.warning("State token rejected: already consumed")
                raise StateReplayError("State token has already been used")

        return payload
