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
Persistence adapter consumed by the identity linker.
"""

import itertools
from collections.abc import AsyncIterator, Callable, Iterator
from contextlib import AbstractAsyncContextManager, asynccontextmanager
from typing import Any, Protocol

import anyio

from coreason_github_auth.models import AuthInfo


class IdentityStore(Protocol):
    """
    Protocol for the host's identity (and optional user) tables.

    Implementations must back ``first_or_create_identity`` with a uniqueness guarantee on
    ``(provider, uid)`` so that concurrent first logins observe a single row.
    """

    @property
    def has_user_model(self) -> bool:
        """True when the host keeps local user records bound to identities."""
        ...

    async def find_identity(self, provider: str, uid: str) -> AuthInfo | None: ...

    async def first_or_create_identity(self, auth_info: AuthInfo) -> AuthInfo:
        """Returns the stored row for ``auth_info.key``, inserting ``auth_info`` if none exists."""
        ...

    async def create_user(self) -> Any:
        """Inserts a new, empty user and returns it with its generated primary key populated."""
        ...

    def user_primary_key(self, user: Any) -> str: ...

    async def get_user(self, user_id: str) -> Any:
        """Loads a user by primary key. Raises if it does not exist."""
        ...

    def transaction(self) -> AbstractAsyncContextManager[None]:
        """Groups writes; an exception inside the block rolls them back."""
        ...


class MemoryIdentityStore:
    """
    In-process implementation of IdentityStore.

    Transactions are serialized with an ``anyio.Lock``, which is what gives
    ``first_or_create_identity`` its uniqueness guarantee here. Rows created inside a failed
    transaction are removed.

    For single event loop use only (tests, development servers with one worker). The lock does not
    serialize coroutines running on other event loops or threads; hosts serving requests in
    parallel need a store backed by a database unique constraint on ``(provider, uid)``.

    Attributes:
        identities (dict[tuple[str, str], AuthInfo]): Identity rows keyed by (provider, uid).
        users (dict[str, Any]): User rows keyed by primary key.
    """

    def __init__(
        self,
        user_factory: Callable[[str], Any] | None = None,
        id_sequence: Iterator[int] | None = None,
    ) -> None:
        """
        Args:
            user_factory: Builds a user from its generated primary key. None means no user model.
            id_sequence: Source of user primary keys. Defaults to 1, 2, 3...
        """
        self.identities: dict[tuple[str, str], AuthInfo] = {}
        self.users: dict[str, Any] = {}
        self._user_factory = user_factory
        self._ids = id_sequence or itertools.count(1)
        self._lock = anyio.Lock()
        self._pending_users: list[str] | None = None
        self._pending_identities: list[tuple[str, str]] | None = None

    @property
    def has_user_model(self) -> bool:
        return self._user_factory is not None

    async def find_identity(self, provider: str, uid: str) -> AuthInfo | None:
        return self.identities.get((provider, uid))

    async def first_or_create_identity(self, auth_info: AuthInfo) -> AuthInfo:
        existing = self.identities.get(auth_info.key)
        if existing is not None:
            return existing
        self.identities[auth_info.key] = auth_info
        if self._pending_identities is not None:
            self._pending_identities.append(auth_info.key)
        return auth_info

    async def create_user(self) -> Any:
        if self._user_factory is None:
            raise RuntimeError("No user model configured")
        user_id = str(next(self._ids))
        user = self._user_factory(user_id)
        self.users[user_id] = user
        if self._pending_users is not None:
            self._pending_users.append(user_id)
        return user

    def user_primary_key(self, user: Any) -> str:
        for user_id, stored in self.users.items():
            if stored is user:
                return user_id
        raise LookupError("User has not been inserted")

    async def get_user(self, user_id: str) -> Any:
        try:
            return self.users[user_id]
        except KeyError:
            raise LookupError(f"User {user_id} not found") from None

    @asynccontextmanager
    async def _transaction(self) -> AsyncIterator[None]:
        async with self._lock:
            self._pending_users = []
            self._pending_identities = []
            try:
                yield
            except BaseException:
                for key in self._pending_identities:
                    self.identities.pop(key, None)
                for user_id in self._pending_users:
                    self.users.pop(user_id, None)
                raise
            finally:
                self._pending_users = None
                self._pending_identities = None

    def transaction(self) -> AbstractAsyncContextManager[None]:
        return self._transaction()
