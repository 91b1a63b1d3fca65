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
IdentityLinker component joining a GitHub account with local identity and user records.
"""

from opentelemetry import trace
from opentelemetry.trace import Status, StatusCode
from pydantic import SecretStr

from coreason_github_auth.exceptions import CoreasonAuthError, InvalidAccountError, PersistenceError
from coreason_github_auth.models import AuthInfo, GithubProfile, IdentityPrincipal, Principal, UserPrincipal
from coreason_github_auth.store import IdentityStore
from coreason_github_auth.utils.logger import anonymize, logger

tracer = trace.get_tracer(__name__)


class _ConcurrentLinkError(Exception):
    """A concurrent first login bound the identity to another user; carries the winning row."""

    def __init__(self, identity: AuthInfo) -> None:
        super().__init__(f"Identity {identity.key} already bound")
        self.identity = identity


class IdentityLinker:
    """
    Finds or creates the local identity (and optional local user) for a GitHub account.

    Attributes:
        provider_name (str): Value written to the ``provider`` column.
    """

    def __init__(self, provider_name: str, pii_salt: SecretStr) -> None:
        self.provider_name = provider_name
        self.pii_salt = pii_salt

    async def link(self, store: IdentityStore, profile: GithubProfile) -> Principal:
        """
        Resolves the principal for an authenticated GitHub profile.

        Returning accounts resolve to their bound user (or the identity itself when the host has
        no user model). First sightings create the user and the identity in one transaction.

        Args:
            store: The request-scoped identity store.
            profile: The profile returned by GitHub.

        Returns:
            Principal: ``UserPrincipal`` when the store has a user model, else ``IdentityPrincipal``.

        Raises:
            InvalidAccountError: If the stored identity has no bound user while a user model exists.
            PersistenceError: For any store failure.
        """
        auth_info = AuthInfo(provider=self.provider_name, uid=profile.id)
        user_hash = anonymize(auth_info.uid, self.pii_salt)

        with tracer.start_as_current_span("link_identity") as span:
            span.set_attribute("enduser.id", user_hash)
            try:
                existing = await store.find_identity(auth_info.provider, auth_info.uid)
                if existing is not None:
                    logger.info(f"Returning GitHub account {user_hash}")
                    principal = await self._resolve_existing(store, existing)
                else:
                    principal = await self._create(store, auth_info, user_hash)
            except CoreasonAuthError as e:
                span.record_exception(e)
                span.set_status(Status(StatusCode.ERROR, str(e)))
                raise
            except Exception as e:
                logger.exception("Identity store failure while linking GitHub account")
                span.record_exception(e)
                span.set_status(Status(StatusCode.ERROR, str(e)))
                raise PersistenceError(f"Identity store failure: {e}") from e

            span.set_status(Status(StatusCode.OK))
            return principal

    async def _resolve_existing(self, store: IdentityStore, identity: AuthInfo) -> Principal:
        if not store.has_user_model:
            return IdentityPrincipal(identity=identity)

        if not identity.user_id:
            logger.warning(f"Identity for provider {identity.provider} has no bound user")
            raise InvalidAccountError("Invalid account")

        user = await store.get_user(identity.user_id)
        return UserPrincipal(user=user, identity=identity)

    async def _create(self, store: IdentityStore, auth_info: AuthInfo, user_hash: str) -> Principal:
        try:
            async with store.transaction():
                user = None
                if store.has_user_model:
                    user = await store.create_user()
                    auth_info = auth_info.model_copy(update={"user_id": store.user_primary_key(user)})

                stored = await store.first_or_create_identity(auth_info)
                if user is not None and stored.user_id != auth_info.user_id:
                    raise _ConcurrentLinkError(stored)
        except _ConcurrentLinkError as race:
            logger.info(f"Concurrent first login for GitHub account {user_hash}, using the winning record")
            return await self._resolve_existing(store, race.identity)

        logger.info(f"Linked new GitHub account {user_hash}")
        if user is not None:
            return UserPrincipal(user=user, identity=stored)
        return IdentityPrincipal(identity=stored)
