"""
AuthResolver - turn request credentials into a verified actor.

Resolution:
1. Try each decoder in priority order (Discord, bearer, session)
2. First decoder whose credential is present decides; if it is bad, stop
3. Look the subject up in the UserDirectory
4. Evaluate the required capability

Bad credentials never raise out of here. Directory and identity provider
outages do, so an infrastructure problem is not reported as a bad login.
"""

from __future__ import annotations

import logging
from typing import Any

from taskmanager.auth.capabilities import Requirement, matches_super_admin
from taskmanager.auth.context import Actor, AuthResult, Resolved, Unauthenticated
from taskmanager.auth.decoders import (
    CredentialDecoder,
    CredentialScheme,
    DecodedCredential,
    DiscordSignatureDecoder,
    RequestCredentials,
    build_decoders,
)
from taskmanager.auth.errors import CredentialError, FailureKind
from taskmanager.auth.policies import Policy
from taskmanager.config import Settings
from taskmanager.core.utils import Clock, SystemClock
from taskmanager.storage.base import UserDirectory

logger = logging.getLogger(__name__)


class AuthResolver:
    """
    Stateless per request; every collaborator is passed in.

    Usage:
        resolver = AuthResolver(store, settings)
        result = await resolver.resolve(creds, Requirement.project_member("p1"))
        if isinstance(result, Resolved):
            ...
    """

    def __init__(
        self,
        directory: UserDirectory,
        settings: Settings,
        clock: Clock | None = None,
        jwks_client: Any = None,
        decoders: list[CredentialDecoder] | None = None,
    ):
        self.directory = directory
        self.settings = settings
        self.clock = clock or SystemClock()
        self.decoders = decoders if decoders is not None else build_decoders(settings, jwks_client)

    # -------------------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------------------

    async def resolve(
        self,
        credentials: RequestCredentials,
        requirement: Requirement | None = None,
    ) -> AuthResult:
        """Authenticate, then check the requirement (default: authenticated)."""
        result = await self.authenticate(credentials)
        if not isinstance(result, Resolved):
            return result

        requirement = requirement or Requirement.authenticated()
        outcome = await Policy(requirement, self.directory).check(result.actor)
        if not outcome.ok:
            logger.info(f"User {result.actor.id} denied {requirement}: {outcome.detail}")
        return outcome

    async def authenticate(self, credentials: RequestCredentials) -> Resolved | Unauthenticated:
        """Find the acting user, without any capability check."""
        decoded = self.decode(credentials)
        if isinstance(decoded, Unauthenticated):
            return decoded
        return await self.load_actor(decoded)

    def decode(self, credentials: RequestCredentials) -> DecodedCredential | Unauthenticated:
        """Verify the highest-priority credential present, without a directory lookup."""
        now = self.clock.now()

        for decoder in self.decoders:
            try:
                decoded = decoder.decode(credentials, now)
            except CredentialError as e:
                logger.warning(f"Rejected {decoder.scheme.value} credential: {e.message}")
                return Unauthenticated(e.kind, e.message)

            if decoded is not None:
                return decoded

        return Unauthenticated(FailureKind.MISSING_CREDENTIAL, "Authentication required")

    def verify_bot_request(self, credentials: RequestCredentials) -> str | Unauthenticated:
        """
        Check the Discord bot signature only.

        Used by bot endpoints that act before the Discord user is linked
        (link-code redemption). Returns the signed Discord user id.
        """
        decoder = next(
            (d for d in self.decoders if isinstance(d, DiscordSignatureDecoder)),
            None,
        )
        if decoder is None:
            return Unauthenticated(FailureKind.SIGNATURE_MISMATCH, "Bot requests not accepted")

        try:
            discord_user_id = decoder.verify(credentials, self.clock.now())
        except CredentialError as e:
            logger.warning(f"Rejected bot request: {e.message}")
            return Unauthenticated(e.kind, e.message)

        if discord_user_id is None:
            return Unauthenticated(FailureKind.MISSING_CREDENTIAL, "Signed bot request required")
        return discord_user_id

    async def load_actor(self, decoded: DecodedCredential) -> Resolved | Unauthenticated:
        """Look up the user behind a verified credential."""
        if decoded.scheme is CredentialScheme.DISCORD:
            user = await self.directory.find_user_by_discord_id(decoded.subject)
            if user is None:
                return Unauthenticated(
                    FailureKind.UNKNOWN_IDENTITY,
                    "Discord account is not linked",
                )
        else:
            user = await self.directory.find_user_by_id(decoded.subject)
            if user is None:
                return Unauthenticated(FailureKind.UNKNOWN_IDENTITY, "User not found")

        actor = Actor(
            user=user,
            scheme=decoded.scheme,
            is_super_admin=matches_super_admin(
                user.email,
                self.settings.super_admin_email,
                case_sensitive=self.settings.super_admin_email_case_sensitive,
            ),
        )
        return Resolved(actor)
