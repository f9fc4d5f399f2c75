"""Credential bridge.

The credential authority only issues e-mail + password sessions. To give a
federated identity a session, the bridge signs in with a fixed per-provider
marker (``"<provider>-federated"``) as the working secret.

This is a compatibility layer for a password-only authority. It is NOT a
security equivalent of the provider's authentication: the trust decision was
already made by the provider's redirect exchange (state + PKCE) before the
bridge is ever called, and anyone who knows a bridged e-mail and the marker
can sign in as that account. Do not add new providers to the legacy
fallback list.
"""

from dataclasses import dataclass
from typing import Any, Iterable

import logfire

from passage.config import BridgeSettings
from passage.domain.error import (
    AlreadyRegisteredError,
    BridgeExhaustedError,
    InvalidCredentialsError,
)
from passage.domain.service.authority import CredentialAuthority
from passage.domain.service.base import Service
from passage.domain.service.retry import RetryPolicy
from passage.domain.value import AuthoritySession, AuthProvider


@dataclass(frozen=True)
class BridgeResult:
    """Authority session obtained through the bridge."""

    session: AuthoritySession
    is_new_authority_user: bool


class CredentialBridge(Service):
    """Maps federated identities onto the authority's password primitive."""

    def __init__(
        self, authority: CredentialAuthority, settings: BridgeSettings
    ) -> None:
        """Initialize credential bridge.

        Args:
            authority: Credential authority
            settings: Bridge settings (marker suffix, legacy provider order)
        """
        self.authority = authority
        self.settings = settings

    def derive(self, provider: AuthProvider, provider_user_id: str | None = None) -> str:
        """Return the bridge secret for `provider`.

        Deterministic. The provider user id is accepted for interface
        symmetry but does not participate: accounts created before the
        bridge existed were all registered with the bare marker.
        """
        return f"{provider.value}{self.settings.secret_suffix}"

    def fallback_order(self, first: AuthProvider | None = None) -> list[AuthProvider]:
        """Providers whose markers may be tried, in fixed order.

        Args:
            first: Provider to try before all others (the one the user just
                authenticated with); it is tried even when it is not a
                legacy provider.
        """
        order = list(self.settings.legacy_providers)
        if first is None:
            return order
        return [first] + [p for p in order if p != first]

    async def sign_in_with_markers(
        self, email: str, providers: Iterable[AuthProvider]
    ) -> tuple[AuthoritySession, AuthProvider] | None:
        """Try the markers of `providers` in order.

        Returns:
            The first session obtained and the provider whose marker matched,
            or None when every marker is rejected
        """
        policy = RetryPolicy.over(list(providers))
        for provider in policy:
            try:
                session = await self.authority.sign_in(email, self.derive(provider))
            except InvalidCredentialsError:
                logfire.debug(
                    "Bridge marker rejected", email=email, provider=provider.value
                )
                continue
            logfire.info(
                "Bridge marker accepted", email=email, provider=provider.value
            )
            return session, provider
        return None

    async def sign_in_or_register(
        self, email: str, secret: str, metadata: dict[str, Any] | None = None
    ) -> BridgeResult:
        """Sign in with `secret`, registering the account if it does not exist.

        A registration that loses a race with a concurrent registration for
        the same e-mail retries sign-in exactly once.

        Raises:
            BridgeExhaustedError: Both paths failed after the single retry
        """
        with logfire.span("credential_bridge.sign_in_or_register", email=email):
            try:
                session = await self.authority.sign_in(email, secret)
                return BridgeResult(session=session, is_new_authority_user=False)
            except InvalidCredentialsError:
                pass

            try:
                session = await self.authority.register(email, secret, metadata)
                logfire.info(
                    "Authority account registered through bridge",
                    email=email,
                    user_id=str(session.user_id),
                )
                return BridgeResult(session=session, is_new_authority_user=True)
            except AlreadyRegisteredError:
                logfire.info("Concurrent registration detected, retrying sign-in", email=email)
            except InvalidCredentialsError as e:
                # Registered but unconfirmed: the authority refuses the follow-up sign-in
                logfire.warn("Bridge registration left no session", email=email)
                raise BridgeExhaustedError(
                    "Could not establish a session for this account. "
                    "Confirm your e-mail address and try again."
                ) from e

            try:
                session = await self.authority.sign_in(email, secret)
                return BridgeResult(session=session, is_new_authority_user=False)
            except InvalidCredentialsError:
                logfire.warn("Credential bridge exhausted", email=email)
                raise BridgeExhaustedError(
                    "Could not establish a session for this account. "
                    "Try signing in with your password."
                )
