"""PKCE (Proof Key for Code Exchange) utilities for OAuth security."""

import hmac
import secrets
from base64 import urlsafe_b64encode
from hashlib import sha256

from passage.domain.value import PKCEContext

# 48 random bytes encode to 64 base64url characters (PKCE allows 43-128)
VERIFIER_BYTES = 48
STATE_BYTES = 16


def compute_challenge(verifier: str) -> str:
    """Compute the S256 challenge for `verifier`.

    base64url(SHA-256(verifier)) with '=' padding stripped. The urlsafe
    alphabet already maps '+/' to '-_'.
    """
    digest = sha256(verifier.encode("ascii")).digest()
    return urlsafe_b64encode(digest).rstrip(b"=").decode("ascii")


def generate() -> PKCEContext:
    """Generate a fresh PKCE context for one authorization attempt.

    PKCE prevents authorization code interception attacks by requiring
    the client to prove possession of a secret (verifier) during token
    exchange. The challenge is sent during authorization, and the verifier
    is sent during token exchange. The state token correlates the redirect
    callback with this attempt (CSRF defense).

    Returns:
        PKCE context with verifier, challenge and state

    Example:
        >>> ctx = generate()
        >>> # Send ctx.challenge and ctx.state in the authorization request
        >>> # Send ctx.verifier in the token exchange request
    """
    verifier = (
        urlsafe_b64encode(secrets.token_bytes(VERIFIER_BYTES))
        .rstrip(b"=")
        .decode("ascii")
    )
    return PKCEContext(
        verifier=verifier,
        challenge=compute_challenge(verifier),
        state=secrets.token_urlsafe(STATE_BYTES),
    )


def verify(verifier: str, challenge: str) -> bool:
    """Check `verifier` against a stored S256 `challenge`."""
    return hmac.compare_digest(compute_challenge(verifier), challenge)
