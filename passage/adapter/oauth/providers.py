"""Endpoint and payload profiles for supported OAuth 2.0 providers."""

from dataclasses import dataclass, field
from typing import Any, Callable, Literal

from passage.domain.value import AuthProvider, ProviderIdentity


def high_quality_twitter_avatar(url: str | None) -> str | None:
    """Swap Twitter's 48px `_normal` avatar for the 400x400 rendition."""
    if not url:
        return None
    return url.replace("_normal.", "_400x400.")


def parse_twitter_identity(payload: dict[str, Any]) -> ProviderIdentity:
    """Map a Twitter `/2/users/me` response to a provider identity.

    Raises:
        KeyError: If `data.id` or `data.username` is missing
    """
    data = payload["data"]
    username = data["username"]
    return ProviderIdentity(
        provider=AuthProvider.TWITTER,
        provider_user_id=str(data["id"]),
        handle=username.lstrip("@"),
        display_name=data.get("name") or username,
        email=data.get("email"),  # Only present when the app is approved for it
        avatar_url=high_quality_twitter_avatar(data.get("profile_image_url")),
        verified=bool(data.get("verified", False)),
    )


def parse_google_identity(payload: dict[str, Any]) -> ProviderIdentity:
    """Map a Google OpenID userinfo response to a provider identity.

    Google has no username; the e-mail local part stands in for one.

    Raises:
        KeyError: If `sub` is missing or no handle can be derived
    """
    email = payload.get("email")
    handle = email.split("@")[0] if email else payload.get("given_name")
    if not handle:
        raise KeyError("email")
    return ProviderIdentity(
        provider=AuthProvider.GOOGLE,
        provider_user_id=str(payload["sub"]),
        handle=handle,
        display_name=payload.get("name") or handle,
        email=email,
        avatar_url=payload.get("picture"),
        verified=bool(payload.get("email_verified", False)),
    )


@dataclass(frozen=True)
class ProviderProfile:
    """Static description of one provider's OAuth 2.0 surface.

    Attributes:
        provider: Provider tag
        authorize_url: Authorization endpoint
        token_url: Token endpoint
        identity_url: Endpoint returning the signed-in user
        default_scopes: Scopes requested when the caller passes none
        client_auth: How client credentials reach the token endpoint
        identity_params: Query parameters for the identity request
        parse_identity: Maps the identity response to a ProviderIdentity
    """

    provider: AuthProvider
    authorize_url: str
    token_url: str
    identity_url: str
    default_scopes: tuple[str, ...]
    client_auth: Literal["basic", "body"]
    parse_identity: Callable[[dict[str, Any]], ProviderIdentity]
    identity_params: dict[str, str] = field(default_factory=dict)


TWITTER = ProviderProfile(
    provider=AuthProvider.TWITTER,
    authorize_url="https://twitter.com/i/oauth2/authorize",
    token_url="https://api.twitter.com/2/oauth2/token",
    identity_url="https://api.twitter.com/2/users/me",
    default_scopes=("tweet.read", "users.read", "offline.access"),
    client_auth="basic",
    identity_params={"user.fields": "id,name,username,profile_image_url,verified"},
    parse_identity=parse_twitter_identity,
)

GOOGLE = ProviderProfile(
    provider=AuthProvider.GOOGLE,
    authorize_url="https://accounts.google.com/o/oauth2/v2/auth",
    token_url="https://oauth2.googleapis.com/token",
    identity_url="https://openidconnect.googleapis.com/v1/userinfo",
    default_scopes=("openid", "email", "profile"),
    client_auth="body",
    parse_identity=parse_google_identity,
)

# Apple only exists as a legacy bridge provider; it has no profile here.
PROFILES: dict[AuthProvider, ProviderProfile] = {
    AuthProvider.TWITTER: TWITTER,
    AuthProvider.GOOGLE: GOOGLE,
}
