"""
Platform client factory and registry.
"""
from typing import Optional

import httpx

from leadsync.schemas.social_media import SocialPlatform
from leadsync.services.rate_limiter import RateLimiter
from .base import BasePlatformClient
from .facebook import FacebookClient
from .graph import GraphApiClient
from .instagram import InstagramClient
from .linkedin import LinkedInClient

# Registry of available platform clients
PLATFORM_CLIENT_REGISTRY = {
    SocialPlatform.FACEBOOK: FacebookClient,
    SocialPlatform.INSTAGRAM: InstagramClient,
    SocialPlatform.LINKEDIN: LinkedInClient,
}


def create_platform_client(
    platform: SocialPlatform,
    config,
    rate_limiter: Optional[RateLimiter] = None,
    http_client: Optional[httpx.AsyncClient] = None,
    **options,
) -> BasePlatformClient:
    """
    Factory function to create the client for a platform.

    Args:
        platform: Platform to build a client for
        config: That platform's credential bundle
        rate_limiter: Shared limiter for the platform
        http_client: Optional shared httpx client
        options: Extra client options (timeout, api_version for Graph clients)

    Returns:
        Instantiated client
    """
    client_class = PLATFORM_CLIENT_REGISTRY.get(platform)

    if not client_class:
        raise ValueError(
            f"Unsupported platform: {platform}. "
            f"Available: {[p.value for p in PLATFORM_CLIENT_REGISTRY]}"
        )

    if "api_version" in options and not issubclass(client_class, GraphApiClient):
        options.pop("api_version")

    return client_class(config, rate_limiter=rate_limiter, http_client=http_client, **options)


__all__ = [
    "BasePlatformClient",
    "FacebookClient",
    "InstagramClient",
    "LinkedInClient",
    "PLATFORM_CLIENT_REGISTRY",
    "create_platform_client",
]
