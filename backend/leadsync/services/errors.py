"""Error types raised by platform clients, the contact store and the integration layer."""

from typing import Optional

from leadsync.schemas.social_media import SocialPlatform

DEFAULT_RETRY_AFTER_SECONDS = 3600.0


class IntegrationError(Exception):
    """Base class for social media integration errors."""


class IntegrationNotConfiguredError(IntegrationError):
    """Raised when an operation runs before initialize_configuration."""

    def __init__(self, message: str = "Social media configuration not initialized"):
        super().__init__(message)


class PlatformApiError(IntegrationError):
    """A platform API call failed (HTTP error status or transport failure)."""

    def __init__(
        self,
        platform: SocialPlatform,
        message: str,
        status_code: Optional[int] = None,
        retry_after: Optional[float] = None,
    ):
        self.platform = platform
        self.message = message
        self.status_code = status_code
        self.retry_after = retry_after
        super().__init__(f"{platform.value} API error: {message}")


class RateLimitExceededError(PlatformApiError):
    """Local or remote rate limit hit; retry after `retry_after` seconds."""

    def __init__(self, platform: SocialPlatform, retry_after: Optional[float] = None):
        if retry_after is None:
            retry_after = DEFAULT_RETRY_AFTER_SECONDS
        super().__init__(
            platform,
            f"Rate limit exceeded, retry after {retry_after:.0f}s",
            status_code=429,
            retry_after=retry_after,
        )


class ContactNotFoundError(IntegrationError):
    """The referenced contact does not exist."""

    def __init__(self, contact_id: str):
        self.contact_id = contact_id
        super().__init__(f"Contact not found: {contact_id}")


class DuplicateContactError(IntegrationError):
    """A contact with the same email already exists."""

    def __init__(self, email: str):
        self.email = email
        super().__init__(f"Contact already exists for email: {email}")


class DuplicateInteractionError(IntegrationError):
    """The contact already has an interaction with this external id."""

    def __init__(self, contact_id: str, external_id: str):
        self.contact_id = contact_id
        self.external_id = external_id
        super().__init__(f"Interaction {external_id} already recorded for contact {contact_id}")
