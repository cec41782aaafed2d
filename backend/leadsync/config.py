"""Application configuration."""

from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Optional

from leadsync.schemas.social_media import (
    FacebookConfig,
    InstagramConfig,
    LinkedInConfig,
    SocialMediaConfig,
    SocialPlatform,
)


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="ignore",
    )

    # Environment
    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "INFO"

    # Database
    DATABASE_URL: str = "sqlite:///./leadsync.db"

    # Facebook (Graph API + lead ads)
    FACEBOOK_APP_ID: Optional[str] = None
    FACEBOOK_APP_SECRET: Optional[str] = None
    FACEBOOK_ACCESS_TOKEN: Optional[str] = None
    FACEBOOK_PAGE_ID: Optional[str] = None
    FACEBOOK_WEBHOOK_VERIFY_TOKEN: Optional[str] = None
    FACEBOOK_WEBHOOK_SECRET: Optional[str] = None

    # Instagram business account
    INSTAGRAM_BUSINESS_ACCOUNT_ID: Optional[str] = None
    INSTAGRAM_ACCESS_TOKEN: Optional[str] = None
    INSTAGRAM_WEBHOOK_VERIFY_TOKEN: Optional[str] = None
    INSTAGRAM_WEBHOOK_SECRET: Optional[str] = None

    # LinkedIn marketing API
    LINKEDIN_CLIENT_ID: Optional[str] = None
    LINKEDIN_CLIENT_SECRET: Optional[str] = None
    LINKEDIN_ACCESS_TOKEN: Optional[str] = None
    LINKEDIN_ORGANIZATION_URN: Optional[str] = None
    LINKEDIN_WEBHOOK_SECRET: Optional[str] = None

    # Outbound HTTP
    GRAPH_API_VERSION: str = "v18.0"
    HTTP_TIMEOUT_SECONDS: float = 30.0

    # Lead normalization
    PHONE_DEFAULT_REGION: str = "BE"

    # Interaction sync
    SYNC_MAX_WORKERS: int = 10

    # Scheduled jobs (APScheduler cron expressions)
    ENABLE_SCHEDULED_SYNC: bool = False
    CAPTURE_SCHEDULE: str = "*/30 * * * *"  # every 30 minutes
    SYNC_SCHEDULE: str = "0 */6 * * *"  # 4x daily

    def build_social_media_config(self) -> Optional[SocialMediaConfig]:
        """
        Build the platform credential bundle from the environment.

        Only platforms whose required credentials are all present are
        included. Returns None when no platform is configured, so the
        service stays unconfigured until configured explicitly.
        """
        facebook = None
        if self.FACEBOOK_APP_ID and self.FACEBOOK_APP_SECRET and self.FACEBOOK_ACCESS_TOKEN:
            facebook = FacebookConfig(
                app_id=self.FACEBOOK_APP_ID,
                app_secret=self.FACEBOOK_APP_SECRET,
                access_token=self.FACEBOOK_ACCESS_TOKEN,
                page_id=self.FACEBOOK_PAGE_ID,
                webhook_verify_token=self.FACEBOOK_WEBHOOK_VERIFY_TOKEN,
                webhook_secret=self.FACEBOOK_WEBHOOK_SECRET,
            )

        instagram = None
        if self.INSTAGRAM_BUSINESS_ACCOUNT_ID and self.INSTAGRAM_ACCESS_TOKEN:
            instagram = InstagramConfig(
                business_account_id=self.INSTAGRAM_BUSINESS_ACCOUNT_ID,
                access_token=self.INSTAGRAM_ACCESS_TOKEN,
                webhook_verify_token=self.INSTAGRAM_WEBHOOK_VERIFY_TOKEN,
                webhook_secret=self.INSTAGRAM_WEBHOOK_SECRET,
            )

        linkedin = None
        if self.LINKEDIN_CLIENT_ID and self.LINKEDIN_CLIENT_SECRET and self.LINKEDIN_ACCESS_TOKEN:
            linkedin = LinkedInConfig(
                client_id=self.LINKEDIN_CLIENT_ID,
                client_secret=self.LINKEDIN_CLIENT_SECRET,
                access_token=self.LINKEDIN_ACCESS_TOKEN,
                organization_urn=self.LINKEDIN_ORGANIZATION_URN,
                webhook_secret=self.LINKEDIN_WEBHOOK_SECRET,
            )

        if not (facebook or instagram or linkedin):
            return None

        return SocialMediaConfig(facebook=facebook, instagram=instagram, linkedin=linkedin)

    def webhook_secret_for(self, platform: SocialPlatform) -> Optional[str]:
        """Environment fallback for webhook signing secrets."""
        return {
            SocialPlatform.FACEBOOK: self.FACEBOOK_WEBHOOK_SECRET or self.FACEBOOK_APP_SECRET,
            SocialPlatform.INSTAGRAM: self.INSTAGRAM_WEBHOOK_SECRET,
            SocialPlatform.LINKEDIN: self.LINKEDIN_WEBHOOK_SECRET or self.LINKEDIN_CLIENT_SECRET,
        }.get(platform)

    def verify_token_for(self, platform: SocialPlatform) -> Optional[str]:
        """Environment fallback for webhook subscription verify tokens."""
        return {
            SocialPlatform.FACEBOOK: self.FACEBOOK_WEBHOOK_VERIFY_TOKEN,
            SocialPlatform.INSTAGRAM: self.INSTAGRAM_WEBHOOK_VERIFY_TOKEN,
        }.get(platform)


settings = Settings()
