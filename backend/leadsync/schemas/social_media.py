"""Social media integration schemas: enums, platform credentials and captured data."""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from leadsync.services.normalization import parse_platform_timestamp, utcnow


class SocialPlatform(str, Enum):
    FACEBOOK = "FACEBOOK"
    INSTAGRAM = "INSTAGRAM"
    LINKEDIN = "LINKEDIN"
    TWITTER = "TWITTER"
    TIKTOK = "TIKTOK"


class LeadSource(str, Enum):
    WEBSITE = "WEBSITE"
    FACEBOOK = "FACEBOOK"
    INSTAGRAM = "INSTAGRAM"
    LINKEDIN = "LINKEDIN"
    REFERRAL = "REFERRAL"
    DIRECT = "DIRECT"
    OTHER = "OTHER"

    @classmethod
    def from_platform(cls, platform: SocialPlatform) -> "LeadSource":
        """Lead source for a capturing platform; platforms without a source map to OTHER."""
        try:
            return cls(platform.value)
        except ValueError:
            return cls.OTHER


class LeadHeat(str, Enum):
    COLD = "COLD"
    WARM = "WARM"
    HOT = "HOT"


class ContactStatus(str, Enum):
    UNQUALIFIED = "UNQUALIFIED"
    PROSPECT = "PROSPECT"
    LEAD = "LEAD"
    QUALIFIED = "QUALIFIED"
    CUSTOMER = "CUSTOMER"
    LOST = "LOST"


class InteractionType(str, Enum):
    SOCIAL_FOLLOW = "SOCIAL_FOLLOW"
    SOCIAL_LIKE = "SOCIAL_LIKE"
    SOCIAL_COMMENT = "SOCIAL_COMMENT"
    SOCIAL_MESSAGE = "SOCIAL_MESSAGE"
    WEBSITE_VISIT = "WEBSITE_VISIT"
    INFO_REQUEST = "INFO_REQUEST"
    PRICE_QUOTE = "PRICE_QUOTE"
    SITE_VISIT = "SITE_VISIT"
    EMAIL_OPEN = "EMAIL_OPEN"
    EMAIL_CLICK = "EMAIL_CLICK"
    PHONE_CALL = "PHONE_CALL"
    MEETING = "MEETING"
    OTHER = "OTHER"


class InteractionSource(str, Enum):
    """Where an interaction record came from."""
    SOCIAL_MEDIA_API = "social_media_api"
    SOCIAL_MEDIA_SYNC = "social_media_sync"
    SOCIAL_MEDIA_WEBHOOK = "social_media_webhook"
    MANUAL = "manual"


# ============================================
# PLATFORM CREDENTIALS
# ============================================

class FacebookConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    app_id: str
    app_secret: str
    access_token: str
    webhook_verify_token: Optional[str] = None
    page_id: Optional[str] = None
    webhook_secret: Optional[str] = None


class InstagramConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    business_account_id: str
    access_token: str
    webhook_verify_token: Optional[str] = None
    webhook_secret: Optional[str] = None


class LinkedInConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    client_id: str
    client_secret: str
    access_token: str
    organization_urn: Optional[str] = None
    webhook_secret: Optional[str] = None


class SocialMediaConfig(BaseModel):
    """
    Credential bundle for all platforms.

    A missing sub-bundle disables that platform. Frozen: set once through
    initialize_configuration and only read afterwards.
    """
    model_config = ConfigDict(frozen=True)

    facebook: Optional[FacebookConfig] = None
    instagram: Optional[InstagramConfig] = None
    linkedin: Optional[LinkedInConfig] = None

    def configured_platforms(self) -> Dict[SocialPlatform, BaseModel]:
        platforms = {
            SocialPlatform.FACEBOOK: self.facebook,
            SocialPlatform.INSTAGRAM: self.instagram,
            SocialPlatform.LINKEDIN: self.linkedin,
        }
        return {platform: cfg for platform, cfg in platforms.items() if cfg is not None}

    def webhook_secret_for(self, platform: SocialPlatform) -> Optional[str]:
        if platform == SocialPlatform.FACEBOOK and self.facebook:
            return self.facebook.webhook_secret or self.facebook.app_secret
        if platform == SocialPlatform.INSTAGRAM and self.instagram:
            return self.instagram.webhook_secret
        if platform == SocialPlatform.LINKEDIN and self.linkedin:
            return self.linkedin.webhook_secret or self.linkedin.client_secret
        return None

    def verify_token_for(self, platform: SocialPlatform) -> Optional[str]:
        if platform == SocialPlatform.FACEBOOK and self.facebook:
            return self.facebook.webhook_verify_token
        if platform == SocialPlatform.INSTAGRAM and self.instagram:
            return self.instagram.webhook_verify_token
        return None


# ============================================
# CAPTURED DATA
# ============================================

class LeadCaptureData(BaseModel):
    """A lead as captured from a platform, before it becomes a contact."""
    platform: SocialPlatform
    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    company: Optional[str] = None
    message: Optional[str] = None
    form_id: Optional[str] = None
    ad_id: Optional[str] = None
    campaign_id: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)


class SocialInteractionData(BaseModel):
    """An engagement event reported by a platform."""
    platform: SocialPlatform
    type: InteractionType
    external_id: str = Field(..., min_length=1)
    user_id: Optional[str] = None
    user_handle: Optional[str] = None
    user_email: Optional[str] = None
    content: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)
    timestamp: datetime = Field(default_factory=utcnow)

    @field_validator("timestamp", mode="before")
    @classmethod
    def parse_timestamp(cls, value):
        parsed = parse_platform_timestamp(value)
        if parsed is None:
            raise ValueError(f"Invalid event timestamp: {value!r}")
        return parsed


# ============================================
# OPERATION RESULTS
# ============================================

class PlatformFailure(BaseModel):
    """One platform's failure inside a fan-out operation."""
    platform: SocialPlatform
    error: str
    status_code: Optional[int] = None
    retry_after: Optional[float] = None

    @classmethod
    def from_exception(cls, platform: SocialPlatform, exc: Exception) -> "PlatformFailure":
        return cls(
            platform=platform,
            error=str(exc) or exc.__class__.__name__,
            status_code=getattr(exc, "status_code", None),
            retry_after=getattr(exc, "retry_after", None),
        )


class LeadBatchResult(BaseModel):
    processed: int = 0
    created: int = 0
    updated: int = 0
    errors: int = 0
    contact_ids: List[str] = Field(default_factory=list)


class CaptureResult(LeadBatchResult):
    leads: List[LeadCaptureData] = Field(default_factory=list)
    failed: List[PlatformFailure] = Field(default_factory=list)


class SyncResult(BaseModel):
    synced: int = 0
    skipped: int = 0
    errors: int = 0
    failed: List[PlatformFailure] = Field(default_factory=list)


class BulkSyncResult(BaseModel):
    total_contacts: int = 0
    total_synced: int = 0
    total_errors: int = 0
    cancelled: bool = False


class PlatformStatus(BaseModel):
    connected: bool
    last_sync: Optional[datetime] = None
    error: Optional[str] = None


class PlatformStatusResult(BaseModel):
    platforms: Dict[SocialPlatform, PlatformStatus] = Field(default_factory=dict)
    total_connected: int = 0


class WebhookHandlerResult(BaseModel):
    processed: int = 0
    leads_captured: int = 0
    interactions_recorded: int = 0
    skipped: int = 0
    errors: int = 0
