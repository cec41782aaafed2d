"""Pydantic schemas for request/response validation."""

from pydantic import BaseModel, EmailStr, Field
from typing import Optional, Dict, Any, List
from datetime import datetime

from leadsync.schemas.social_media import (  # noqa: F401
    BulkSyncResult,
    CaptureResult,
    ContactStatus,
    FacebookConfig,
    InstagramConfig,
    InteractionSource,
    InteractionType,
    LeadBatchResult,
    LeadCaptureData,
    LeadHeat,
    LeadSource,
    LinkedInConfig,
    PlatformFailure,
    PlatformStatus,
    PlatformStatusResult,
    SocialInteractionData,
    SocialMediaConfig,
    SocialPlatform,
    SyncResult,
    WebhookHandlerResult,
)
from leadsync.schemas.contact import (  # noqa: F401
    ContactCreate,
    ContactRecord,
    InteractionCreate,
    InteractionRecord,
    SocialProfile,
)


# Social media API request/response schemas
class ConfigureResponse(BaseModel):
    success: bool = True
    platforms: List[SocialPlatform]


class ConnectionsResponse(BaseModel):
    connections: Dict[SocialPlatform, bool]
    total_platforms: int
    connected_platforms: int


class CaptureRequest(BaseModel):
    """Capture leads created at or after `since` (all available when omitted)."""
    since: Optional[datetime] = None


class ManualLeadRequest(BaseModel):
    """Lead submitted by hand or by an external form integration."""
    platform: SocialPlatform
    name: Optional[str] = Field(None, max_length=255)
    email: Optional[EmailStr] = None
    phone: Optional[str] = Field(None, max_length=50)
    company: Optional[str] = Field(None, max_length=255)
    message: Optional[str] = None
    form_id: Optional[str] = None
    ad_id: Optional[str] = None
    campaign_id: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)

    def to_lead(self) -> LeadCaptureData:
        return LeadCaptureData(**self.model_dump())


class ManualLeadResponse(BaseModel):
    contact_id: str
    created: bool


class SyncRequest(BaseModel):
    platform: Optional[SocialPlatform] = None
    since: Optional[datetime] = None


class WebhookAck(BaseModel):
    success: bool = True
    result: WebhookHandlerResult
