"""Contact and interaction records as seen by the services."""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from leadsync.schemas.social_media import (
    ContactStatus,
    InteractionSource,
    InteractionType,
    LeadHeat,
    LeadSource,
    SocialPlatform,
)


class SocialProfile(BaseModel):
    platform: SocialPlatform
    profile_url: str = ""
    username: Optional[str] = None
    external_user_id: Optional[str] = None
    is_connected: bool = True
    last_sync_at: Optional[datetime] = None


class ContactCreate(BaseModel):
    name: str = "Unknown Lead"
    email: Optional[str] = None
    phone: Optional[str] = None
    company: Optional[str] = None
    lead_source: LeadSource = LeadSource.OTHER
    lead_heat: LeadHeat = LeadHeat.COLD
    lead_heat_score: int = Field(default=0, ge=0)
    status: ContactStatus = ContactStatus.UNQUALIFIED
    notes: Optional[str] = None
    social_profiles: List[SocialProfile] = Field(default_factory=list)
    custom_fields: Dict[str, Any] = Field(default_factory=dict)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    last_interaction_at: Optional[datetime] = None


class ContactRecord(ContactCreate):
    id: str
    created_at: datetime
    updated_at: datetime

    def profile_for(self, platform: SocialPlatform) -> Optional[SocialProfile]:
        for profile in self.social_profiles:
            if profile.platform == platform:
                return profile
        return None

    def has_social_profile(self, platform: SocialPlatform) -> bool:
        return self.profile_for(platform) is not None


class InteractionCreate(BaseModel):
    contact_id: str
    type: InteractionType
    platform: Optional[SocialPlatform] = None
    description: Optional[str] = None
    source: InteractionSource = InteractionSource.MANUAL
    external_id: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)
    created_at: Optional[datetime] = None
    created_by: Optional[str] = None


class InteractionRecord(InteractionCreate):
    id: str
    created_at: datetime
