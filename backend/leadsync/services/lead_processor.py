"""
Lead processor: turn captured leads into contacts.

Leads are matched to existing contacts by normalized email. A match gets a
new INFO_REQUEST interaction and a rescore; otherwise a contact is created.
"""

import logging
from typing import List, Optional, Tuple

from leadsync.config import settings
from leadsync.schemas.contact import ContactCreate, InteractionCreate, SocialProfile
from leadsync.schemas.social_media import (
    ContactStatus,
    InteractionSource,
    InteractionType,
    LeadBatchResult,
    LeadCaptureData,
    LeadSource,
)
from leadsync.services.contact_store import ContactStore
from leadsync.services.errors import DuplicateContactError, DuplicateInteractionError
from leadsync.services.interaction_sync import recalculate_contact_heat
from leadsync.services.normalization import NormalizationService, utcnow
from leadsync.services.scoring import ScoringEngine

logger = logging.getLogger(__name__)

UNKNOWN_LEAD_NAME = "Unknown Lead"

# Where each platform puts its own lead id in LeadCaptureData.metadata
LEAD_ID_KEYS = ("leadId", "responseId", "leadUrn")


def capture_external_id(lead: LeadCaptureData) -> Optional[str]:
    """External id of a lead's capture interaction, e.g. "lead:FACEBOOK:123"."""
    for key in LEAD_ID_KEYS:
        lead_id = lead.metadata.get(key)
        if lead_id:
            return f"lead:{lead.platform.value}:{lead_id}"
    return None


class LeadProcessor:
    """Create or update contacts from captured leads."""

    def __init__(self, store: ContactStore, normalizer: NormalizationService = None):
        self.store = store
        self.normalizer = normalizer or NormalizationService(default_region=settings.PHONE_DEFAULT_REGION)

    async def process_lead(self, lead: LeadCaptureData) -> str:
        """Process one lead and return the id of the contact it landed on."""
        contact_id, _ = await self.process_lead_with_outcome(lead)
        return contact_id

    async def find_captured_contact(self, lead: LeadCaptureData) -> Optional[str]:
        """Contact id a lead with the same platform lead id was already captured on."""
        capture_id = capture_external_id(lead)
        if not capture_id:
            return None
        interaction = await self.store.find_any_interaction_by_external_id(capture_id)
        return interaction.contact_id if interaction else None

    async def process_lead_with_outcome(self, lead: LeadCaptureData) -> Tuple[str, bool]:
        """
        Process one lead. Returns (contact_id, created).

        A lead whose platform lead id was already captured changes nothing
        and returns the contact it landed on the first time.
        """
        lead = self.normalizer.normalize_lead(lead)

        captured_on = await self.find_captured_contact(lead)
        if captured_on:
            logger.info(f"⏭️ {lead.platform.value} lead {capture_external_id(lead)} already captured")
            return captured_on, False

        if lead.email:
            existing = await self.store.find_contact_by_email(lead.email)
            if existing:
                await self._update_existing(existing.id, lead)
                return existing.id, False

        try:
            contact = await self.store.insert_contact(self._build_contact(lead))
        except DuplicateContactError:
            # Same email inserted between lookup and insert
            existing = await self.store.find_contact_by_email(lead.email)
            if existing is None:
                raise
            await self._update_existing(existing.id, lead)
            return existing.id, False

        try:
            await self._record_lead_capture(contact.id, lead)
        except Exception:
            # The contact row is committed; keep its score in line with what is stored
            logger.error(f"❌ Lead capture not recorded for new contact {contact.id}; rescoring")
            await recalculate_contact_heat(self.store, contact.id)
            raise

        logger.info(f"✨ New contact {contact.id} from {lead.platform.value} lead ({lead.email or 'no email'})")
        return contact.id, True

    async def _update_existing(self, contact_id: str, lead: LeadCaptureData):
        try:
            await self._record_lead_capture(contact_id, lead)
        except DuplicateInteractionError:
            logger.info(f"⏭️ {lead.platform.value} lead already recorded on contact {contact_id}")
            return
        now = utcnow()
        await self.store.update_contact(contact_id, last_interaction_at=now, updated_at=now)
        await recalculate_contact_heat(self.store, contact_id)
        logger.info(f"🔁 {lead.platform.value} lead matched existing contact {contact_id}")

    def _build_contact(self, lead: LeadCaptureData) -> ContactCreate:
        now = utcnow()
        score = ScoringEngine.score([InteractionType.INFO_REQUEST])

        custom_fields = {
            "leadCaptureSource": lead.platform.value,
            "formId": lead.form_id,
            "adId": lead.ad_id,
            "campaignId": lead.campaign_id,
        }
        custom_fields.update(lead.metadata)

        return ContactCreate(
            name=lead.name or UNKNOWN_LEAD_NAME,
            email=lead.email,
            phone=lead.phone,
            company=lead.company,
            lead_source=LeadSource.from_platform(lead.platform),
            lead_heat=ScoringEngine.classify(score),
            lead_heat_score=score,
            status=ContactStatus.UNQUALIFIED,
            notes=lead.message,
            social_profiles=[SocialProfile(
                platform=lead.platform,
                profile_url="",
                external_user_id=lead.metadata.get("userId"),
                is_connected=True,
                last_sync_at=now,
            )],
            custom_fields=custom_fields,
            created_at=now,
            updated_at=now,
            last_interaction_at=now,
        )

    async def _record_lead_capture(self, contact_id: str, lead: LeadCaptureData):
        description = f"Lead captured from {lead.platform.value}"
        if lead.form_id:
            description += f" (Form: {lead.form_id})"

        await self.store.insert_interaction(InteractionCreate(
            contact_id=contact_id,
            type=InteractionType.INFO_REQUEST,
            platform=lead.platform,
            description=description,
            source=InteractionSource.SOCIAL_MEDIA_API,
            external_id=capture_external_id(lead),
            metadata={
                "leadCaptureData": lead.model_dump(mode="json"),
                "source": InteractionSource.SOCIAL_MEDIA_API.value,
            },
            created_at=utcnow(),
        ))

    async def batch_process_leads(self, leads: List[LeadCaptureData]) -> LeadBatchResult:
        """
        Process leads one after another. A failing lead is logged and
        counted; the rest of the batch still runs.
        """
        result = LeadBatchResult()

        for lead in leads:
            result.processed += 1
            try:
                contact_id, created = await self.process_lead_with_outcome(lead)
            except Exception as e:
                result.errors += 1
                logger.error(f"❌ Failed to process {lead.platform.value} lead ({lead.email}): {e}")
                continue

            result.contact_ids.append(contact_id)
            if created:
                result.created += 1
            else:
                result.updated += 1

        logger.info(
            f"📊 Lead batch: {result.processed} processed, {result.created} created, "
            f"{result.updated} updated, {result.errors} errors"
        )
        return result
