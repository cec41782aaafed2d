"""
Webhook payload handlers.

Payloads reach these handlers only after signature verification. Lead
events become contacts through the LeadProcessor; engagement events are
recorded against the contact linked to the sender's platform user id.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable, Dict, List, Optional

from leadsync.schemas.social_media import (
    InteractionType,
    LeadCaptureData,
    SocialInteractionData,
    SocialPlatform,
    WebhookHandlerResult,
)
from leadsync.services.contact_store import ContactStore
from leadsync.services.errors import PlatformApiError
from leadsync.services.interaction_sync import InteractionSyncService
from leadsync.services.lead_processor import LeadProcessor
from leadsync.services.normalization import parse_platform_timestamp, utcnow
from leadsync.services.platforms.base import BasePlatformClient

logger = logging.getLogger(__name__)

SUBSCRIBE_MODE = "subscribe"


def verify_subscription(
    platform: SocialPlatform,
    mode: Optional[str],
    token: Optional[str],
    challenge: Optional[str],
    verify_token: Optional[str],
) -> Optional[str]:
    """
    Meta subscription handshake. Returns the challenge to echo back, or None
    when the request must be rejected.
    """
    if platform not in (SocialPlatform.FACEBOOK, SocialPlatform.INSTAGRAM):
        return None
    if mode != SUBSCRIBE_MODE or not verify_token or token != verify_token:
        logger.warning(f"🚫 {platform.value} webhook subscription rejected (mode={mode})")
        return None
    logger.info(f"✅ {platform.value} webhook subscription verified")
    return challenge or ""


def _user_id(value: Any) -> Optional[str]:
    if isinstance(value, dict):
        value = value.get("id")
    return str(value) if value else None


def _dicts(items: Any, result: WebhookHandlerResult) -> List[Dict[str, Any]]:
    """Object items of a payload list; anything else counts as skipped."""
    if not isinstance(items, list):
        if items:
            result.skipped += 1
        return []
    dicts = [item for item in items if isinstance(item, dict)]
    result.skipped += len(items) - len(dicts)
    return dicts


class BaseWebhookHandler(ABC):
    """Dispatches one platform's webhook payloads."""

    platform: SocialPlatform

    def __init__(
        self,
        store: ContactStore,
        lead_processor: LeadProcessor,
        interaction_sync: InteractionSyncService,
        client: Optional[BasePlatformClient] = None,
    ):
        self.store = store
        self.lead_processor = lead_processor
        self.interaction_sync = interaction_sync
        self.client = client

    @abstractmethod
    async def handle(self, payload: Dict[str, Any]) -> WebhookHandlerResult:
        pass

    async def _isolated(self, description: str, work: Callable[[], Awaitable[None]], result: WebhookHandlerResult):
        """Run one item's handling; a failure is logged and counted, and later items still run."""
        try:
            await work()
        except Exception as e:
            result.errors += 1
            logger.error(f"❌ {self.platform.value} webhook {description} failed: {e}")

    async def _capture_lead(self, lead: LeadCaptureData, result: WebhookHandlerResult):
        result.processed += 1
        captured_on = await self.lead_processor.find_captured_contact(lead)
        if captured_on:
            # Redelivery of a lead we already have
            logger.info(f"⏭️ {self.platform.value} webhook lead already captured on contact {captured_on}")
            result.skipped += 1
            return
        contact_id = await self.lead_processor.process_lead(lead)
        result.leads_captured += 1
        logger.info(f"📥 {self.platform.value} webhook lead -> contact {contact_id}")

    async def _record_interaction(self, event: Optional[SocialInteractionData], result: WebhookHandlerResult):
        if event is None:
            result.skipped += 1
            return
        result.processed += 1

        contact = None
        if event.user_id:
            contact = await self.store.find_contact_by_social_user(self.platform, event.user_id)
        if contact is None:
            logger.info(
                f"No contact linked to {self.platform.value} user {event.user_id}; "
                f"skipping {event.type.value} {event.external_id}"
            )
            result.skipped += 1
            return

        if await self.interaction_sync.record_external_interaction(contact.id, event):
            result.interactions_recorded += 1
        else:
            result.skipped += 1


class FacebookWebhookHandler(BaseWebhookHandler):
    """Page webhooks: leadgen, feed and messaging."""

    platform = SocialPlatform.FACEBOOK

    FEED_ITEM_TYPES = {
        "like": InteractionType.SOCIAL_LIKE,
        "reaction": InteractionType.SOCIAL_LIKE,
        "comment": InteractionType.SOCIAL_COMMENT,
        "share": InteractionType.OTHER,
    }

    async def handle(self, payload: Dict[str, Any]) -> WebhookHandlerResult:
        result = WebhookHandlerResult()
        if payload.get("object") != "page":
            logger.debug(f"Ignoring Facebook webhook object {payload.get('object')}")
            return result

        for entry in _dicts(payload.get("entry"), result):
            entry_time = entry.get("time")
            for change in _dicts(entry.get("changes"), result):
                await self._isolated(
                    f"{change.get('field')} change",
                    lambda: self._handle_change(change, entry_time, result),
                    result,
                )

            for message in _dicts(entry.get("messaging"), result):
                await self._isolated(
                    "message",
                    lambda: self._record_interaction(self._message_event(message), result),
                    result,
                )

        return result

    async def _handle_change(self, change: Dict[str, Any], entry_time: Any, result: WebhookHandlerResult):
        field = change.get("field")
        value = change.get("value")
        if field not in ("leadgen", "feed") or not isinstance(value, dict):
            result.skipped += 1
            return
        if field == "leadgen":
            await self._capture_lead(await self._leadgen_lead(value), result)
        else:
            await self._record_interaction(self._feed_event(value, entry_time), result)

    async def _leadgen_lead(self, value: Dict[str, Any]) -> LeadCaptureData:
        leadgen_id = value.get("leadgen_id")
        field_data = value.get("field_data")
        if not isinstance(field_data, list):
            field_data = []

        # Real leadgen notifications carry only the id; fetch the answers
        if not field_data and leadgen_id and self.client is not None and hasattr(self.client, "get_lead"):
            try:
                lead = await self.client.get_lead(str(leadgen_id))
                return lead.model_copy(update={
                    "form_id": lead.form_id or value.get("form_id"),
                    "ad_id": lead.ad_id or value.get("ad_id"),
                })
            except PlatformApiError as e:
                logger.warning(f"⚠️ Could not fetch Facebook lead {leadgen_id}: {e}")

        mapped = BasePlatformClient.map_lead_fields(
            (field.get("name"), field.get("values")) for field in field_data or [] if isinstance(field, dict)
        )
        return LeadCaptureData(
            platform=self.platform,
            form_id=value.get("form_id"),
            ad_id=value.get("ad_id"),
            campaign_id=value.get("campaign_id"),
            metadata={
                "leadId": leadgen_id,
                "pageId": value.get("page_id"),
                "createdTime": value.get("created_time"),
            },
            **mapped,
        )

    def _feed_event(self, value: Dict[str, Any], entry_time: Any) -> Optional[SocialInteractionData]:
        item = value.get("item")
        if item:
            # edits and removals are not new engagement
            if value.get("verb", "add") != "add":
                return None
        else:
            item = value.get("verb")
        interaction_type = self.FEED_ITEM_TYPES.get(item)
        if interaction_type is None:
            return None

        user_id = _user_id(value.get("from")) or _user_id(value.get("sender_id"))
        post_id = value.get("post_id")
        external_id = value.get("comment_id") or (f"{post_id}:{item}:{user_id}" if post_id else None)
        if not external_id:
            return None

        return SocialInteractionData(
            platform=self.platform,
            type=interaction_type,
            external_id=str(external_id),
            user_id=user_id,
            user_handle=(value.get("from") or {}).get("name") if isinstance(value.get("from"), dict) else None,
            content=value.get("message"),
            metadata={"postId": post_id, "item": item, "reactionType": value.get("reaction_type")},
            timestamp=parse_platform_timestamp(value.get("created_time") or entry_time) or utcnow(),
        )

    def _message_event(self, message: Dict[str, Any]) -> Optional[SocialInteractionData]:
        body = message.get("message")
        if not isinstance(body, dict):
            return None
        mid = body.get("mid")
        if not mid:
            return None
        return SocialInteractionData(
            platform=self.platform,
            type=InteractionType.SOCIAL_MESSAGE,
            external_id=str(mid),
            user_id=_user_id(message.get("sender")),
            content=body.get("text"),
            metadata={"recipientId": _user_id(message.get("recipient"))},
            timestamp=parse_platform_timestamp(message.get("timestamp")) or utcnow(),
        )


class InstagramWebhookHandler(BaseWebhookHandler):
    """Instagram account webhooks: comments and mentions."""

    platform = SocialPlatform.INSTAGRAM

    async def handle(self, payload: Dict[str, Any]) -> WebhookHandlerResult:
        result = WebhookHandlerResult()
        if payload.get("object") != "instagram":
            logger.debug(f"Ignoring Instagram webhook object {payload.get('object')}")
            return result

        for entry in _dicts(payload.get("entry"), result):
            entry_time = entry.get("time")
            for change in _dicts(entry.get("changes"), result):
                field = change.get("field")
                value = change.get("value")
                if field not in ("comments", "mentions") or not isinstance(value, dict):
                    logger.debug(f"Instagram webhook field {field} not handled")
                    result.skipped += 1
                    continue
                await self._isolated(
                    f"{field} change",
                    lambda: self._record_interaction(
                        self._comment_event(field, value, entry_time), result
                    ),
                    result,
                )

        return result

    def _comment_event(self, field: str, value: Dict[str, Any], entry_time: Any) -> Optional[SocialInteractionData]:
        comment_id = value.get("comment_id") or value.get("id")
        if not comment_id:
            return None
        author = value.get("from") if isinstance(value.get("from"), dict) else {}
        media = value.get("media") if isinstance(value.get("media"), dict) else {}
        return SocialInteractionData(
            platform=self.platform,
            type=InteractionType.SOCIAL_COMMENT,
            external_id=str(comment_id),
            user_id=_user_id(author) or _user_id(value.get("user_id")),
            user_handle=author.get("username"),
            content=value.get("text"),
            metadata={"field": field, "mediaId": value.get("media_id") or media.get("id")},
            timestamp=parse_platform_timestamp(entry_time) or utcnow(),
        )


class LinkedInWebhookHandler(BaseWebhookHandler):
    """LinkedIn event notifications."""

    platform = SocialPlatform.LINKEDIN

    ENGAGEMENT_TYPES = {
        "LIKE": InteractionType.SOCIAL_LIKE,
        "COMMENT": InteractionType.SOCIAL_COMMENT,
        "SHARE": InteractionType.OTHER,
        "FOLLOW": InteractionType.SOCIAL_FOLLOW,
    }

    async def handle(self, payload: Dict[str, Any]) -> WebhookHandlerResult:
        result = WebhookHandlerResult()
        event_type = payload.get("eventType")
        data = payload.get("data")
        occurred_at = parse_platform_timestamp(payload.get("createdAt") or payload.get("timestamp")) or utcnow()

        if not isinstance(data, dict):
            result.skipped += 1
        elif event_type == "MEMBER_ENGAGEMENT":
            await self._isolated(
                "engagement event",
                lambda: self._record_interaction(self._engagement_event(data, occurred_at), result),
                result,
            )
        elif event_type == "LEAD_EVENT":
            await self._isolated("lead event", lambda: self._capture_lead(self._lead(data), result), result)
        elif event_type == "MESSAGE_EVENT":
            await self._isolated(
                "message event",
                lambda: self._record_interaction(self._message_event(data, occurred_at), result),
                result,
            )
        else:
            logger.debug(f"LinkedIn webhook event {event_type} not handled")
            result.skipped += 1

        return result

    def _engagement_event(self, data: Dict[str, Any], occurred_at) -> Optional[SocialInteractionData]:
        action = str(data.get("action") or "").upper()
        interaction_type = self.ENGAGEMENT_TYPES.get(action)
        entity = data.get("entityUrn")
        if interaction_type is None or not entity:
            return None
        return SocialInteractionData(
            platform=self.platform,
            type=interaction_type,
            external_id=f"{entity}:{action}",
            user_id=data.get("memberUrn"),
            content=data.get("commentText"),
            metadata={"action": action, "entityUrn": entity},
            timestamp=occurred_at,
        )

    def _lead(self, data: Dict[str, Any]) -> LeadCaptureData:
        mapped = BasePlatformClient.map_lead_fields(data.items())
        return LeadCaptureData(
            platform=self.platform,
            form_id=data.get("formUrn"),
            campaign_id=data.get("campaignUrn"),
            metadata={"leadUrn": data.get("entityUrn"), "userId": data.get("memberUrn")},
            **mapped,
        )

    def _message_event(self, data: Dict[str, Any], occurred_at) -> Optional[SocialInteractionData]:
        message_urn = data.get("messageUrn")
        if not message_urn:
            return None
        return SocialInteractionData(
            platform=self.platform,
            type=InteractionType.SOCIAL_MESSAGE,
            external_id=str(message_urn),
            user_id=data.get("senderUrn"),
            content=data.get("messageText"),
            metadata={"conversationUrn": data.get("conversationUrn")},
            timestamp=occurred_at,
        )


WEBHOOK_HANDLER_REGISTRY = {
    SocialPlatform.FACEBOOK: FacebookWebhookHandler,
    SocialPlatform.INSTAGRAM: InstagramWebhookHandler,
    SocialPlatform.LINKEDIN: LinkedInWebhookHandler,
}


def create_webhook_handler(
    platform: SocialPlatform,
    store: ContactStore,
    lead_processor: LeadProcessor,
    interaction_sync: InteractionSyncService,
    client: Optional[BasePlatformClient] = None,
) -> BaseWebhookHandler:
    handler_class = WEBHOOK_HANDLER_REGISTRY.get(platform)
    if not handler_class:
        raise ValueError(f"No webhook handler for platform: {platform.value}")
    return handler_class(store, lead_processor, interaction_sync, client=client)
