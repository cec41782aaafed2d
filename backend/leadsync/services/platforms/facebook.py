"""
Facebook client: lead ads via the Graph API plus page feed engagement.
"""
import json
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from leadsync.schemas.social_media import (
    InteractionType,
    LeadCaptureData,
    SocialInteractionData,
    SocialPlatform,
)
from leadsync.services.errors import PlatformApiError, RateLimitExceededError
from leadsync.services.normalization import parse_platform_timestamp, to_unix_timestamp, to_utc_naive
from leadsync.services.platforms.graph import GraphApiClient

logger = logging.getLogger(__name__)

LEAD_FIELDS = "id,created_time,ad_id,campaign_id,form_id,field_data"
FEED_FIELDS = (
    "id,created_time,"
    "comments.limit(100){id,from,message,created_time},"
    "reactions.limit(100){id,name,type}"
)


class FacebookClient(GraphApiClient):
    """Facebook page / lead ads client."""

    platform = SocialPlatform.FACEBOOK

    @property
    def account_id(self) -> str:
        """Lead forms and feed hang off the page when one is configured."""
        return self.config.page_id or self.config.app_id

    def validate_config(self) -> bool:
        return bool(self.config.app_id and self.config.app_secret and self.config.access_token)

    async def test_connection(self) -> bool:
        data = await self._request("GET", "me", params={"fields": "id,name"}, operation="connection test")
        connected = bool(data.get("id"))
        if connected:
            logger.info(f"✅ Facebook connected as {data.get('name') or data['id']}")
        return connected

    async def capture_leads(self, since: Optional[datetime] = None) -> List[LeadCaptureData]:
        forms = await self._paginate(
            f"{self.account_id}/leadgen_forms",
            params={"fields": "id,name"},
            operation="lead form listing",
        )

        params: Dict[str, Any] = {"fields": LEAD_FIELDS}
        if since is not None:
            # GREATER_THAN is exclusive; step back one second to include `since`
            params["filtering"] = json.dumps([{
                "field": "time_created",
                "operator": "GREATER_THAN",
                "value": to_unix_timestamp(since) - 1,
            }])

        leads: List[LeadCaptureData] = []
        for form in forms:
            form_id = form.get("id")
            if not form_id:
                continue
            try:
                records = await self._paginate(f"{form_id}/leads", params=params, operation="lead fetch")
            except RateLimitExceededError:
                raise
            except PlatformApiError as e:
                logger.warning(f"⚠️ Skipping Facebook lead form {form_id}: {e}")
                continue

            for record in records:
                leads.append(self._lead_from_record(record, form_id=form_id, form_name=form.get("name")))

        logger.info(f"📥 Facebook: captured {len(leads)} leads from {len(forms)} forms")
        return leads

    async def get_lead(self, leadgen_id: str) -> LeadCaptureData:
        """Fetch a single lead by id (webhooks only deliver the id)."""
        record = await self._request("GET", leadgen_id, params={"fields": LEAD_FIELDS}, operation="lead fetch")
        return self._lead_from_record(record, form_id=record.get("form_id"))

    def _lead_from_record(
        self,
        record: Dict[str, Any],
        form_id: Optional[str] = None,
        form_name: Optional[str] = None,
    ) -> LeadCaptureData:
        field_data = record.get("field_data") or []
        mapped = self.map_lead_fields(
            (field.get("name"), field.get("values")) for field in field_data if isinstance(field, dict)
        )
        metadata = {
            "leadId": record.get("id"),
            "createdTime": record.get("created_time"),
            "fieldData": field_data,
        }
        if form_name:
            metadata["formName"] = form_name

        return LeadCaptureData(
            platform=self.platform,
            form_id=form_id or record.get("form_id"),
            ad_id=record.get("ad_id"),
            campaign_id=record.get("campaign_id"),
            metadata=metadata,
            **mapped,
        )

    async def get_interactions(
        self,
        contact_id: str,
        since: Optional[datetime] = None,
    ) -> List[SocialInteractionData]:
        since = to_utc_naive(since) if since is not None else None
        params: Dict[str, Any] = {"fields": FEED_FIELDS}
        if since is not None:
            params["since"] = to_unix_timestamp(since)

        posts = await self._paginate(f"{self.account_id}/feed", params=params, operation="feed fetch")

        events: List[SocialInteractionData] = []
        for post in posts:
            events.extend(self._post_events(post, since))

        logger.debug(f"Facebook: {len(events)} feed events for contact {contact_id}")
        return events

    def _post_events(self, post: Dict[str, Any], since: Optional[datetime]) -> List[SocialInteractionData]:
        post_id = post.get("id")
        if not post_id:
            return []
        post_time = parse_platform_timestamp(post.get("created_time"))
        events = []

        for comment in (post.get("comments") or {}).get("data") or []:
            comment_id = comment.get("id")
            created = parse_platform_timestamp(comment.get("created_time")) or post_time
            if not comment_id or created is None:
                continue
            if since is not None and created < since:
                continue
            author = comment.get("from") or {}
            events.append(SocialInteractionData(
                platform=self.platform,
                type=InteractionType.SOCIAL_COMMENT,
                external_id=comment_id,
                user_id=author.get("id"),
                user_handle=author.get("name"),
                content=comment.get("message"),
                metadata={"postId": post_id},
                timestamp=created,
            ))

        # Reactions carry no timestamp of their own
        if post_time is not None:
            for reaction in (post.get("reactions") or {}).get("data") or []:
                user_id = reaction.get("id")
                if not user_id:
                    continue
                events.append(SocialInteractionData(
                    platform=self.platform,
                    type=InteractionType.SOCIAL_LIKE,
                    external_id=f"{post_id}:reaction:{user_id}",
                    user_id=user_id,
                    user_handle=reaction.get("name"),
                    metadata={"postId": post_id, "reactionType": reaction.get("type")},
                    timestamp=post_time,
                ))

        return events
