"""Instagram business account client."""
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from leadsync.schemas.social_media import (
    InteractionType,
    LeadCaptureData,
    SocialInteractionData,
    SocialPlatform,
)
from leadsync.services.normalization import parse_platform_timestamp, to_unix_timestamp, to_utc_naive
from leadsync.services.platforms.graph import GraphApiClient

logger = logging.getLogger(__name__)

# The Graph API does not expose who liked a media object, only the count,
# so per-user engagement comes from comments.
MEDIA_FIELDS = "id,media_type,timestamp,permalink,comments{id,text,timestamp,username,from}"


class InstagramClient(GraphApiClient):
    """Instagram Graph API client for a business account."""

    platform = SocialPlatform.INSTAGRAM

    def validate_config(self) -> bool:
        return bool(self.config.business_account_id and self.config.access_token)

    async def test_connection(self) -> bool:
        data = await self._request(
            "GET",
            self.config.business_account_id,
            params={"fields": "id,username"},
            operation="connection test",
        )
        return bool(data.get("id"))

    async def capture_leads(self, since: Optional[datetime] = None) -> List[LeadCaptureData]:
        # Instagram lead forms are delivered through webhooks
        return []

    async def get_interactions(
        self,
        contact_id: str,
        since: Optional[datetime] = None,
    ) -> List[SocialInteractionData]:
        since = to_utc_naive(since) if since is not None else None
        params: Dict[str, Any] = {"fields": MEDIA_FIELDS}
        if since is not None:
            params["since"] = to_unix_timestamp(since)

        media = await self._paginate(
            f"{self.config.business_account_id}/media",
            params=params,
            operation="media fetch",
        )

        events: List[SocialInteractionData] = []
        for post in media:
            events.extend(self._comment_events(post, since))

        logger.debug(f"Instagram: {len(events)} media comments for contact {contact_id}")
        return events

    def _comment_events(self, post: Dict[str, Any], since: Optional[datetime]) -> List[SocialInteractionData]:
        media_id = post.get("id")
        if not media_id:
            return []
        posted_at = parse_platform_timestamp(post.get("timestamp"))
        metadata = {
            "mediaId": media_id,
            "mediaType": post.get("media_type"),
            "permalink": post.get("permalink"),
        }

        events = []
        for comment in (post.get("comments") or {}).get("data") or []:
            comment_id = comment.get("id")
            created = parse_platform_timestamp(comment.get("timestamp")) or posted_at
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
                user_handle=comment.get("username") or author.get("username"),
                content=comment.get("text"),
                metadata=metadata,
                timestamp=created,
            ))
        return events
