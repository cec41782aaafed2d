"""LinkedIn marketing API client (lead gen forms)."""
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from leadsync.schemas.social_media import LeadCaptureData, SocialInteractionData, SocialPlatform
from leadsync.services.errors import PlatformApiError, RateLimitExceededError
from leadsync.services.normalization import parse_platform_timestamp, to_utc_naive
from leadsync.services.platforms.base import BasePlatformClient

logger = logging.getLogger(__name__)


class LinkedInClient(BasePlatformClient):
    """LinkedIn v2 REST client."""

    platform = SocialPlatform.LINKEDIN
    base_url = "https://api.linkedin.com/v2"

    def _default_headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.config.access_token}",
            "X-Restli-Protocol-Version": "2.0.0",
        }

    def validate_config(self) -> bool:
        return bool(self.config.client_id and self.config.client_secret and self.config.access_token)

    async def test_connection(self) -> bool:
        data = await self._request("GET", "me", operation="connection test")
        return bool(data.get("id"))

    async def capture_leads(self, since: Optional[datetime] = None) -> List[LeadCaptureData]:
        since = to_utc_naive(since) if since is not None else None

        form_params: Dict[str, Any] = {}
        if self.config.organization_urn:
            form_params = {"q": "account", "account": self.config.organization_urn}
        forms = (await self._request("GET", "adForms", params=form_params, operation="lead form listing")).get("elements") or []

        leads: List[LeadCaptureData] = []
        for form in forms:
            form_urn = form.get("urn") or form.get("id")
            if not form_urn:
                continue
            try:
                body = await self._request(
                    "GET",
                    "adFormResponses",
                    params={"q": "form", "form": str(form_urn)},
                    operation="lead fetch",
                )
            except RateLimitExceededError:
                raise
            except PlatformApiError as e:
                logger.warning(f"⚠️ Skipping LinkedIn lead form {form_urn}: {e}")
                continue

            for response in body.get("elements") or []:
                submitted_at = parse_platform_timestamp(response.get("submittedAt"))
                if since is not None and submitted_at is not None and submitted_at < since:
                    continue
                leads.append(self._lead_from_response(response, str(form_urn)))

        logger.info(f"📥 LinkedIn: captured {len(leads)} leads from {len(forms)} forms")
        return leads

    def _lead_from_response(self, response: Dict[str, Any], form_urn: str) -> LeadCaptureData:
        answers = response.get("answers") or []
        mapped = self.map_lead_fields(
            (answer.get("name") or answer.get("question"), answer.get("answer") or answer.get("value"))
            for answer in answers
            if isinstance(answer, dict)
        )
        return LeadCaptureData(
            platform=self.platform,
            form_id=form_urn,
            campaign_id=response.get("campaign"),
            metadata={
                "responseId": response.get("id"),
                "submittedAt": response.get("submittedAt"),
                "answers": answers,
            },
            **mapped,
        )

    async def get_interactions(
        self,
        contact_id: str,
        since: Optional[datetime] = None,
    ) -> List[SocialInteractionData]:
        # Member engagement requires Sales Navigator access; the call still
        # counts against the budget.
        self.rate_limiter.acquire()
        logger.debug(f"LinkedIn interaction sync not available for contact {contact_id}")
        return []
