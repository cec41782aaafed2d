"""
Base client interface for social media platforms.
All platform clients must implement this interface.
"""
import logging
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Tuple

import httpx

from leadsync.schemas.social_media import LeadCaptureData, SocialInteractionData, SocialPlatform
from leadsync.services.errors import (
    DEFAULT_RETRY_AFTER_SECONDS,
    PlatformApiError,
    RateLimitExceededError,
)
from leadsync.services.rate_limiter import RateLimiter

logger = logging.getLogger(__name__)


# Platform form field name -> LeadCaptureData field
LEAD_FIELD_ALIASES: Dict[str, str] = {
    "email": "email",
    "email_address": "email",
    "emailaddress": "email",
    "full_name": "name",
    "name": "name",
    "phone_number": "phone",
    "phone": "phone",
    "phonenumber": "phone",
    "company_name": "company",
    "company": "company",
    "companyname": "company",
    "message": "message",
}

FIRST_NAME_FIELDS = ("first_name", "firstname")
LAST_NAME_FIELDS = ("last_name", "lastname")


def _field_value(value: Any) -> Optional[str]:
    """Form answers arrive as scalars or single-item lists."""
    if isinstance(value, (list, tuple)):
        value = value[0] if value else None
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _parse_retry_after(header: Optional[str]) -> float:
    try:
        return max(float(header), 0.0)
    except (TypeError, ValueError):
        return DEFAULT_RETRY_AFTER_SECONDS


class BasePlatformClient(ABC):
    """
    Abstract base class for all platform clients.

    Every network call goes through _request(), which takes a slot from the
    platform's rate limiter before any I/O and turns HTTP failures into
    PlatformApiError.
    """

    platform: SocialPlatform
    base_url: str = ""

    def __init__(
        self,
        config,
        rate_limiter: Optional[RateLimiter] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        timeout: float = 30.0,
    ):
        """
        Args:
            config: Platform credential bundle
            rate_limiter: Shared limiter for this platform (one is created if omitted)
            http_client: Optional shared client; a short-lived one is used per call otherwise
            timeout: Request timeout in seconds
        """
        self.config = config
        self.rate_limiter = rate_limiter or RateLimiter.for_platform(self.platform)
        self.http_client = http_client
        self.timeout = timeout
        self.request_count = 0

    @abstractmethod
    def validate_config(self) -> bool:
        """Check that the required credentials are present. No network I/O."""
        pass

    @abstractmethod
    async def test_connection(self) -> bool:
        """
        Probe the platform with the configured credentials.

        Raises:
            PlatformApiError: the probe request failed
        """
        pass

    @abstractmethod
    async def capture_leads(self, since: Optional[datetime] = None) -> List[LeadCaptureData]:
        """Fetch leads created at or after `since` (all available when None)."""
        pass

    @abstractmethod
    async def get_interactions(
        self,
        contact_id: str,
        since: Optional[datetime] = None,
    ) -> List[SocialInteractionData]:
        """Fetch engagement events that occurred at or after `since`."""
        pass

    def _default_headers(self) -> Dict[str, str]:
        return {}

    def _default_params(self) -> Dict[str, Any]:
        return {}

    def _build_url(self, path: str) -> str:
        if path.startswith("http://") or path.startswith("https://"):
            return path
        return f"{self.base_url.rstrip('/')}/{path.lstrip('/')}"

    async def _request(
        self,
        method: str,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        operation: str = "request",
        include_default_params: bool = True,
    ) -> Dict[str, Any]:
        """
        Rate-limited API call returning the decoded JSON body.

        Args:
            method: HTTP method
            path: Path relative to base_url, or an absolute URL (pagination links)
            params: Query parameters
            operation: Human-readable name used in errors and logs
            include_default_params: Add auth params; off for pre-signed paging URLs

        Raises:
            RateLimitExceededError: local budget exhausted, or HTTP 429
            PlatformApiError: transport failure or non-2xx status
        """
        self.rate_limiter.acquire()

        url = self._build_url(path)
        query = dict(self._default_params()) if include_default_params else {}
        query.update(params or {})
        headers = self._default_headers()

        self.request_count += 1
        logger.debug(f"{self.platform.value} {method} {url} ({operation})")

        try:
            if self.http_client is not None:
                response = await self.http_client.request(
                    method, url, params=query or None, headers=headers, timeout=self.timeout
                )
            else:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    response = await client.request(method, url, params=query or None, headers=headers)
        except httpx.HTTPError as e:
            raise PlatformApiError(self.platform, f"{operation} failed: {e}") from e

        if response.status_code == 429:
            retry_after = _parse_retry_after(response.headers.get("Retry-After"))
            logger.warning(f"⚠️ {self.platform.value} returned 429 during {operation}, retry after {retry_after:.0f}s")
            raise RateLimitExceededError(self.platform, retry_after=retry_after)

        if response.status_code >= 400:
            raise PlatformApiError(
                self.platform,
                f"{operation} failed: {self._error_message(response)}",
                status_code=response.status_code,
            )

        try:
            body = response.json()
        except ValueError:
            return {}
        return body if isinstance(body, dict) else {"data": body}

    @staticmethod
    def _error_message(response: httpx.Response) -> str:
        try:
            body = response.json()
        except ValueError:
            return response.text[:200] or response.reason_phrase
        error = body.get("error") if isinstance(body, dict) else None
        if isinstance(error, dict):
            return error.get("message") or str(error)
        if isinstance(body, dict) and body.get("message"):
            return str(body["message"])
        return response.reason_phrase or f"HTTP {response.status_code}"

    @staticmethod
    def map_lead_fields(fields: Iterable[Tuple[str, Any]]) -> Dict[str, Optional[str]]:
        """
        Map platform form fields onto lead attributes.

        Field names match case-insensitively. Unknown fields are ignored and
        missing ones come back as None; first/last name pairs are joined
        when no full name is given.
        """
        mapped: Dict[str, Optional[str]] = {
            "name": None,
            "email": None,
            "phone": None,
            "company": None,
            "message": None,
        }
        first_name = last_name = None

        for raw_name, raw_value in fields:
            if not isinstance(raw_name, str):
                continue
            name = raw_name.strip().lower()
            value = _field_value(raw_value)
            if value is None:
                continue

            if name in FIRST_NAME_FIELDS:
                first_name = value
            elif name in LAST_NAME_FIELDS:
                last_name = value
            else:
                target = LEAD_FIELD_ALIASES.get(name)
                if target and mapped[target] is None:
                    mapped[target] = value

        if mapped["name"] is None and (first_name or last_name):
            mapped["name"] = " ".join(part for part in (first_name, last_name) if part)

        return mapped

    def __repr__(self):
        return f"<{self.__class__.__name__}(platform={self.platform.value})>"
