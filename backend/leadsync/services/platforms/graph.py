"""Shared plumbing for Meta Graph API platforms (Facebook, Instagram)."""
import logging
from typing import Any, Dict, List, Optional

from leadsync.services.platforms.base import BasePlatformClient

logger = logging.getLogger(__name__)

GRAPH_API_VERSION = "v18.0"
MAX_PAGES = 20


class GraphApiClient(BasePlatformClient):
    """Graph API client: access token as query param, cursor pagination."""

    def __init__(self, config, api_version: str = GRAPH_API_VERSION, **kwargs):
        super().__init__(config, **kwargs)
        self.api_version = api_version
        self.base_url = f"https://graph.facebook.com/{api_version}"

    def _default_params(self) -> Dict[str, Any]:
        return {"access_token": self.config.access_token}

    async def _paginate(
        self,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        operation: str = "request",
        max_pages: int = MAX_PAGES,
    ) -> List[Dict[str, Any]]:
        """
        Collect `data` items across pages by following `paging.next`.

        The next link already carries the token and cursor, so it is
        requested as-is.
        """
        items: List[Dict[str, Any]] = []
        body = await self._request("GET", path, params=params, operation=operation)

        for page in range(max_pages):
            data = body.get("data") or []
            items.extend(item for item in data if isinstance(item, dict))

            next_url = (body.get("paging") or {}).get("next")
            if not next_url or not data:
                break
            if page == max_pages - 1:
                logger.warning(f"{self.platform.value} {operation}: stopped after {max_pages} pages")
                break
            body = await self._request("GET", next_url, operation=operation, include_default_params=False)

        return items
