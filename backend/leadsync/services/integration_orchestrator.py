# backend/leadsync/services/integration_orchestrator.py
"""
Integration orchestrator.

Owns the per-platform clients built from the configured credentials and
coordinates capture, sync and status checks across them:

    configure -> capture leads (fan-out) -> LeadProcessor -> contacts
              -> sync interactions (bounded pool) -> rescore

Long-lived state (config, rate limiters, last sync times) lives in an
IntegrationState shared by every orchestrator the app creates.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional

import httpx

from leadsync.config import settings
from leadsync.schemas.social_media import (
    BulkSyncResult,
    CaptureResult,
    LeadCaptureData,
    PlatformStatus,
    PlatformStatusResult,
    SocialMediaConfig,
    SocialPlatform,
    SyncResult,
)
from leadsync.services.contact_store import ContactStore
from leadsync.services.errors import IntegrationNotConfiguredError
from leadsync.services.fan_out import FanOutResult, fan_out
from leadsync.services.interaction_sync import InteractionSyncService
from leadsync.services.lead_processor import LeadProcessor
from leadsync.services.normalization import to_utc_naive, utcnow
from leadsync.services.platforms import BasePlatformClient, create_platform_client
from leadsync.services.rate_limiter import RateLimiterRegistry
from leadsync.services.webhook_handlers import BaseWebhookHandler, create_webhook_handler

logger = logging.getLogger(__name__)


@dataclass
class IntegrationState:
    """Process-wide integration state, held by the app (not a module global)."""
    config: Optional[SocialMediaConfig] = None
    rate_limiters: RateLimiterRegistry = field(default_factory=RateLimiterRegistry)
    last_sync: Dict[SocialPlatform, datetime] = field(default_factory=dict)
    last_capture_at: Optional[datetime] = None

    @property
    def is_configured(self) -> bool:
        return self.config is not None


class IntegrationOrchestrator:
    """
    Coordinates the platform clients, the lead processor and the
    interaction sync service for one unit of work.
    """

    def __init__(
        self,
        store: ContactStore,
        state: Optional[IntegrationState] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        timeout: Optional[float] = None,
        max_workers: Optional[int] = None,
    ):
        self.store = store
        self.state = state or IntegrationState()
        self.http_client = http_client
        self.timeout = timeout or settings.HTTP_TIMEOUT_SECONDS
        self.max_workers = max_workers

        self.lead_processor = LeadProcessor(store)
        self.clients: Dict[SocialPlatform, BasePlatformClient] = {}
        self.interaction_sync = InteractionSyncService(store, {}, max_workers=max_workers)

        if self.state.config is not None:
            self._build_clients(self.state.config)

    @property
    def is_configured(self) -> bool:
        return self.state.is_configured

    def initialize_configuration(self, config: SocialMediaConfig):
        """
        Store the credential bundle and build one client per configured
        platform. Calling again replaces the previous configuration.
        """
        self.state.config = config
        self._build_clients(config)
        logger.info(
            f"⚙️ Social media integration configured: "
            f"{[platform.value for platform in self.clients] or 'no platforms'}"
        )

    def _build_clients(self, config: SocialMediaConfig):
        clients = {}
        for platform, platform_config in config.configured_platforms().items():
            clients[platform] = create_platform_client(
                platform,
                platform_config,
                rate_limiter=self.state.rate_limiters.get(platform),
                http_client=self.http_client,
                timeout=self.timeout,
                api_version=settings.GRAPH_API_VERSION,
            )
            if not clients[platform].validate_config():
                logger.warning(f"⚠️ {platform.value} credentials look incomplete")

        self.clients = clients
        self.interaction_sync = InteractionSyncService(self.store, clients, max_workers=self.max_workers)

    def _require_configured(self):
        if not self.is_configured:
            raise IntegrationNotConfiguredError()

    async def _fan_out(self, operation, description: str) -> FanOutResult:
        return await fan_out(self.clients, operation, description=description)

    async def test_platform_connections(self) -> Dict[SocialPlatform, bool]:
        """Probe every configured platform concurrently; failures read as False."""
        self._require_configured()
        probes = await self._fan_out(lambda client: client.test_connection(), "connection test")

        results = {platform: bool(ok) for platform, ok in probes.ok.items()}
        for failure in probes.failed:
            results[failure.platform] = False
        return {platform: results[platform] for platform in self.clients}

    async def capture_leads_from_all_platforms(self, since: Optional[datetime] = None) -> CaptureResult:
        """
        Capture leads from every platform concurrently and feed them to
        the lead processor. A failing platform is logged and listed in
        `failed` without affecting the others.
        """
        self._require_configured()
        started_at = utcnow()
        since = to_utc_naive(since) if since is not None else None

        captured = await self._fan_out(lambda client: client.capture_leads(since), "lead capture")

        leads: List[LeadCaptureData] = []
        for platform in self.clients:
            if platform in captured.ok:
                leads.extend(captured.ok[platform])
                self.state.last_sync[platform] = started_at

        if captured.ok:
            self.state.last_capture_at = started_at

        result = CaptureResult(leads=leads, failed=captured.failed)
        if leads:
            batch = await self.lead_processor.batch_process_leads(leads)
            result.processed = batch.processed
            result.created = batch.created
            result.updated = batch.updated
            result.errors = batch.errors
            result.contact_ids = batch.contact_ids

        logger.info(
            f"📥 Lead capture: {len(leads)} leads from {len(captured.ok)} platforms, "
            f"{len(captured.failed)} platform failures"
        )
        return result

    async def process_captured_lead(self, lead: LeadCaptureData):
        """Process a single lead (manual entry or webhook). Returns (contact_id, created)."""
        return await self.lead_processor.process_lead_with_outcome(lead)

    async def sync_contact_interactions(
        self,
        contact_id: str,
        platform: Optional[SocialPlatform] = None,
        since: Optional[datetime] = None,
    ) -> SyncResult:
        self._require_configured()
        return await self.interaction_sync.sync_contact_interactions(contact_id, platform, since)

    async def sync_all_interactions(
        self,
        since: Optional[datetime] = None,
        platform: Optional[SocialPlatform] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> BulkSyncResult:
        self._require_configured()
        result = await self.interaction_sync.sync_all_contacts_interactions(
            since=since,
            platform=platform,
            cancel_event=cancel_event,
        )
        synced_at = utcnow()
        for p in ([platform] if platform else list(self.clients)):
            if p in self.clients:
                self.state.last_sync[p] = synced_at
        return result

    async def get_platform_status(self) -> PlatformStatusResult:
        self._require_configured()
        probes = await self._fan_out(lambda client: client.test_connection(), "connection test")
        errors = {failure.platform: failure.error for failure in probes.failed}

        platforms = {}
        for platform in self.clients:
            platforms[platform] = PlatformStatus(
                connected=bool(probes.ok.get(platform, False)),
                last_sync=self.state.last_sync.get(platform),
                error=errors.get(platform),
            )

        return PlatformStatusResult(
            platforms=platforms,
            total_connected=sum(1 for status in platforms.values() if status.connected),
        )

    def webhook_handler(self, platform: SocialPlatform) -> BaseWebhookHandler:
        """Handler for a platform's webhook payloads; works before configuration too."""
        return create_webhook_handler(
            platform,
            self.store,
            self.lead_processor,
            self.interaction_sync,
            client=self.clients.get(platform),
        )

    def webhook_secret_for(self, platform: SocialPlatform) -> Optional[str]:
        if self.state.config is not None:
            secret = self.state.config.webhook_secret_for(platform)
            if secret:
                return secret
        return settings.webhook_secret_for(platform)

    def verify_token_for(self, platform: SocialPlatform) -> Optional[str]:
        if self.state.config is not None:
            token = self.state.config.verify_token_for(platform)
            if token:
                return token
        return settings.verify_token_for(platform)
