"""
Interaction sync: pull engagement events from platforms into a contact's
history, deduplicated by external id, then rescore the contact.
"""

import asyncio
import logging
from datetime import datetime
from typing import Dict, List, Mapping, Optional, Tuple

from leadsync.config import settings
from leadsync.schemas.contact import ContactRecord, InteractionCreate, SocialProfile
from leadsync.schemas.social_media import (
    BulkSyncResult,
    InteractionSource,
    LeadHeat,
    SocialInteractionData,
    SocialPlatform,
    SyncResult,
)
from leadsync.services.contact_store import ContactStore
from leadsync.services.errors import ContactNotFoundError, DuplicateInteractionError
from leadsync.services.fan_out import fan_out
from leadsync.services.normalization import to_utc_naive, utcnow
from leadsync.services.platforms.base import BasePlatformClient
from leadsync.services.rate_limiter import PLATFORM_RATE_LIMITS
from leadsync.services.scoring import ScoringEngine

logger = logging.getLogger(__name__)


async def recalculate_contact_heat(store: ContactStore, contact_id: str) -> Tuple[int, LeadHeat]:
    """Rescore a contact from its full interaction history and persist the result."""
    types = await store.list_interaction_types(contact_id)
    score, heat = ScoringEngine.score_and_classify(types)
    await store.update_contact(contact_id, lead_heat_score=score, lead_heat=heat)
    logger.debug(f"Contact {contact_id}: {len(types)} interactions, score {score} ({heat.value})")
    return score, heat


class InteractionSyncService:
    """Sync and record platform interactions for contacts."""

    def __init__(
        self,
        store: ContactStore,
        clients: Optional[Mapping[SocialPlatform, BasePlatformClient]] = None,
        max_workers: Optional[int] = None,
    ):
        self.store = store
        self.clients: Dict[SocialPlatform, BasePlatformClient] = dict(clients or {})
        self.max_workers = max_workers or settings.SYNC_MAX_WORKERS

    def _select_clients(self, platform: Optional[SocialPlatform]) -> Dict[SocialPlatform, BasePlatformClient]:
        if platform is None:
            return dict(self.clients)
        client = self.clients.get(platform)
        if client is None:
            logger.info(f"{platform.value} is not configured; nothing to sync")
            return {}
        return {platform: client}

    @staticmethod
    def _linked_clients(
        contact: ContactRecord,
        clients: Dict[SocialPlatform, BasePlatformClient],
    ) -> Tuple[Dict[SocialPlatform, BasePlatformClient], Dict[SocialPlatform, str]]:
        linked: Dict[SocialPlatform, BasePlatformClient] = {}
        user_ids: Dict[SocialPlatform, str] = {}
        for p, client in clients.items():
            profile = contact.profile_for(p)
            if profile is None or not profile.external_user_id:
                logger.debug(f"Contact {contact.id} has no linked {p.value} user; skipping")
                continue
            linked[p] = client
            user_ids[p] = profile.external_user_id
        return linked, user_ids

    def _worker_limit(self, platform: Optional[SocialPlatform]) -> int:
        """Pool size: never more workers than the tightest platform budget allows."""
        platforms = [platform] if platform else list(self.clients)
        budgets = []
        for p in platforms:
            client = self.clients.get(p)
            if client is not None:
                budgets.append(client.rate_limiter.max_requests)
            elif p in PLATFORM_RATE_LIMITS:
                budgets.append(PLATFORM_RATE_LIMITS[p][0])
        return max(1, min([self.max_workers] + budgets))

    async def recalculate_heat(self, contact_id: str) -> Tuple[int, LeadHeat]:
        return await recalculate_contact_heat(self.store, contact_id)

    async def _persist_event(
        self,
        contact_id: str,
        event: SocialInteractionData,
        source: InteractionSource,
    ) -> bool:
        """Insert one event unless its external id is already recorded. Returns True if inserted."""
        existing = await self.store.find_interaction_by_external_id(contact_id, event.external_id)
        if existing:
            return False

        try:
            await self.store.insert_interaction(InteractionCreate(
                contact_id=contact_id,
                type=event.type,
                platform=event.platform,
                description=event.content or f"{event.type.value} on {event.platform.value}",
                source=source,
                external_id=event.external_id,
                metadata={
                    "externalId": event.external_id,
                    "userId": event.user_id,
                    "userHandle": event.user_handle,
                    "source": source.value,
                    "originalData": event.metadata,
                },
                created_at=event.timestamp,
            ))
        except DuplicateInteractionError:
            # Recorded concurrently (webhook vs. sync)
            return False
        return True

    async def _touch_contact(
        self,
        contact_id: str,
        latest_event_at: datetime,
        current_last_interaction: Optional[datetime],
        social_profiles: Optional[List[SocialProfile]] = None,
    ):
        last_interaction_at = latest_event_at
        if current_last_interaction and current_last_interaction > latest_event_at:
            last_interaction_at = current_last_interaction

        fields = {"last_interaction_at": last_interaction_at, "updated_at": utcnow()}
        if social_profiles is not None:
            fields["social_profiles"] = social_profiles
        await self.store.update_contact(contact_id, **fields)

    async def sync_contact_interactions(
        self,
        contact_id: str,
        platform: Optional[SocialPlatform] = None,
        since: Optional[datetime] = None,
    ) -> SyncResult:
        """
        Pull new interactions for one contact.

        Platforms return engagement for a whole page or account, so only
        events authored by the contact's linked user on that platform are
        kept. Platforms where the contact has no linked user id are not
        queried. Events already recorded (same external id) are skipped, so
        running the same sync twice stores each event once.

        Raises:
            ContactNotFoundError: unknown contact id
        """
        contact = await self.store.get_contact(contact_id)
        if contact is None:
            raise ContactNotFoundError(contact_id)

        since = to_utc_naive(since) if since is not None else None
        clients, user_ids = self._linked_clients(contact, self._select_clients(platform))

        fetched = await fan_out(
            clients,
            lambda client: client.get_interactions(contact_id, since),
            description=f"interaction sync for contact {contact_id}",
        )

        result = SyncResult(errors=len(fetched.failed), failed=fetched.failed)

        events: List[SocialInteractionData] = []
        for p in clients:
            events.extend(e for e in fetched.ok.get(p) or [] if e.user_id == user_ids[p])

        for event in events:
            try:
                created = await self._persist_event(contact_id, event, InteractionSource.SOCIAL_MEDIA_SYNC)
            except Exception as e:
                result.errors += 1
                logger.error(f"❌ Failed to store {event.platform.value} interaction {event.external_id}: {e}")
                continue

            if created:
                result.synced += 1
            else:
                result.skipped += 1

        # Stamp last sync on the contact's profiles for platforms that answered
        synced_at = utcnow()
        profiles = [
            profile.model_copy(update={"last_sync_at": synced_at}) if profile.platform in fetched.ok else profile
            for profile in contact.social_profiles
        ]
        profiles_changed = any(profile.platform in fetched.ok for profile in contact.social_profiles)

        if result.synced > 0:
            latest = max(event.timestamp for event in events)
            await self._touch_contact(
                contact_id,
                latest,
                contact.last_interaction_at,
                profiles if profiles_changed else None,
            )
            await self.recalculate_heat(contact_id)
        elif profiles_changed:
            await self.store.update_contact(contact_id, social_profiles=profiles)

        logger.info(
            f"🔄 Contact {contact_id}: {result.synced} synced, "
            f"{result.skipped} skipped, {result.errors} errors"
        )
        return result

    async def record_external_interaction(
        self,
        contact_id: str,
        event: SocialInteractionData,
        source: InteractionSource = InteractionSource.SOCIAL_MEDIA_WEBHOOK,
    ) -> bool:
        """
        Record a single pushed event (webhook delivery). Returns False when
        the event was already recorded.
        """
        contact = await self.store.get_contact(contact_id)
        if contact is None:
            raise ContactNotFoundError(contact_id)

        created = await self._persist_event(contact_id, event, source)
        if not created:
            logger.debug(f"Interaction {event.external_id} already recorded for contact {contact_id}")
            return False

        await self._touch_contact(contact_id, event.timestamp, contact.last_interaction_at)
        await self.recalculate_heat(contact_id)
        return True

    async def sync_all_contacts_interactions(
        self,
        since: Optional[datetime] = None,
        platform: Optional[SocialPlatform] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> BulkSyncResult:
        """
        Sync every contact through a bounded worker pool.

        With a platform filter, contacts without a profile on that platform
        are skipped and not counted. A failing contact counts as one error.
        Setting `cancel_event` stops picking up new contacts; finished work
        is kept.
        """
        contacts = await self.store.list_contacts()
        if platform is not None:
            contacts = [c for c in contacts if c.has_social_profile(platform)]

        result = BulkSyncResult()
        workers = self._worker_limit(platform)
        semaphore = asyncio.Semaphore(workers)

        logger.info(f"🚀 Syncing interactions for {len(contacts)} contacts ({workers} workers)")

        def cancelled() -> bool:
            if cancel_event is not None and cancel_event.is_set():
                result.cancelled = True
                return True
            return False

        async def sync_one(contact_id: str):
            if cancelled():
                return
            async with semaphore:
                if cancelled():
                    return
                result.total_contacts += 1
                try:
                    contact_result = await self.sync_contact_interactions(contact_id, platform, since)
                except Exception as e:
                    result.total_errors += 1
                    logger.error(f"❌ Interaction sync failed for contact {contact_id}: {e}")
                    return
                result.total_synced += contact_result.synced
                result.total_errors += contact_result.errors

        await asyncio.gather(*(sync_one(contact.id) for contact in contacts))

        if result.cancelled:
            logger.warning(f"⏹️ Interaction sync cancelled after {result.total_contacts} contacts")
        logger.info(
            f"✅ Interaction sync complete: {result.total_contacts} contacts, "
            f"{result.total_synced} synced, {result.total_errors} errors"
        )
        return result
