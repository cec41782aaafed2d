"""APScheduler configuration for periodic lead capture and interaction sync."""

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
import logging

from leadsync.config import settings
from leadsync.database import SessionLocal
from leadsync.services.contact_store import SQLAlchemyContactStore
from leadsync.services.integration_orchestrator import IntegrationOrchestrator, IntegrationState

logger = logging.getLogger(__name__)

# Create scheduler instance
scheduler = AsyncIOScheduler()


async def run_scheduled_capture(state: IntegrationState):
    """
    Capture new leads from every configured platform.
    Picks up from the previous successful capture.
    """
    if not state.is_configured:
        logger.info("Skipping scheduled lead capture: integration not configured")
        return

    logger.info("Running scheduled lead capture...")
    db = SessionLocal()
    try:
        orchestrator = IntegrationOrchestrator(SQLAlchemyContactStore(db), state=state)
        result = await orchestrator.capture_leads_from_all_platforms(since=state.last_capture_at)
        logger.info(
            f"Scheduled capture: {len(result.leads)} leads, {result.created} created, "
            f"{result.updated} updated, {len(result.failed)} platform failures"
        )
    except Exception as e:
        logger.error(f"Error in scheduled lead capture: {e}")
    finally:
        db.close()


async def run_scheduled_sync(state: IntegrationState):
    """Sync interactions for all contacts."""
    if not state.is_configured:
        logger.info("Skipping scheduled interaction sync: integration not configured")
        return

    logger.info("Running scheduled interaction sync...")
    db = SessionLocal()
    try:
        orchestrator = IntegrationOrchestrator(SQLAlchemyContactStore(db), state=state)
        result = await orchestrator.sync_all_interactions()
        logger.info(
            f"Scheduled sync: {result.total_contacts} contacts, "
            f"{result.total_synced} synced, {result.total_errors} errors"
        )
    except Exception as e:
        logger.error(f"Error in scheduled interaction sync: {e}")
    finally:
        db.close()


def start_scheduler(state: IntegrationState):
    """
    Initialize and start the APScheduler.

    Jobs:
    - Lead capture: CAPTURE_SCHEDULE (default every 30 minutes)
    - Interaction sync: SYNC_SCHEDULE (default 4x daily)
    """
    if not settings.ENABLE_SCHEDULED_SYNC:
        logger.info("Scheduled sync disabled (ENABLE_SCHEDULED_SYNC=false)")
        return

    if scheduler.running:
        logger.info("Scheduler already running")
        return

    scheduler.add_job(
        run_scheduled_capture,
        trigger=CronTrigger.from_crontab(settings.CAPTURE_SCHEDULE),
        args=[state],
        id="social_lead_capture",
        name="Social Lead Capture",
        replace_existing=True,
        max_instances=1,
    )
    logger.info(f"✅ Scheduled: Social Lead Capture ({settings.CAPTURE_SCHEDULE})")

    scheduler.add_job(
        run_scheduled_sync,
        trigger=CronTrigger.from_crontab(settings.SYNC_SCHEDULE),
        args=[state],
        id="social_interaction_sync",
        name="Social Interaction Sync",
        replace_existing=True,
        max_instances=1,
    )
    logger.info(f"✅ Scheduled: Social Interaction Sync ({settings.SYNC_SCHEDULE})")

    scheduler.start()
    logger.info("✅ APScheduler started successfully!")


def shutdown_scheduler():
    if scheduler.running:
        scheduler.shutdown(wait=False)
        logger.info("APScheduler stopped")
