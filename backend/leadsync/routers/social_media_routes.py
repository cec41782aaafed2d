"""
Social Media Integration Routes
===============================
Configure platform credentials, check connections, capture leads and
sync contact interactions.
"""
from fastapi import APIRouter, Depends, HTTPException, status
from typing import Optional
import logging

from leadsync.dependencies import get_orchestrator
from leadsync.schemas import (
    BulkSyncResult,
    CaptureRequest,
    CaptureResult,
    ConfigureResponse,
    ConnectionsResponse,
    ManualLeadRequest,
    ManualLeadResponse,
    PlatformStatusResult,
    SocialMediaConfig,
    SyncRequest,
    SyncResult,
)
from leadsync.services.errors import ContactNotFoundError, IntegrationNotConfiguredError
from leadsync.services.integration_orchestrator import IntegrationOrchestrator

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/social-media", tags=["Social Media"])


def _not_configured(e: IntegrationNotConfiguredError) -> HTTPException:
    return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))


@router.post("/configure", response_model=ConfigureResponse)
async def configure_integration(
    config: SocialMediaConfig,
    orchestrator: IntegrationOrchestrator = Depends(get_orchestrator),
):
    """Set platform credentials. Replaces any previous configuration."""
    orchestrator.initialize_configuration(config)
    return ConfigureResponse(platforms=list(orchestrator.clients))


@router.get("/connections", response_model=ConnectionsResponse)
async def test_connections(orchestrator: IntegrationOrchestrator = Depends(get_orchestrator)):
    """Probe every configured platform."""
    try:
        connections = await orchestrator.test_platform_connections()
    except IntegrationNotConfiguredError as e:
        raise _not_configured(e)

    return ConnectionsResponse(
        connections=connections,
        total_platforms=len(connections),
        connected_platforms=sum(1 for ok in connections.values() if ok),
    )


@router.get("/status", response_model=PlatformStatusResult)
async def platform_status(orchestrator: IntegrationOrchestrator = Depends(get_orchestrator)):
    try:
        return await orchestrator.get_platform_status()
    except IntegrationNotConfiguredError as e:
        raise _not_configured(e)


@router.post("/capture", response_model=CaptureResult)
async def capture_leads(
    request: Optional[CaptureRequest] = None,
    orchestrator: IntegrationOrchestrator = Depends(get_orchestrator),
):
    """Capture leads from all configured platforms."""
    try:
        return await orchestrator.capture_leads_from_all_platforms(since=request.since if request else None)
    except IntegrationNotConfiguredError as e:
        raise _not_configured(e)


@router.post("/leads", response_model=ManualLeadResponse, status_code=status.HTTP_201_CREATED)
async def create_lead(
    lead: ManualLeadRequest,
    orchestrator: IntegrationOrchestrator = Depends(get_orchestrator),
):
    """Submit a single lead; it is matched to an existing contact by email."""
    contact_id, created = await orchestrator.process_captured_lead(lead.to_lead())
    return ManualLeadResponse(contact_id=contact_id, created=created)


@router.post("/contacts/{contact_id}/sync", response_model=SyncResult)
async def sync_contact(
    contact_id: str,
    request: Optional[SyncRequest] = None,
    orchestrator: IntegrationOrchestrator = Depends(get_orchestrator),
):
    try:
        return await orchestrator.sync_contact_interactions(
            contact_id,
            platform=request.platform if request else None,
            since=request.since if request else None,
        )
    except IntegrationNotConfiguredError as e:
        raise _not_configured(e)
    except ContactNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))


@router.post("/sync", response_model=BulkSyncResult)
async def sync_all_contacts(
    request: Optional[SyncRequest] = None,
    orchestrator: IntegrationOrchestrator = Depends(get_orchestrator),
):
    """Sync interactions for every contact (optionally one platform only)."""
    try:
        return await orchestrator.sync_all_interactions(
            since=request.since if request else None,
            platform=request.platform if request else None,
        )
    except IntegrationNotConfiguredError as e:
        raise _not_configured(e)
