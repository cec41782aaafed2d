"""
Platform Webhook Routes
=======================
GET  /api/v1/webhooks/{platform}  subscription handshake
POST /api/v1/webhooks/{platform}  signed event delivery

The signature is checked against the raw body before anything is parsed.
"""
from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import PlainTextResponse
import json
import logging

from leadsync.dependencies import get_orchestrator
from leadsync.schemas import SocialPlatform, WebhookAck
from leadsync.services.integration_orchestrator import IntegrationOrchestrator
from leadsync.services.webhook_handlers import WEBHOOK_HANDLER_REGISTRY, verify_subscription
from leadsync.services.webhook_verifier import webhook_verifier

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/webhooks", tags=["Webhooks"])


def _resolve_platform(platform: str) -> SocialPlatform:
    try:
        resolved = SocialPlatform(platform.upper())
    except ValueError:
        resolved = None
    if resolved not in WEBHOOK_HANDLER_REGISTRY:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"No webhook endpoint for {platform}")
    return resolved


@router.get("/{platform}")
async def verify_webhook_subscription(
    platform: str,
    request: Request,
    orchestrator: IntegrationOrchestrator = Depends(get_orchestrator),
):
    resolved = _resolve_platform(platform)

    if resolved == SocialPlatform.LINKEDIN:
        # LinkedIn validates endpoints with signed POSTs only
        return {"success": True}

    verify_token = orchestrator.verify_token_for(resolved)
    if not verify_token:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"{resolved.value} webhook verify token not configured",
        )

    params = request.query_params
    challenge = verify_subscription(
        resolved,
        mode=params.get("hub.mode"),
        token=params.get("hub.verify_token"),
        challenge=params.get("hub.challenge"),
        verify_token=verify_token,
    )
    if challenge is None:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Webhook verification failed")

    return PlainTextResponse(challenge)


@router.post("/{platform}", response_model=WebhookAck)
async def receive_webhook(
    platform: str,
    request: Request,
    orchestrator: IntegrationOrchestrator = Depends(get_orchestrator),
):
    resolved = _resolve_platform(platform)

    secret = orchestrator.webhook_secret_for(resolved)
    if not secret:
        logger.error(f"{resolved.value} webhook received but no secret is configured")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"{resolved.value} webhook secret not configured",
        )

    raw_body = await request.body()
    signature = request.headers.get(webhook_verifier.signature_header(resolved))
    if not webhook_verifier.verify(resolved, raw_body, signature, secret):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid signature")

    try:
        payload = json.loads(raw_body)
    except ValueError:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid JSON payload")
    if not isinstance(payload, dict):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Webhook payload must be an object")

    handler = orchestrator.webhook_handler(resolved)
    result = await handler.handle(payload)

    logger.info(
        f"📨 {resolved.value} webhook: {result.leads_captured} leads, "
        f"{result.interactions_recorded} interactions, {result.skipped} skipped, {result.errors} errors"
    )
    return WebhookAck(result=result)
