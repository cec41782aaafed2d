# tests/routers/test_webhook_routes.py
"""
Tests for the webhook endpoints

Covers the subscription handshake and signed delivery: the signature is
checked on the raw body before the payload is parsed or handled.

Run with: pytest tests/routers/test_webhook_routes.py -v
"""

import json

import pytest

from leadsync.schemas import (
    FacebookConfig,
    LinkedInConfig,
    SocialMediaConfig,
)
from leadsync.config import settings
from leadsync.models import Contact
from leadsync.services.webhook_verifier import sign_payload

FB_SECRET = "fb-hook-secret"
LI_SECRET = "li-hook-secret"

CONFIG = SocialMediaConfig(
    facebook=FacebookConfig(
        app_id="app-1",
        app_secret="fb-app-secret",
        access_token="fb-token",
        webhook_verify_token="verify-me",
        webhook_secret=FB_SECRET,
    ),
    linkedin=LinkedInConfig(
        client_id="li-1",
        client_secret="li-client-secret",
        access_token="li-token",
        webhook_secret=LI_SECRET,
    ),
)

LEADGEN_PAYLOAD = {
    "object": "page",
    "entry": [{
        "id": "page-9",
        "time": 1709294400,
        "changes": [{
            "field": "leadgen",
            "value": {
                "leadgen_id": "lead-1",
                "form_id": "form-1",
                "field_data": [
                    {"name": "full_name", "values": ["Jane Doe"]},
                    {"name": "email", "values": ["jane@example.com"]},
                ],
            },
        }],
    }],
}


@pytest.fixture
def configured(integration_state):
    integration_state.config = CONFIG
    return integration_state


def _post_signed(api_client, platform, payload, secret, header="X-Hub-Signature-256", prefix="sha256="):
    body = payload if isinstance(payload, bytes) else json.dumps(payload).encode()
    return api_client.post(
        f"/api/v1/webhooks/{platform}",
        content=body,
        headers={header: sign_payload(body, secret, prefix=prefix), "Content-Type": "application/json"},
    )


# ============================================================================
# SUBSCRIPTION HANDSHAKE
# ============================================================================

class TestSubscriptionHandshake:
    def test_echoes_challenge(self, api_client, configured):
        response = api_client.get(
            "/api/v1/webhooks/facebook",
            params={"hub.mode": "subscribe", "hub.verify_token": "verify-me", "hub.challenge": "1158201444"},
        )

        assert response.status_code == 200
        assert response.text == "1158201444"

    def test_wrong_token_forbidden(self, api_client, configured):
        response = api_client.get(
            "/api/v1/webhooks/facebook",
            params={"hub.mode": "subscribe", "hub.verify_token": "nope", "hub.challenge": "1"},
        )

        assert response.status_code == 403

    def test_missing_verify_token_is_server_error(self, api_client):
        response = api_client.get(
            "/api/v1/webhooks/instagram",
            params={"hub.mode": "subscribe", "hub.verify_token": "x", "hub.challenge": "1"},
        )

        assert response.status_code == 500

    def test_linkedin_get_acknowledged(self, api_client):
        response = api_client.get("/api/v1/webhooks/linkedin")

        assert response.status_code == 200
        assert response.json() == {"success": True}

    def test_unknown_platform(self, api_client):
        assert api_client.get("/api/v1/webhooks/myspace").status_code == 404
        assert api_client.get("/api/v1/webhooks/tiktok").status_code == 404


# ============================================================================
# SIGNED DELIVERY
# ============================================================================

class TestSignedDelivery:
    """POST /api/v1/webhooks/{platform}"""

    def test_valid_leadgen_creates_contact(self, api_client, configured, db_session):
        response = _post_signed(api_client, "facebook", LEADGEN_PAYLOAD, FB_SECRET)

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["result"]["leads_captured"] == 1

        contact = db_session.query(Contact).filter(Contact.email == "jane@example.com").first()
        assert contact is not None
        assert contact.name == "Jane Doe"
        assert [i.type for i in contact.interactions] == ["INFO_REQUEST"]

    def test_redelivery_with_malformed_change_is_acknowledged(self, api_client, configured, db_session):
        payload = json.loads(json.dumps(LEADGEN_PAYLOAD))
        payload["entry"][0]["changes"].append({"field": "feed", "value": "garbage"})

        responses = [_post_signed(api_client, "facebook", payload, FB_SECRET) for _ in range(2)]

        assert [r.status_code for r in responses] == [200, 200]
        assert responses[1].json()["result"]["leads_captured"] == 0
        contact = db_session.query(Contact).filter(Contact.email == "jane@example.com").one()
        assert len(contact.interactions) == 1
        assert contact.lead_heat_score == 5

    def test_bad_signature_rejected_before_processing(self, api_client, configured, db_session):
        response = _post_signed(api_client, "facebook", LEADGEN_PAYLOAD, "not-the-secret")

        assert response.status_code == 401
        assert db_session.query(Contact).count() == 0

    def test_tampered_body_rejected(self, api_client, configured):
        body = json.dumps(LEADGEN_PAYLOAD).encode()
        signature = sign_payload(body, FB_SECRET)

        response = api_client.post(
            "/api/v1/webhooks/facebook",
            content=body.replace(b"Jane Doe", b"Mallory"),
            headers={"X-Hub-Signature-256": signature},
        )

        assert response.status_code == 401

    def test_missing_signature_rejected(self, api_client, configured):
        response = api_client.post("/api/v1/webhooks/facebook", json=LEADGEN_PAYLOAD)

        assert response.status_code == 401

    def test_missing_secret_is_server_error(self, api_client):
        response = _post_signed(api_client, "instagram", {"object": "instagram", "entry": []}, "anything")

        assert response.status_code == 500

    def test_signed_invalid_json(self, api_client, configured):
        response = _post_signed(api_client, "facebook", b"{not json", FB_SECRET)

        assert response.status_code == 400

    def test_signed_non_object_payload(self, api_client, configured):
        response = _post_signed(api_client, "facebook", [1, 2, 3], FB_SECRET)

        assert response.status_code == 400

    def test_linkedin_bare_hex_signature(self, api_client, configured):
        payload = {
            "eventType": "LEAD_EVENT",
            "data": {"memberUrn": "urn:li:person:abc", "emailAddress": "ann@example.com"},
        }

        response = _post_signed(
            api_client, "linkedin", payload, LI_SECRET, header="X-LinkedIn-Signature", prefix=""
        )

        assert response.status_code == 200
        assert response.json()["result"]["leads_captured"] == 1

    def test_webhook_works_before_full_configuration(self, api_client, monkeypatch):
        monkeypatch.setattr(settings, "FACEBOOK_WEBHOOK_SECRET", "env-secret")

        response = _post_signed(api_client, "facebook", LEADGEN_PAYLOAD, "env-secret")

        assert response.status_code == 200
        assert response.json()["result"]["leads_captured"] == 1
