# tests/services/test_webhook_handlers.py
"""
Tests for the platform webhook handlers

Run with: pytest tests/services/test_webhook_handlers.py -v
"""

import pytest

from leadsync.schemas import (
    InteractionSource,
    InteractionType,
    LeadCaptureData,
    SocialPlatform,
)
from leadsync.services.interaction_sync import InteractionSyncService
from leadsync.services.lead_processor import LeadProcessor
from leadsync.services.webhook_handlers import (
    FacebookWebhookHandler,
    create_webhook_handler,
    verify_subscription,
)

FB = SocialPlatform.FACEBOOK
IG = SocialPlatform.INSTAGRAM
LI = SocialPlatform.LINKEDIN


@pytest.fixture
def make_handler(contact_store):
    def _make(platform, client=None):
        return create_webhook_handler(
            platform,
            contact_store,
            LeadProcessor(contact_store),
            InteractionSyncService(contact_store),
            client=client,
        )
    return _make


def _page_payload(changes=None, messaging=None):
    entry = {"id": "page-9", "time": 1709294400}
    if changes is not None:
        entry["changes"] = changes
    if messaging is not None:
        entry["messaging"] = messaging
    return {"object": "page", "entry": [entry]}


# ============================================================================
# SUBSCRIPTION HANDSHAKE
# ============================================================================

class TestVerifySubscription:
    def test_matching_token_returns_challenge(self):
        assert verify_subscription(FB, "subscribe", "tok", "12345", "tok") == "12345"

    def test_missing_challenge_returns_empty_string(self):
        assert verify_subscription(IG, "subscribe", "tok", None, "tok") == ""

    @pytest.mark.parametrize("mode,token,expected_token", [
        ("subscribe", "wrong", "tok"),
        ("unsubscribe", "tok", "tok"),
        ("subscribe", None, None),
        ("subscribe", "", ""),
    ])
    def test_rejections(self, mode, token, expected_token):
        assert verify_subscription(FB, mode, token, "12345", expected_token) is None

    def test_linkedin_has_no_handshake(self):
        assert verify_subscription(LI, "subscribe", "tok", "12345", "tok") is None


# ============================================================================
# FACEBOOK
# ============================================================================

class TestFacebookWebhookHandler:
    """leadgen, feed and messaging changes"""

    @pytest.mark.asyncio
    async def test_leadgen_with_field_data_creates_contact(self, make_handler, contact_store):
        payload = _page_payload(changes=[{
            "field": "leadgen",
            "value": {
                "leadgen_id": "lead-1",
                "form_id": "form-1",
                "field_data": [
                    {"name": "full_name", "values": ["Jane Doe"]},
                    {"name": "email", "values": ["Jane@Example.com"]},
                ],
            },
        }])

        result = await make_handler(FB).handle(payload)

        assert (result.processed, result.leads_captured) == (1, 1)
        contact = await contact_store.find_contact_by_email("jane@example.com")
        assert contact.name == "Jane Doe"
        assert contact.custom_fields["formId"] == "form-1"
        assert contact.custom_fields["leadId"] == "lead-1"

    @pytest.mark.asyncio
    async def test_leadgen_id_only_fetches_lead(self, make_handler, contact_store, fake_client):
        class LeadFetchingClient(fake_client):
            async def get_lead(self, leadgen_id):
                self.calls.append(leadgen_id)
                return LeadCaptureData(platform=FB, email="fetched@example.com", metadata={"leadId": leadgen_id})

        client = LeadFetchingClient(FB)
        payload = _page_payload(changes=[{"field": "leadgen", "value": {"leadgen_id": "lead-7", "form_id": "form-2"}}])

        result = await make_handler(FB, client=client).handle(payload)

        assert result.leads_captured == 1
        assert client.calls == ["lead-7"]
        contact = await contact_store.find_contact_by_email("fetched@example.com")
        assert contact.custom_fields["formId"] == "form-2"

    @pytest.mark.asyncio
    async def test_feed_comment_recorded_for_linked_user(self, make_handler, contact_store, create_contact):
        contact = await create_contact(platforms=[FB], external_user_id="u-1")
        payload = _page_payload(changes=[{
            "field": "feed",
            "value": {
                "item": "comment",
                "verb": "add",
                "comment_id": "post-1_c-1",
                "post_id": "post-1",
                "from": {"id": "u-1", "name": "Jane"},
                "message": "Do you host weddings?",
                "created_time": 1709294400,
            },
        }])
        handler = make_handler(FB)

        first = await handler.handle(payload)
        second = await handler.handle(payload)

        assert first.interactions_recorded == 1
        assert second.interactions_recorded == 0
        assert second.skipped == 1
        (interaction,) = await contact_store.list_interactions(contact.id)
        assert interaction.type == InteractionType.SOCIAL_COMMENT
        assert interaction.external_id == "post-1_c-1"
        assert interaction.source == InteractionSource.SOCIAL_MEDIA_WEBHOOK
        assert interaction.description == "Do you host weddings?"

    @pytest.mark.asyncio
    async def test_feed_reaction_builds_external_id(self, make_handler, contact_store, create_contact):
        contact = await create_contact(platforms=[FB], external_user_id="u-2")
        payload = _page_payload(changes=[{
            "field": "feed",
            "value": {"item": "reaction", "verb": "add", "post_id": "post-1", "from": {"id": "u-2"},
                      "reaction_type": "love"},
        }])

        result = await make_handler(FB).handle(payload)

        assert result.interactions_recorded == 1
        (interaction,) = await contact_store.list_interactions(contact.id)
        assert interaction.type == InteractionType.SOCIAL_LIKE
        assert interaction.external_id == "post-1:reaction:u-2"

    @pytest.mark.asyncio
    async def test_feed_edits_and_unknown_users_are_skipped(self, make_handler, create_contact):
        await create_contact(platforms=[FB], external_user_id="u-1")
        payload = _page_payload(changes=[
            {"field": "feed", "value": {"item": "comment", "verb": "edited", "comment_id": "c-1",
                                        "from": {"id": "u-1"}}},
            {"field": "feed", "value": {"item": "comment", "verb": "add", "comment_id": "c-2",
                                        "from": {"id": "stranger"}}},
            {"field": "ratings", "value": {}},
        ])

        result = await make_handler(FB).handle(payload)

        assert result.interactions_recorded == 0
        assert result.skipped == 3

    @pytest.mark.asyncio
    async def test_messaging(self, make_handler, contact_store, create_contact):
        contact = await create_contact(platforms=[FB], external_user_id="psid-1")
        payload = _page_payload(messaging=[{
            "sender": {"id": "psid-1"},
            "recipient": {"id": "page-9"},
            "timestamp": 1709294400123,
            "message": {"mid": "m_abc", "text": "Hello!"},
        }])

        result = await make_handler(FB).handle(payload)

        assert result.interactions_recorded == 1
        (interaction,) = await contact_store.list_interactions(contact.id)
        assert interaction.type == InteractionType.SOCIAL_MESSAGE
        assert interaction.external_id == "m_abc"
        updated = await contact_store.get_contact(contact.id)
        assert updated.lead_heat_score == 3

    @pytest.mark.asyncio
    async def test_redelivered_leadgen_recorded_once(self, make_handler, contact_store):
        payload = _page_payload(changes=[
            {"field": "leadgen", "value": {
                "leadgen_id": "lead-1",
                "form_id": "form-1",
                "field_data": [{"name": "email", "values": ["jane@example.com"]}],
            }},
            {"field": "feed", "value": "garbage"},
        ])
        handler = make_handler(FB)

        first = await handler.handle(payload)
        second = await handler.handle(payload)

        assert (first.leads_captured, first.skipped, first.errors) == (1, 1, 0)
        assert (second.leads_captured, second.skipped, second.errors) == (0, 2, 0)

        contact = await contact_store.find_contact_by_email("jane@example.com")
        (interaction,) = await contact_store.list_interactions(contact.id)
        assert interaction.external_id == "lead:FACEBOOK:lead-1"
        assert contact.lead_heat_score == 5

    @pytest.mark.asyncio
    async def test_malformed_items_are_skipped(self, make_handler, contact_store, create_contact):
        contact = await create_contact(platforms=[FB], external_user_id="psid-1")
        payload = {"object": "page", "entry": [
            "not-an-entry",
            {"time": 1709294400, "changes": "nope", "messaging": [
                42,
                {"sender": {"id": "psid-1"}, "message": "just text"},
                {"sender": {"id": "psid-1"}, "timestamp": 1709294400000, "message": {"mid": "m_ok"}},
            ]},
        ]}

        result = await make_handler(FB).handle(payload)

        assert result.interactions_recorded == 1
        assert result.errors == 0
        assert result.skipped == 4
        assert [i.external_id for i in await contact_store.list_interactions(contact.id)] == ["m_ok"]

    @pytest.mark.asyncio
    async def test_failing_item_does_not_stop_delivery(self, contact_store, create_contact):
        contact = await create_contact(platforms=[FB], external_user_id="u-1")

        class FailingSync(InteractionSyncService):
            async def record_external_interaction(self, contact_id, event, **kwargs):
                if event.external_id == "c-bad":
                    raise RuntimeError("database unavailable")
                return await super().record_external_interaction(contact_id, event, **kwargs)

        handler = FacebookWebhookHandler(contact_store, LeadProcessor(contact_store), FailingSync(contact_store))
        payload = _page_payload(changes=[
            {"field": "feed", "value": {"item": "comment", "verb": "add", "comment_id": "c-bad",
                                        "from": {"id": "u-1"}}},
            {"field": "feed", "value": {"item": "comment", "verb": "add", "comment_id": "c-ok",
                                        "from": {"id": "u-1"}}},
        ])

        result = await handler.handle(payload)

        assert result.errors == 1
        assert result.interactions_recorded == 1
        assert [i.external_id for i in await contact_store.list_interactions(contact.id)] == ["c-ok"]

    @pytest.mark.asyncio
    async def test_other_objects_ignored(self, make_handler):
        result = await make_handler(FB).handle({"object": "user", "entry": [{"changes": [{"field": "feed"}]}]})

        assert result.processed == 0
        assert result.skipped == 0


# ============================================================================
# INSTAGRAM / LINKEDIN
# ============================================================================

class TestInstagramWebhookHandler:
    @pytest.mark.asyncio
    async def test_comment(self, make_handler, contact_store, create_contact):
        contact = await create_contact(platforms=[IG], external_user_id="ig-u-1")
        payload = {"object": "instagram", "entry": [{
            "id": "ig-1",
            "time": 1709294400,
            "changes": [{
                "field": "comments",
                "value": {"id": "17865799348089039", "text": "Gorgeous!",
                          "from": {"id": "ig-u-1", "username": "jane"}, "media": {"id": "m-1"}},
            }],
        }]}

        result = await make_handler(IG).handle(payload)

        assert result.interactions_recorded == 1
        (interaction,) = await contact_store.list_interactions(contact.id)
        assert interaction.platform == IG
        assert interaction.metadata["userHandle"] == "jane"
        assert interaction.metadata["originalData"]["mediaId"] == "m-1"

    @pytest.mark.asyncio
    async def test_wrong_object(self, make_handler):
        result = await make_handler(IG).handle({"object": "page", "entry": []})

        assert result.processed == 0


class TestLinkedInWebhookHandler:
    @pytest.mark.asyncio
    async def test_lead_then_engagement_linked_by_member_urn(self, make_handler, contact_store):
        handler = make_handler(LI)
        lead_payload = {
            "eventType": "LEAD_EVENT",
            "createdAt": 1709294400000,
            "data": {
                "entityUrn": "urn:li:leadFormResponse:1",
                "formUrn": "urn:li:adForm:9",
                "memberUrn": "urn:li:person:abc",
                "firstName": "Ann",
                "lastName": "Lee",
                "emailAddress": "ann@example.com",
            },
        }
        engagement_payload = {
            "eventType": "MEMBER_ENGAGEMENT",
            "createdAt": 1709298000000,
            "data": {"action": "comment", "entityUrn": "urn:li:share:77",
                     "memberUrn": "urn:li:person:abc", "commentText": "Interested!"},
        }

        lead_result = await handler.handle(lead_payload)
        engagement_result = await handler.handle(engagement_payload)

        assert lead_result.leads_captured == 1
        assert engagement_result.interactions_recorded == 1

        contact = await contact_store.find_contact_by_email("ann@example.com")
        assert contact.name == "Ann Lee"
        types = sorted(i.type.value for i in await contact_store.list_interactions(contact.id))
        assert types == ["INFO_REQUEST", "SOCIAL_COMMENT"]
        external_ids = {i.external_id for i in await contact_store.list_interactions(contact.id)}
        assert "urn:li:share:77:COMMENT" in external_ids
        assert (await contact_store.get_contact(contact.id)).lead_heat_score == 7

    @pytest.mark.asyncio
    async def test_unhandled_event(self, make_handler):
        result = await make_handler(LI).handle({"eventType": "ORGANIZATION_UPDATE", "data": {}})

        assert result.skipped == 1

    @pytest.mark.asyncio
    async def test_non_object_data_skipped(self, make_handler, contact_store):
        result = await make_handler(LI).handle({"eventType": "LEAD_EVENT", "data": ["ann@example.com"]})

        assert (result.skipped, result.errors, result.leads_captured) == (1, 0, 0)
        assert await contact_store.list_contacts() == []


class TestFactory:
    def test_registry(self, make_handler):
        assert isinstance(make_handler(FB), FacebookWebhookHandler)

    def test_unsupported_platform(self, make_handler):
        with pytest.raises(ValueError):
            make_handler(SocialPlatform.TIKTOK)
