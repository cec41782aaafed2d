# tests/routers/conftest.py

import pytest
from fastapi.testclient import TestClient

from leadsync.config import settings
from leadsync.database import get_db
from leadsync.main import app
from leadsync.services.integration_orchestrator import IntegrationState


@pytest.fixture
def integration_state():
    return IntegrationState()


@pytest.fixture
def api_client(db_session, integration_state, monkeypatch):
    """TestClient bound to the in-memory database, without startup hooks."""

    def override_get_db():
        yield db_session

    # No environment fallbacks for secrets or verify tokens
    for name in (
        "FACEBOOK_APP_SECRET",
        "FACEBOOK_WEBHOOK_SECRET",
        "FACEBOOK_WEBHOOK_VERIFY_TOKEN",
        "INSTAGRAM_WEBHOOK_SECRET",
        "INSTAGRAM_WEBHOOK_VERIFY_TOKEN",
        "LINKEDIN_CLIENT_SECRET",
        "LINKEDIN_WEBHOOK_SECRET",
    ):
        monkeypatch.setattr(settings, name, None)

    app.dependency_overrides[get_db] = override_get_db
    app.state.integration = integration_state
    yield TestClient(app)
    app.dependency_overrides.clear()
