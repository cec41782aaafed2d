"""FastAPI dependencies shared by the routers."""

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from leadsync.database import get_db
from leadsync.services.contact_store import SQLAlchemyContactStore
from leadsync.services.integration_orchestrator import IntegrationOrchestrator, IntegrationState


def get_integration_state(request: Request) -> IntegrationState:
    """Integration state attached to the app at startup."""
    state = getattr(request.app.state, "integration", None)
    if state is None:
        state = IntegrationState()
        request.app.state.integration = state
    return state


def get_orchestrator(
    state: IntegrationState = Depends(get_integration_state),
    db: Session = Depends(get_db),
) -> IntegrationOrchestrator:
    """Per-request orchestrator over the shared integration state."""
    return IntegrationOrchestrator(SQLAlchemyContactStore(db), state=state)
