# backend/leadsync/models.py
"""
SQLAlchemy ORM models for contacts and their interaction history.

Enum-valued columns are stored as strings and guarded by CHECK constraints.
JSON columns hold social profiles, custom fields and interaction metadata.
"""

from sqlalchemy import (
    Column, String, Integer, Text, DateTime, JSON, Index,
    ForeignKey, CheckConstraint, UniqueConstraint
)
from sqlalchemy.orm import relationship
from leadsync.database import Base
from leadsync.services.normalization import utcnow
import uuid


def _new_id() -> str:
    return str(uuid.uuid4())


def _in_clause(column: str, values) -> str:
    allowed = ", ".join(f"'{value}'" for value in values)
    return f"{column} IN ({allowed})"


# ============================================================================
# CONTACT MODELS
# ============================================================================

class Contact(Base):
    """A person the venue's sales team is tracking."""
    __tablename__ = "contacts"

    id = Column(String(36), primary_key=True, default=_new_id)
    name = Column(String(255), nullable=False, default="Unknown Lead")
    email = Column(String(255), unique=True, index=True, nullable=True)  # normalized lower-case
    phone = Column(String(50))
    company = Column(String(255))

    lead_source = Column(String(50), nullable=False, default="OTHER")
    lead_heat = Column(String(10), nullable=False, default="COLD")
    lead_heat_score = Column(Integer, nullable=False, default=0)
    status = Column(String(50), nullable=False, default="UNQUALIFIED")
    notes = Column(Text)

    social_profiles = Column(JSON, nullable=False, default=list)
    custom_fields = Column(JSON, nullable=False, default=dict)

    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)
    last_interaction_at = Column(DateTime)

    interactions = relationship(
        "Interaction",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="Interaction.created_at",
    )

    __table_args__ = (
        CheckConstraint(_in_clause("lead_heat", ("COLD", "WARM", "HOT")), name="chk_contact_lead_heat"),
        CheckConstraint("lead_heat_score >= 0", name="chk_contact_lead_heat_score"),
        CheckConstraint(
            _in_clause("status", ("UNQUALIFIED", "PROSPECT", "LEAD", "QUALIFIED", "CUSTOMER", "LOST")),
            name="chk_contact_status",
        ),
        Index("idx_contacts_lead_heat", "lead_heat"),
        Index("idx_contacts_last_interaction", "last_interaction_at"),
    )

    def __repr__(self):
        return f"<Contact(id={self.id}, email='{self.email}', heat={self.lead_heat})>"


class Interaction(Base):
    """
    A single engagement event. Immutable once created.

    external_id is the platform's identifier for the event and is unique
    per contact when present, which makes repeated syncs idempotent.
    """
    __tablename__ = "interactions"

    id = Column(String(36), primary_key=True, default=_new_id)
    contact_id = Column(String(36), ForeignKey("contacts.id", ondelete="CASCADE"), nullable=False, index=True)
    type = Column(String(50), nullable=False)
    platform = Column(String(50))
    description = Column(Text)
    source = Column(String(50), nullable=False, default="manual")
    external_id = Column(String(255))
    # "metadata" is reserved on declarative classes
    details = Column("metadata", JSON, nullable=False, default=dict)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    created_by = Column(String(255))

    __table_args__ = (
        UniqueConstraint("contact_id", "external_id", name="uq_interaction_contact_external_id"),
        CheckConstraint(
            _in_clause("source", ("social_media_api", "social_media_sync", "social_media_webhook", "manual")),
            name="chk_interaction_source",
        ),
        Index("idx_interactions_contact_created", "contact_id", "created_at"),
    )

    def __repr__(self):
        return f"<Interaction(id={self.id}, contact_id={self.contact_id}, type={self.type})>"
