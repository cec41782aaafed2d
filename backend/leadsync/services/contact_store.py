"""
Contact and interaction persistence.

Services talk to ContactStore; SQLAlchemyContactStore backs it with the
ORM models and commits per write.
"""

import logging
from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic_core import to_jsonable_python
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from leadsync.models import Contact, Interaction
from leadsync.schemas.contact import (
    ContactCreate,
    ContactRecord,
    InteractionCreate,
    InteractionRecord,
    SocialProfile,
)
from leadsync.schemas.social_media import SocialPlatform
from leadsync.services.errors import (
    ContactNotFoundError,
    DuplicateContactError,
    DuplicateInteractionError,
)
from leadsync.services.normalization import utcnow

logger = logging.getLogger(__name__)

UPDATABLE_CONTACT_FIELDS = {
    "name", "email", "phone", "company", "lead_source", "lead_heat",
    "lead_heat_score", "status", "notes", "social_profiles", "custom_fields",
    "updated_at", "last_interaction_at",
}


class ContactStore(ABC):
    """Storage operations the lead services depend on."""

    @abstractmethod
    async def get_contact(self, contact_id: str) -> Optional[ContactRecord]:
        pass

    @abstractmethod
    async def find_contact_by_email(self, email: str) -> Optional[ContactRecord]:
        pass

    @abstractmethod
    async def find_contact_by_social_user(
        self,
        platform: SocialPlatform,
        external_user_id: str,
    ) -> Optional[ContactRecord]:
        pass

    @abstractmethod
    async def list_contacts(self) -> List[ContactRecord]:
        pass

    @abstractmethod
    async def insert_contact(self, contact: ContactCreate) -> ContactRecord:
        """Raises DuplicateContactError when the email is taken."""
        pass

    @abstractmethod
    async def update_contact(self, contact_id: str, **fields) -> ContactRecord:
        """Raises ContactNotFoundError for unknown ids."""
        pass

    @abstractmethod
    async def insert_interaction(self, interaction: InteractionCreate) -> InteractionRecord:
        """Raises DuplicateInteractionError when (contact_id, external_id) exists."""
        pass

    @abstractmethod
    async def find_interaction_by_external_id(
        self,
        contact_id: str,
        external_id: str,
    ) -> Optional[InteractionRecord]:
        pass

    @abstractmethod
    async def find_any_interaction_by_external_id(self, external_id: str) -> Optional[InteractionRecord]:
        """First interaction with this external id on any contact."""
        pass

    @abstractmethod
    async def list_interactions(self, contact_id: str) -> List[InteractionRecord]:
        pass

    @abstractmethod
    async def list_interaction_types(self, contact_id: str) -> List[str]:
        pass


def _column_value(value: Any) -> Any:
    return value.value if isinstance(value, Enum) else value


def _profiles_json(profiles) -> List[Dict[str, Any]]:
    return [SocialProfile.model_validate(p).model_dump(mode="json") for p in profiles or []]


def _to_contact_record(row: Contact) -> ContactRecord:
    return ContactRecord(
        id=row.id,
        name=row.name,
        email=row.email,
        phone=row.phone,
        company=row.company,
        lead_source=row.lead_source,
        lead_heat=row.lead_heat,
        lead_heat_score=row.lead_heat_score,
        status=row.status,
        notes=row.notes,
        social_profiles=row.social_profiles or [],
        custom_fields=row.custom_fields or {},
        created_at=row.created_at,
        updated_at=row.updated_at,
        last_interaction_at=row.last_interaction_at,
    )


def _to_interaction_record(row: Interaction) -> InteractionRecord:
    return InteractionRecord(
        id=row.id,
        contact_id=row.contact_id,
        type=row.type,
        platform=row.platform,
        description=row.description,
        source=row.source,
        external_id=row.external_id,
        metadata=row.details or {},
        created_at=row.created_at,
        created_by=row.created_by,
    )


class SQLAlchemyContactStore(ContactStore):
    """ContactStore over a SQLAlchemy session."""

    def __init__(self, db: Session):
        self.db = db

    async def get_contact(self, contact_id: str) -> Optional[ContactRecord]:
        row = self.db.query(Contact).filter(Contact.id == contact_id).first()
        return _to_contact_record(row) if row else None

    async def find_contact_by_email(self, email: str) -> Optional[ContactRecord]:
        if not email:
            return None
        row = self.db.query(Contact).filter(Contact.email == email.strip().lower()).first()
        return _to_contact_record(row) if row else None

    async def find_contact_by_social_user(
        self,
        platform: SocialPlatform,
        external_user_id: str,
    ) -> Optional[ContactRecord]:
        if not external_user_id:
            return None
        # Profiles live in a JSON column; match in Python to stay portable
        for row in self.db.query(Contact).order_by(Contact.created_at).all():
            for profile in row.social_profiles or []:
                if (
                    profile.get("platform") == platform.value
                    and profile.get("external_user_id") == external_user_id
                ):
                    return _to_contact_record(row)
        return None

    async def list_contacts(self) -> List[ContactRecord]:
        rows = self.db.query(Contact).order_by(Contact.created_at).all()
        return [_to_contact_record(row) for row in rows]

    async def insert_contact(self, contact: ContactCreate) -> ContactRecord:
        now = utcnow()
        row = Contact(
            name=contact.name,
            email=contact.email,
            phone=contact.phone,
            company=contact.company,
            lead_source=contact.lead_source.value,
            lead_heat=contact.lead_heat.value,
            lead_heat_score=contact.lead_heat_score,
            status=contact.status.value,
            notes=contact.notes,
            social_profiles=_profiles_json(contact.social_profiles),
            custom_fields=to_jsonable_python(contact.custom_fields),
            created_at=contact.created_at or now,
            updated_at=contact.updated_at or now,
            last_interaction_at=contact.last_interaction_at,
        )
        self.db.add(row)
        try:
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            if contact.email:
                raise DuplicateContactError(contact.email) from e
            raise
        self.db.refresh(row)

        logger.debug(f"Inserted contact {row.id} ({row.email})")
        return _to_contact_record(row)

    async def update_contact(self, contact_id: str, **fields) -> ContactRecord:
        unknown = set(fields) - UPDATABLE_CONTACT_FIELDS
        if unknown:
            raise ValueError(f"Unknown contact fields: {sorted(unknown)}")

        row = self.db.query(Contact).filter(Contact.id == contact_id).first()
        if not row:
            raise ContactNotFoundError(contact_id)

        for name, value in fields.items():
            if name == "social_profiles":
                value = _profiles_json(value)
            elif name == "custom_fields":
                value = to_jsonable_python(value or {})
            setattr(row, name, _column_value(value))

        self.db.commit()
        self.db.refresh(row)
        return _to_contact_record(row)

    async def insert_interaction(self, interaction: InteractionCreate) -> InteractionRecord:
        row = Interaction(
            contact_id=interaction.contact_id,
            type=interaction.type.value,
            platform=interaction.platform.value if interaction.platform else None,
            description=interaction.description,
            source=interaction.source.value,
            external_id=interaction.external_id,
            details=to_jsonable_python(interaction.metadata),
            created_at=interaction.created_at or utcnow(),
            created_by=interaction.created_by,
        )
        self.db.add(row)
        try:
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            if interaction.external_id:
                raise DuplicateInteractionError(interaction.contact_id, interaction.external_id) from e
            raise
        self.db.refresh(row)
        return _to_interaction_record(row)

    async def find_interaction_by_external_id(
        self,
        contact_id: str,
        external_id: str,
    ) -> Optional[InteractionRecord]:
        row = self.db.query(Interaction).filter(
            Interaction.contact_id == contact_id,
            Interaction.external_id == external_id,
        ).first()
        return _to_interaction_record(row) if row else None

    async def find_any_interaction_by_external_id(self, external_id: str) -> Optional[InteractionRecord]:
        row = self.db.query(Interaction).filter(
            Interaction.external_id == external_id
        ).order_by(Interaction.created_at).first()
        return _to_interaction_record(row) if row else None

    async def list_interactions(self, contact_id: str) -> List[InteractionRecord]:
        rows = self.db.query(Interaction).filter(
            Interaction.contact_id == contact_id
        ).order_by(Interaction.created_at).all()
        return [_to_interaction_record(row) for row in rows]

    async def list_interaction_types(self, contact_id: str) -> List[str]:
        rows = self.db.query(Interaction.type).filter(Interaction.contact_id == contact_id).all()
        return [row[0] for row in rows]
