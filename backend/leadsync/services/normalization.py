"""Lead data normalization service."""

import re
import logging
from datetime import datetime, timezone
from typing import Any, Optional

import phonenumbers

logger = logging.getLogger(__name__)

# Epoch values above this are milliseconds (year 2286 in seconds)
_EPOCH_MILLIS_THRESHOLD = 10_000_000_000


def utcnow() -> datetime:
    """Current time as a naive UTC datetime (the storage convention)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_utc_naive(value: datetime) -> datetime:
    """Convert an aware datetime to naive UTC; naive values are assumed UTC."""
    if value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def to_unix_timestamp(value: datetime) -> int:
    """Seconds since epoch for a (naive UTC or aware) datetime."""
    return int(to_utc_naive(value).replace(tzinfo=timezone.utc).timestamp())


def parse_platform_timestamp(value: Any) -> Optional[datetime]:
    """
    Parse the timestamp formats platform APIs return.

    Handles datetimes, epoch seconds or milliseconds, ISO-8601 strings
    (including Graph API's ``+0000`` offsets and a trailing ``Z``).
    Returns naive UTC, or None when the value can't be parsed.
    """
    if value is None or isinstance(value, bool):
        return None

    if isinstance(value, datetime):
        return to_utc_naive(value)

    if isinstance(value, (int, float)):
        seconds = value / 1000 if value > _EPOCH_MILLIS_THRESHOLD else value
        try:
            return datetime.fromtimestamp(seconds, tz=timezone.utc).replace(tzinfo=None)
        except (OverflowError, OSError, ValueError):
            return None

    if isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        if text.isdigit():
            return parse_platform_timestamp(int(text))
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        # Graph API: 2024-03-01T10:00:00+0000
        text = re.sub(r"([+-]\d{2})(\d{2})$", r"\1:\2", text)
        try:
            return to_utc_naive(datetime.fromisoformat(text))
        except ValueError:
            logger.debug(f"Unparseable platform timestamp: {value}")
            return None

    return None


class NormalizationService:
    """Normalize and standardize captured lead data."""

    def __init__(self, default_region: str = "BE"):
        self.default_region = default_region

    @staticmethod
    def normalize_email(email: Optional[str]) -> Optional[str]:
        """
        Normalize email address.
        - Convert to lowercase
        - Strip whitespace
        - Blank values become None
        """
        if not email:
            return None
        normalized = email.strip().lower()
        return normalized or None

    @staticmethod
    def normalize_text(value: Optional[str]) -> Optional[str]:
        """Collapse whitespace; blank values become None."""
        if value is None:
            return None
        collapsed = " ".join(str(value).split())
        return collapsed or None

    def normalize_phone(self, phone: Optional[str]) -> Optional[str]:
        """
        Normalize phone number to E.164 format.
        Returns the original (stripped) value if parsing fails.
        """
        if not phone:
            return None

        phone = phone.strip()
        if not phone:
            return None

        try:
            cleaned = re.sub(r"[\s\-\(\)\.]", "", phone)
            parsed = phonenumbers.parse(cleaned, self.default_region)
            if phonenumbers.is_valid_number(parsed):
                return phonenumbers.format_number(
                    parsed,
                    phonenumbers.PhoneNumberFormat.E164
                )
        except phonenumbers.NumberParseException:
            logger.debug(f"Failed to parse phone number: {phone}")

        return phone

    def normalize_lead(self, lead):
        """
        Normalize the contact fields of a LeadCaptureData.
        Returns a new instance; the input is left untouched.
        """
        normalized = lead.model_copy(update={
            "email": self.normalize_email(lead.email),
            "name": self.normalize_text(lead.name),
            "company": self.normalize_text(lead.company),
            "phone": self.normalize_phone(lead.phone),
        })

        logger.debug(f"Normalized {lead.platform.value} lead: {normalized.email}")

        return normalized
