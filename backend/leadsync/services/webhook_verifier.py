"""
Webhook signature verification.

Platforms sign the raw request body with HMAC-SHA256. Verification must
run on the exact bytes received, before any JSON parsing.
"""

import hashlib
import hmac
import logging
from typing import Optional, Union

from leadsync.schemas.social_media import SocialPlatform

logger = logging.getLogger(__name__)

SHA256_PREFIX = "sha256="

SIGNATURE_HEADERS = {
    SocialPlatform.FACEBOOK: "X-Hub-Signature-256",
    SocialPlatform.INSTAGRAM: "X-Hub-Signature-256",
    SocialPlatform.LINKEDIN: "X-LinkedIn-Signature",
}

# LinkedIn sends the bare hex digest
SIGNATURE_PREFIXES = {
    SocialPlatform.FACEBOOK: SHA256_PREFIX,
    SocialPlatform.INSTAGRAM: SHA256_PREFIX,
    SocialPlatform.LINKEDIN: "",
}


def sign_payload(raw_payload: bytes, secret: str, prefix: str = SHA256_PREFIX) -> str:
    """Signature header value for a payload, in the given format."""
    digest = hmac.new(secret.encode("utf-8"), raw_payload, hashlib.sha256).hexdigest()
    return f"{prefix}{digest}"


def verify_signature(
    raw_payload: bytes,
    signature_header: Optional[Union[str, bytes]],
    secret: Optional[str],
    prefix: str = SHA256_PREFIX,
) -> bool:
    """
    Check an HMAC-SHA256 webhook signature in constant time.

    Returns False (never raises) for a missing or malformed header, a
    non-hex digest, an empty secret, a wrong prefix or a mismatch.
    """
    if not secret or not signature_header:
        return False
    if not isinstance(raw_payload, (bytes, bytearray)):
        return False

    try:
        if isinstance(signature_header, bytes):
            signature_header = signature_header.decode("ascii")
        candidate = signature_header.strip()

        if prefix:
            if not candidate.startswith(prefix):
                return False
            candidate = candidate[len(prefix):]

        bytes.fromhex(candidate)  # rejects non-hex digests
        expected = hmac.new(secret.encode("utf-8"), bytes(raw_payload), hashlib.sha256).hexdigest()
        # Digests are lower-case hex; any other spelling is a mismatch
        return hmac.compare_digest(expected, candidate)
    except (ValueError, TypeError, UnicodeError, AttributeError):
        return False


class WebhookVerifier:
    """Platform-aware wrapper around verify_signature."""

    def signature_header(self, platform: SocialPlatform) -> str:
        return SIGNATURE_HEADERS.get(platform, "X-Hub-Signature-256")

    def sign(self, platform: SocialPlatform, raw_payload: bytes, secret: str) -> str:
        return sign_payload(raw_payload, secret, SIGNATURE_PREFIXES.get(platform, SHA256_PREFIX))

    def verify(
        self,
        platform: SocialPlatform,
        raw_payload: bytes,
        signature_header: Optional[Union[str, bytes]],
        secret: Optional[str],
    ) -> bool:
        if platform not in SIGNATURE_PREFIXES:
            logger.warning(f"No webhook signature scheme for {platform.value}")
            return False

        valid = verify_signature(raw_payload, signature_header, secret, SIGNATURE_PREFIXES[platform])
        if not valid:
            logger.warning(f"🚫 Invalid {platform.value} webhook signature")
        return valid


webhook_verifier = WebhookVerifier()
