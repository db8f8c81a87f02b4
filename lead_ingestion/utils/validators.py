"""
Normalization and validation of lead contact data and inbound email content.
"""
import re
from typing import Optional, Tuple

from email_validator import validate_email, EmailNotValidError

from .logger import get_logger

logger = get_logger(__name__)


class DataValidator:
    """
    Validators for individual lead fields.

    Each returns ``(is_valid, normalized_value)``.
    """

    # Digits with the separators people actually type between them
    PHONE_PATTERN = re.compile(r'^[\+]?[\d\s\-\.\(\)]{7,24}$')
    POSTCODE_PATTERN = re.compile(r'^[A-Z]{1,2}\d[A-Z\d]? ?\d[A-Z]{2}$')

    @classmethod
    def validate_email_address(cls, email: Optional[str]) -> Tuple[bool, Optional[str]]:
        """
        Validate email address syntax (no DNS lookups) and normalize to lowercase.

        Args:
            email: Email address to validate

        Returns:
            Tuple of (is_valid, normalized_email)
        """
        if not email or not isinstance(email, str):
            return False, None

        try:
            validated = validate_email(email.strip(), check_deliverability=False)
        except EmailNotValidError as e:
            logger.debug("Email validation failed", candidate=email, error=str(e))
            return False, None

        return True, validated.normalized.lower()

    @classmethod
    def validate_phone_number(cls, phone: Optional[str]) -> Tuple[bool, Optional[str]]:
        """
        Validate and normalize a UK phone number.

        Separators are stripped and an international ``+44`` / ``0044`` prefix
        (with or without a bracketed trunk zero) is rewritten to the national
        leading ``0``.

        Args:
            phone: Phone number to validate

        Returns:
            Tuple of (is_valid, normalized_phone)
        """
        if not phone or not isinstance(phone, str):
            return False, None

        stripped = phone.strip()
        if not cls.PHONE_PATTERN.match(stripped):
            return False, None

        cleaned = re.sub(r'\(0\)', '', stripped)
        cleaned = re.sub(r'[^\d\+]', '', cleaned)
        if cleaned.startswith('+44'):
            cleaned = '0' + cleaned[3:]
        elif cleaned.startswith('0044'):
            cleaned = '0' + cleaned[4:]

        if '+' in cleaned or not 10 <= len(cleaned) <= 11:
            return False, None

        return True, cleaned

    @classmethod
    def validate_postcode(cls, postcode: Optional[str]) -> Tuple[bool, Optional[str]]:
        """
        Validate a UK postcode and return it in canonical form.

        Args:
            postcode: Postcode to validate

        Returns:
            Tuple of (is_valid, normalized_postcode)
        """
        if not postcode or not isinstance(postcode, str):
            return False, None

        normalized = normalize_postcode(postcode)
        if not cls.POSTCODE_PATTERN.match(normalized):
            return False, None

        return True, normalized

def normalize_postcode(postcode: str) -> str:
    """
    Canonical postcode form: uppercase, inner whitespace removed, then a
    single space before the three-character inward code.

    Idempotent for any input string.
    """
    compact = re.sub(r'\s+', '', postcode).upper()
    if len(compact) <= 3:
        return compact
    return f"{compact[:-3]} {compact[-3:]}"


def normalize_email(email: str) -> str:
    return email.strip().lower()


def is_within_size_limit(message_size_bytes: int, max_size_mb: int) -> bool:
    """Check an email body against the configured size ceiling."""
    return message_size_bytes <= max_size_mb * 1024 * 1024
