"""
Abstract base parser for all email lead parsers.
"""
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional, Tuple

from pydantic import ValidationError as PydanticValidationError

from ..models.lead_data import ParsedLeadFields, ParseResult, SourceId
from ..utils.logger import get_logger
from ..utils.exceptions import LeadParsingError, ErrorCode
from . import extraction

logger = get_logger(__name__)

NO_CONTACT_REASON = "no contact identifier found"
NO_PARSER_REASON = "no suitable parser found for this email format"


class BaseParser(ABC):
    """
    Abstract base class for all lead parsers.

    Subclasses describe one sender's layout in ``_extract_fields``; this
    class turns that into a ``ParseResult`` and guarantees ``extract`` never
    raises.
    """

    source: SourceId = SourceId.UNKNOWN
    sender_domains: Tuple[str, ...] = ()

    def __init__(self):
        self.logger = get_logger(f"{__name__}.{self.source.value}")

    @property
    def name(self) -> str:
        return self.__class__.__name__

    def can_parse(self, from_address: str, subject: str) -> bool:
        """
        Determine if this parser can handle mail from this sender.

        Args:
            from_address: Sender address, bare or ``Name <addr>``
            subject: Subject line

        Returns:
            True if this parser can handle the email
        """
        domain = extraction.sender_domain(from_address)
        return bool(domain) and extraction.domain_matches(domain, self.sender_domains)

    def extract(self, subject: str, text_body: str, html_body: Optional[str] = None) -> ParseResult:
        """
        Parse email content into structured lead fields.

        Args:
            subject: Subject line
            text_body: Plain-text part
            html_body: HTML part, if any

        Returns:
            Successful result with the lead fields, or a failure with a reason
        """
        try:
            raw = self._extract_fields(subject or "", text_body or "", html_body)
            fields = self._build_fields(raw)

            if not fields.has_contact_identifier:
                raise LeadParsingError(
                    message=NO_CONTACT_REASON,
                    error_code=ErrorCode.LEAD_MISSING_CONTACT,
                    lead_source=self.source.value,
                    missing_fields=['email', 'phone']
                )

        except LeadParsingError as e:
            self.logger.info(
                "Parser could not build a lead",
                parser=self.name,
                reason=e.message,
                subject=subject
            )
            return ParseResult.failure(e.message, source=self.source, parser_used=self.name)

        except Exception as e:
            self.logger.warning(
                f"{self.name} failed unexpectedly",
                parser=self.name,
                error=str(e),
                error_type=type(e).__name__,
                subject=subject
            )
            return ParseResult.failure(f"{self.name} error: {e}", source=self.source, parser_used=self.name)

        self.logger.debug(
            "Parsed lead fields",
            parser=self.name,
            has_email=fields.email is not None,
            has_phone=fields.phone is not None
        )
        return ParseResult.ok(fields, source=self.source, parser_used=self.name)

    def _build_fields(self, raw: Dict[str, Any]) -> ParsedLeadFields:
        """
        Validate extracted values, dropping any single field that fails.

        Only email and phone decide whether a message yields a lead, so an
        out-of-range bedroom count or an overlong reference costs just that field.
        """
        values = {k: v for k, v in raw.items() if v is not None}
        try:
            return ParsedLeadFields(**values)
        except PydanticValidationError as e:
            rejected = sorted({str(error['loc'][0]) for error in e.errors() if error.get('loc')})
            self.logger.info(
                "Dropped fields that failed validation",
                parser=self.name,
                rejected_fields=rejected
            )
            return ParsedLeadFields(**{k: v for k, v in values.items() if k not in rejected})

    @abstractmethod
    def _extract_fields(self, subject: str, text_body: str, html_body: Optional[str]) -> Dict[str, Any]:
        """
        Pull raw field values out of one message.

        Returns:
            Mapping of ``ParsedLeadFields`` field names to values; ``None``
            values are treated as absent.
        """

    def _content(self, text_body: str, html_body: Optional[str]) -> str:
        return extraction.body_text(text_body, html_body)

    def _contact_fields(self, text: str) -> Dict[str, Any]:
        """Email and phone, preferring labelled lines over free-text matches."""
        email = extraction.extract_email(
            extraction.find_label_value(text, r'e-?mail(?:\s+address)?'),
            exclude_domains=self.sender_domains
        ) or extraction.extract_email(text, exclude_domains=self.sender_domains)

        phone = extraction.extract_phone(
            extraction.find_label_value(
                text,
                r'(?:tele)?phone(?:\s+number)?',
                r'tel',
                r'mobile(?:\s+number)?',
                r'contact\s+number'
            )
        ) or extraction.extract_phone(text)

        return {'email': email, 'phone': phone}

    def _name_fields(self, full_name: Optional[str]) -> Dict[str, Any]:
        first_name, last_name = extraction.split_name(full_name)
        return {'first_name': first_name, 'last_name': last_name}

    def _address_fields(self, value: Optional[str], prefix: str) -> Dict[str, Any]:
        address, postcode = extraction.split_address(value)
        return {f'{prefix}_address': address, f'{prefix}_postcode': postcode}
