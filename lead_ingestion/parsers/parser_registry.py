"""
Parser registry mapping each known lead source to its parser.
"""
from typing import Dict, List, Optional, Type, Union

from .base_parser import BaseParser, NO_PARSER_REASON
from .lead_source_detector import LeadSourceDetector, DEFAULT_WEBSITE_DOMAIN
from .implementations import (
    CompareMyMoveParser,
    ReallyMovingParser,
    GetAMoverParser,
    WebsiteParser,
    GenericParser
)
from ..models.lead_data import ParseResult, SourceId
from ..utils.logger import get_logger

logger = get_logger(__name__)

# Closed mapping; every SourceId except UNKNOWN appears exactly once
PARSER_CLASSES: Dict[SourceId, Type[BaseParser]] = {
    SourceId.COMPAREMYMOVE: CompareMyMoveParser,
    SourceId.REALLYMOVING: ReallyMovingParser,
    SourceId.GETAMOVER: GetAMoverParser,
    SourceId.WEBSITE: WebsiteParser,
}

AnyParser = Union[BaseParser, GenericParser]


class ParserRegistry:
    """
    Detects the source of a message and dispatches it to that source's parser.
    """

    def __init__(self, enable_fallback: bool = True, website_domain: str = DEFAULT_WEBSITE_DOMAIN):
        self.enable_fallback = enable_fallback
        self.lead_detector = LeadSourceDetector(website_domain)
        self._parsers: Dict[SourceId, BaseParser] = {
            source: self._build_parser(parser_class, website_domain)
            for source, parser_class in PARSER_CLASSES.items()
        }
        self.generic_parser = GenericParser(list(self._parsers.values()))

        logger.debug(
            f"Registered {len(self._parsers)} parsers",
            parsers=[s.value for s in self._parsers],
            fallback=enable_fallback
        )

    @staticmethod
    def _build_parser(parser_class: Type[BaseParser], website_domain: str) -> BaseParser:
        if parser_class is WebsiteParser:
            return WebsiteParser(website_domain)
        return parser_class()

    def get_parser(self, source: SourceId) -> Optional[BaseParser]:
        """
        Get parser instance for a lead source.

        Args:
            source: Lead source identifier

        Returns:
            Parser instance or None for ``SourceId.UNKNOWN``
        """
        return self._parsers.get(source)

    def available_sources(self) -> List[SourceId]:
        return list(self._parsers.keys())

    def detect_source(self, from_address: str, subject: str) -> SourceId:
        return self.lead_detector.detect_lead_source(from_address, subject)

    def detect_parser(self, from_address: str, subject: str) -> Optional[AnyParser]:
        """
        Parser for a message, chosen from its sender and subject.

        A recognised source always gets its own parser. Otherwise the generic
        parser is returned when fallback parsing is enabled.

        Returns:
            Parser instance or None
        """
        source = self.detect_source(from_address, subject)
        parser = self.get_parser(source)
        if parser is not None:
            return parser
        return self.generic_parser if self.enable_fallback else None

    def parse_email(
        self,
        from_address: str,
        subject: str,
        text_body: str,
        html_body: Optional[str] = None
    ) -> ParseResult:
        """
        Detect the source of a message and extract lead fields from it.

        Args:
            from_address: Sender address
            subject: Subject line
            text_body: Plain-text part
            html_body: HTML part, if any

        Returns:
            ParseResult; never raises for malformed content
        """
        parser = self.detect_parser(from_address, subject)

        if parser is None:
            logger.warning(
                "No parser found for email",
                sender=from_address,
                subject=subject
            )
            return ParseResult.failure(NO_PARSER_REASON)

        logger.info(f"Using {parser.name} for email", parser=parser.name, sender=from_address)
        return parser.extract(subject, text_body, html_body)


# Global registry instance
_parser_registry: Optional[ParserRegistry] = None


def get_parser_registry() -> ParserRegistry:
    """
    Get the global parser registry instance.

    Returns:
        ParserRegistry with default settings
    """
    global _parser_registry
    if _parser_registry is None:
        _parser_registry = ParserRegistry()
    return _parser_registry


def get_parser(source: SourceId) -> Optional[BaseParser]:
    return get_parser_registry().get_parser(source)
