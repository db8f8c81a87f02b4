"""
Best-effort parser for mail from senders no rule recognises.
"""
from typing import Optional, Sequence

from ..base_parser import BaseParser, NO_CONTACT_REASON, NO_PARSER_REASON
from ...models.lead_data import ParseResult, SourceId
from ...utils.logger import get_logger

logger = get_logger(__name__)


class GenericParser:
    """
    Runs each known source parser in turn and keeps the first success.

    Results are tagged ``SourceId.UNKNOWN`` since the sender was not
    recognised, whatever layout happened to fit.
    """

    source = SourceId.UNKNOWN

    def __init__(self, parsers: Sequence[BaseParser]):
        self.parsers = list(parsers)

    @property
    def name(self) -> str:
        return self.__class__.__name__

    def can_parse(self, from_address: str, subject: str) -> bool:
        return True

    def extract(self, subject: str, text_body: str, html_body: Optional[str] = None) -> ParseResult:
        reasons = []
        for parser in self.parsers:
            result = parser.extract(subject, text_body, html_body)
            if result.success:
                logger.info(
                    "Fallback parse succeeded",
                    layout=parser.name,
                    subject=subject
                )
                return ParseResult.ok(
                    result.lead,
                    source=SourceId.UNKNOWN,
                    parser_used=f"{self.name}:{parser.name}"
                )
            reasons.append(result.error)

        reason = NO_CONTACT_REASON if reasons and all(r == NO_CONTACT_REASON for r in reasons) else NO_PARSER_REASON
        return ParseResult.failure(reason, source=SourceId.UNKNOWN, parser_used=self.name)
