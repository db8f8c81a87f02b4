"""
Lead source detection from sender and subject.
"""
import re
from dataclasses import dataclass, field
from typing import List, Optional, Pattern

from ..models.lead_data import SourceId
from ..utils.logger import get_logger
from .extraction import sender_domain, domain_matches

logger = get_logger(__name__)

DEFAULT_WEBSITE_DOMAIN = "holdemremovals.co.uk"


@dataclass
class DetectionRule:
    """Rule for detecting lead sources. Every populated condition must hold."""
    source: SourceId
    priority: int  # Lower number = evaluated first
    sender_domains: List[str] = field(default_factory=list)
    subject_patterns: List[Pattern] = field(default_factory=list)

    def matches(self, domain: str, subject: str) -> bool:
        if self.sender_domains and not domain_matches(domain, self.sender_domains):
            return False
        if self.subject_patterns and not any(p.search(subject) for p in self.subject_patterns):
            return False
        return bool(self.sender_domains or self.subject_patterns)


class LeadSourceDetector:
    """
    Ordered first-match lead source detection.

    Rules that combine a sender domain with a subject pattern sit ahead of
    the plain domain rules.
    """

    def __init__(self, website_domain: str = DEFAULT_WEBSITE_DOMAIN):
        self.website_domain = website_domain.lower()
        self.detection_rules = sorted(self._initialize_rules(), key=lambda r: r.priority)

    def _initialize_rules(self) -> List[DetectionRule]:
        """Initialize detection rules for all known lead sources."""
        return [
            # Own website instant-quote form
            DetectionRule(
                source=SourceId.WEBSITE,
                priority=1,
                sender_domains=[self.website_domain],
                subject_patterns=[re.compile(r'instant\s+quote', re.IGNORECASE)]
            ),

            # CompareMyMove
            DetectionRule(
                source=SourceId.COMPAREMYMOVE,
                priority=2,
                sender_domains=["comparemymove.com"]
            ),

            # ReallyMoving
            DetectionRule(
                source=SourceId.REALLYMOVING,
                priority=2,
                sender_domains=["reallymoving.com"]
            ),

            # GetAMover
            DetectionRule(
                source=SourceId.GETAMOVER,
                priority=2,
                sender_domains=["getamover.co.uk"]
            )
        ]

    def detect_lead_source(self, from_address: Optional[str], subject: Optional[str]) -> SourceId:
        """
        Detect lead source from sender and subject.

        Args:
            from_address: Sender address
            subject: Subject line

        Returns:
            Detected source or ``SourceId.UNKNOWN``
        """
        domain = sender_domain(from_address)
        subject = subject or ""

        for rule in self.detection_rules:
            if rule.matches(domain, subject):
                logger.debug(
                    f"Detected lead source: {rule.source.value}",
                    lead_source=rule.source.value,
                    sender_domain=domain
                )
                return rule.source

        logger.debug("No matching rules found", sender_domain=domain, subject=subject)
        return SourceId.UNKNOWN


_detectors = {}


def detect_source(
    from_address: Optional[str],
    subject: Optional[str],
    website_domain: str = DEFAULT_WEBSITE_DOMAIN
) -> SourceId:
    """Module-level shortcut over a cached ``LeadSourceDetector``."""
    detector = _detectors.get(website_domain)
    if detector is None:
        detector = _detectors[website_domain] = LeadSourceDetector(website_domain)
    return detector.detect_lead_source(from_address, subject)
