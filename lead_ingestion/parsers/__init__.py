"""
Email parser framework: source detection, field extraction and dispatch.
"""

from .base_parser import BaseParser, NO_CONTACT_REASON, NO_PARSER_REASON
from .lead_source_detector import LeadSourceDetector, DetectionRule, detect_source
from .parser_registry import (
    ParserRegistry,
    PARSER_CLASSES,
    get_parser_registry,
    get_parser
)

__all__ = [
    'BaseParser',
    'NO_CONTACT_REASON',
    'NO_PARSER_REASON',
    'LeadSourceDetector',
    'DetectionRule',
    'detect_source',
    'ParserRegistry',
    'PARSER_CLASSES',
    'get_parser_registry',
    'get_parser'
]
