"""
Parser implementations for different lead sources.
"""

from .comparemymove_parser import CompareMyMoveParser
from .reallymoving_parser import ReallyMovingParser
from .getamover_parser import GetAMoverParser
from .website_parser import WebsiteParser
from .generic_parser import GenericParser

__all__ = [
    'CompareMyMoveParser',
    'ReallyMovingParser',
    'GetAMoverParser',
    'WebsiteParser',
    'GenericParser'
]
