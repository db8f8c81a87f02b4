"""
Mailbox and persistence collaborators of the ingestion pipeline.
"""

from .mailbox import Mailbox, InMemoryMailbox, parse_raw_message
from .imap_mailbox import ImapMailbox, PROCESSED_FLAG
from .s3_mailbox import S3Mailbox
from .lead_store import (
    LeadStore,
    ActivityLog,
    InMemoryLeadStore,
    InMemoryActivityLog
)

__all__ = [
    'Mailbox',
    'InMemoryMailbox',
    'parse_raw_message',
    'ImapMailbox',
    'PROCESSED_FLAG',
    'S3Mailbox',
    'LeadStore',
    'ActivityLog',
    'InMemoryLeadStore',
    'InMemoryActivityLog'
]
