"""
Data models for the lead ingestion system.
"""

from .lead_data import (
    SourceId,
    LeadStatus,
    ActivityType,
    InboundMessage,
    ParsedLeadFields,
    ParseResult,
    Lead,
    Activity,
    CreatedLead,
    IngestionReport
)
from .config import (
    AppConfig,
    LoggingConfig,
    ParsingConfig,
    MailboxConfig,
    MailboxBackend,
    MonitoringConfig,
    Environment,
    load_config,
    get_config
)

__all__ = [
    'SourceId',
    'LeadStatus',
    'ActivityType',
    'InboundMessage',
    'ParsedLeadFields',
    'ParseResult',
    'Lead',
    'Activity',
    'CreatedLead',
    'IngestionReport',
    'AppConfig',
    'LoggingConfig',
    'ParsingConfig',
    'MailboxConfig',
    'MailboxBackend',
    'MonitoringConfig',
    'Environment',
    'load_config',
    'get_config'
]
