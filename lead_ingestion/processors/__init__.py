"""
Ingestion processing: the pipeline that turns emails into leads.
"""

from .ingestion_pipeline import (
    IngestionPipeline,
    MessageOutcome,
    Outcome,
    create_mailbox,
    create_pipeline
)

__all__ = [
    'IngestionPipeline',
    'MessageOutcome',
    'Outcome',
    'create_mailbox',
    'create_pipeline'
]
