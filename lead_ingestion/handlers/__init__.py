"""
Entry points that trigger ingestion runs.
"""

from .lambda_handler import lambda_handler, get_pipeline, set_pipeline

__all__ = [
    'lambda_handler',
    'get_pipeline',
    'set_pipeline'
]
