"""
Email lead ingestion for a removals CRM.
"""

__version__ = "1.0.0"
