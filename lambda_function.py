from lead_ingestion.handlers.lambda_handler import lambda_handler

__all__ = ['lambda_handler']
