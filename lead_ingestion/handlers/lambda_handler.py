"""
Lambda handler that runs the ingestion pipeline on demand or per S3 event.
"""
import json
import time
import uuid
from collections import OrderedDict
from typing import Dict, Any, List, Optional
from urllib.parse import unquote_plus

from ..models.config import get_config
from ..processors.ingestion_pipeline import IngestionPipeline, create_pipeline
from ..services.s3_mailbox import S3Mailbox
from ..utils.logger import get_logger, LoggerFactory
from ..utils.metrics import initialize_metrics, get_ingestion_metrics, flush_metrics
from ..utils.exceptions import (
    BaseIngestionError,
    EmailProcessingError,
    handle_exception,
    ErrorCode
)

# Initialize logger
logger = get_logger(__name__)

# Reused across warm invocations so in-memory leads keep deduplicating
_pipeline: Optional[IngestionPipeline] = None


def get_pipeline() -> IngestionPipeline:
    global _pipeline
    if _pipeline is None:
        _pipeline = create_pipeline(get_config())
    return _pipeline


def set_pipeline(pipeline: Optional[IngestionPipeline]):
    """Replace (or with None, reset) the pipeline used by the handler."""
    global _pipeline
    _pipeline = pipeline


def lambda_handler(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """
    Main Lambda handler for lead ingestion.

    A direct (scheduled or manual) invocation processes everything
    unprocessed in the configured mailbox. An S3 ``ObjectCreated`` event
    processes just the objects it names.

    Args:
        event: Lambda event data
        context: Lambda context

    Returns:
        Response dictionary with the ingestion report
    """
    correlation_id = getattr(context, 'aws_request_id', None) or str(uuid.uuid4())
    start_time = time.time()

    try:
        config = get_config()
        LoggerFactory.configure(
            level=config.logging.level,
            format_type=config.logging.format
        )

        logger.set_correlation_id(correlation_id)

        if config.monitoring.enable_custom_metrics and get_ingestion_metrics() is None:
            initialize_metrics(
                namespace=config.monitoring.metric_namespace,
                region_name=config.mailbox.region_name
            )

        with logger.operation("lambda_handler", event_type=_get_event_type(event)):
            pipeline = get_pipeline()

            if _is_s3_event(event):
                body = _process_s3_event(event, pipeline)
            elif _is_direct_invocation(event):
                # Warm containers reuse the pipeline; log out after every run
                with pipeline.mailbox:
                    report = pipeline.run()
                body = {
                    'message': 'Mailbox processing completed',
                    'report': report.model_dump(mode='json')
                }
            else:
                raise EmailProcessingError(
                    message=f"Unsupported event type: {_get_event_type(event)}",
                    error_code=ErrorCode.UNKNOWN_ERROR
                )

        body['correlation_id'] = correlation_id
        logger.info(
            "Lambda handler completed successfully",
            duration_ms=int((time.time() - start_time) * 1000)
        )
        return {'statusCode': 200, 'body': json.dumps(body)}

    except BaseIngestionError as e:
        logger.error(
            "Lambda handler failed with structured error",
            error=e,
            duration_ms=int((time.time() - start_time) * 1000)
        )
        return {
            'statusCode': 500,
            'body': json.dumps({
                'error': e.error_code.value,
                'message': e.message,
                'correlation_id': correlation_id,
                'details': e.details
            }, default=str)
        }

    except Exception as e:
        structured_error = handle_exception(e, context={'correlation_id': correlation_id})

        logger.error(
            "Lambda handler failed with unexpected error",
            error=structured_error,
            duration_ms=int((time.time() - start_time) * 1000)
        )
        return {
            'statusCode': 500,
            'body': json.dumps({
                'error': structured_error.error_code.value,
                'message': structured_error.message,
                'correlation_id': correlation_id
            })
        }

    finally:
        flush_metrics()


def _process_s3_event(event: Dict[str, Any], pipeline: IngestionPipeline) -> Dict[str, Any]:
    """
    Process the raw emails named by an S3 event notification.

    Returns:
        Response body with one report per bucket
    """
    keys_by_bucket = _keys_by_bucket(event.get('Records', []))
    logger.info("Processing S3 event", bucket_count=len(keys_by_bucket))

    reports = []
    for bucket, keys in keys_by_bucket.items():
        mailbox = _mailbox_for_bucket(pipeline, bucket)
        messages = mailbox.fetch(keys)
        report = pipeline.process_messages(messages, mailbox=mailbox)
        reports.append({'bucket': bucket, 'keys': keys, 'report': report.model_dump(mode='json')})

    return {'message': 'S3 event processing completed', 'reports': reports}


def _keys_by_bucket(records: List[Dict[str, Any]]) -> Dict[str, List[str]]:
    keys_by_bucket: Dict[str, List[str]] = OrderedDict()
    for record in records:
        s3_info = record.get('s3', {})
        bucket_name = s3_info.get('bucket', {}).get('name', '')
        object_key = unquote_plus(s3_info.get('object', {}).get('key', ''))

        if not bucket_name or not object_key:
            logger.warning("Invalid S3 record, skipping", record=record)
            continue

        keys_by_bucket.setdefault(bucket_name, []).append(object_key)
    return keys_by_bucket


def _mailbox_for_bucket(pipeline: IngestionPipeline, bucket: str) -> S3Mailbox:
    if isinstance(pipeline.mailbox, S3Mailbox) and pipeline.mailbox.bucket == bucket:
        return pipeline.mailbox

    mailbox_config = get_config().mailbox
    return S3Mailbox(
        bucket=bucket,
        inbox_prefix=mailbox_config.s3_inbox_prefix,
        processed_prefix=mailbox_config.s3_processed_prefix,
        region_name=mailbox_config.region_name
    )


def _is_s3_event(event: Dict[str, Any]) -> bool:
    """Check if event is from S3."""
    records = event.get('Records', [])
    if not records:
        return False
    return records[0].get('eventSource') == 'aws:s3'


def _is_direct_invocation(event: Dict[str, Any]) -> bool:
    """Check if event is direct invocation."""
    return 'Records' not in event


def _get_event_type(event: Dict[str, Any]) -> str:
    """Get event type for logging."""
    if _is_s3_event(event):
        return 's3_event'
    elif _is_direct_invocation(event):
        return 'direct_invocation'
    else:
        return 'unknown'
