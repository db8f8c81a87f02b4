"""
Mailbox over an S3 bucket of raw emails (the SES "store to S3" layout).
"""
import time
from typing import Any, Dict, Iterable, List, Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError, NoCredentialsError

from .mailbox import Mailbox, decode_or_raw
from ..models.lead_data import InboundMessage
from ..utils.logger import get_logger
from ..utils.exceptions import (
    AWSServiceError,
    MailboxError,
    ErrorCode,
    RetryExhaustedError,
    handle_exception
)
from ..utils.retry import RetryHandler, RetryConfig, BackoffStrategy

logger = get_logger(__name__)


class S3Mailbox(Mailbox):
    """
    Raw emails are objects under ``inbox_prefix``; object keys are the
    message ids. Marking a message processed moves its object under
    ``processed_prefix``.
    """

    name = "s3"

    def __init__(
        self,
        bucket: str,
        inbox_prefix: str = "inbox/",
        processed_prefix: str = "processed/",
        region_name: str = "eu-west-2",
        client=None,
        retry_config: Optional[RetryConfig] = None
    ):
        self.bucket = bucket
        self.inbox_prefix = inbox_prefix
        self.processed_prefix = processed_prefix
        self._retry = RetryHandler(retry_config or RetryConfig(
            max_attempts=3,
            backoff_strategy=BackoffStrategy.EXPONENTIAL_JITTER,
            retryable_exceptions=(ClientError, BotoCoreError),
            non_retryable_exceptions=(NoCredentialsError,)
        ))

        if client is not None:
            self._client = client
        else:
            try:
                self._client = boto3.client('s3', region_name=region_name)
            except (BotoCoreError, ClientError) as e:
                raise AWSServiceError(
                    message=f"Failed to initialize S3 client: {str(e)}",
                    error_code=ErrorCode.S3_ACCESS_DENIED,
                    service="S3",
                    operation="initialize_client",
                    cause=e
                )

    def _call(self, operation: str, **kwargs) -> Dict[str, Any]:
        """Run one S3 API call with retry, translating failures to AWSServiceError."""
        start_time = time.time()
        try:
            response = self._retry.execute_with_retry(getattr(self._client, operation), **kwargs)
        except RetryExhaustedError as e:
            cause = e.cause if isinstance(e.cause, ClientError) else None
            raise self._aws_error(operation, kwargs.get('Key'), cause or e)
        except ClientError as e:
            raise self._aws_error(operation, kwargs.get('Key'), e)
        except NoCredentialsError as e:
            raise handle_exception(e, context={'bucket': self.bucket, 'operation': operation})

        logger.debug(
            f"S3 {operation} succeeded",
            bucket=self.bucket,
            key=kwargs.get('Key'),
            duration_ms=int((time.time() - start_time) * 1000)
        )
        return response

    def _aws_error(self, operation: str, key: Optional[str], error: Exception) -> AWSServiceError:
        code = 'Unknown'
        if isinstance(error, ClientError):
            code = error.response.get('Error', {}).get('Code', 'Unknown')

        if code in ('NoSuchKey', '404'):
            error_code = ErrorCode.S3_OBJECT_NOT_FOUND
        elif code == 'AccessDenied':
            error_code = ErrorCode.S3_ACCESS_DENIED
        else:
            error_code = ErrorCode.UNKNOWN_ERROR

        return AWSServiceError(
            message=f"S3 {operation} failed for {key or self.bucket}: {error}",
            error_code=error_code,
            service="S3",
            operation=operation,
            cause=error
        )

    def _inbox_keys(self, limit: Optional[int]) -> List[str]:
        """Inbox object keys, oldest first. S3 lists by key, so every page is read before sorting."""
        objects: List[Dict[str, Any]] = []
        kwargs = {'Bucket': self.bucket, 'Prefix': self.inbox_prefix}
        while True:
            response = self._call('list_objects_v2', **kwargs)
            objects.extend(o for o in response.get('Contents', []) if not o['Key'].endswith('/'))
            if not response.get('IsTruncated'):
                break
            kwargs['ContinuationToken'] = response['NextContinuationToken']

        objects.sort(key=lambda o: (o.get('LastModified') is None, o.get('LastModified'), o['Key']))
        keys = [o['Key'] for o in objects]
        return keys if limit is None else keys[:limit]

    def get_message(self, key: str) -> InboundMessage:
        """
        Download and decode one stored email.

        Raises:
            AWSServiceError: If the object cannot be read
        """
        response = self._call('get_object', Bucket=self.bucket, Key=key)
        return decode_or_raw(response['Body'].read(), key)

    def fetch(self, keys: Iterable[str]) -> List[InboundMessage]:
        """Decode specific objects, skipping any that can no longer be read."""
        messages = []
        for key in keys:
            try:
                messages.append(self.get_message(key))
            except AWSServiceError as e:
                logger.error("Skipping unreadable S3 email", error=e, bucket=self.bucket, key=key)
        return messages

    def list_unprocessed(self, limit: Optional[int] = None) -> List[InboundMessage]:
        try:
            keys = self._inbox_keys(limit)
        except AWSServiceError as e:
            raise MailboxError(
                message=f"Cannot list s3://{self.bucket}/{self.inbox_prefix}: {e.message}",
                error_code=ErrorCode.MAILBOX_FETCH_FAILED,
                mailbox=f"s3://{self.bucket}/{self.inbox_prefix}",
                cause=e
            )

        messages = self.fetch(keys)
        logger.info(
            f"Fetched {len(messages)} unprocessed messages",
            bucket=self.bucket,
            prefix=self.inbox_prefix
        )
        return messages

    def processed_key(self, key: str) -> str:
        name = key[len(self.inbox_prefix):] if key.startswith(self.inbox_prefix) else key.rsplit('/', 1)[-1]
        return f"{self.processed_prefix}{name}"

    def mark_processed(self, message_id: str) -> None:
        destination = self.processed_key(message_id)
        try:
            self._call(
                'copy_object',
                Bucket=self.bucket,
                Key=destination,
                CopySource={'Bucket': self.bucket, 'Key': message_id}
            )
            self._call('delete_object', Bucket=self.bucket, Key=message_id)
        except AWSServiceError as e:
            raise MailboxError(
                message=f"Failed to move {message_id} to {destination}: {e.message}",
                error_code=ErrorCode.MAILBOX_UNAVAILABLE,
                mailbox=f"s3://{self.bucket}",
                cause=e
            )

        logger.debug("Moved processed email", bucket=self.bucket, key=message_id, destination=destination)
