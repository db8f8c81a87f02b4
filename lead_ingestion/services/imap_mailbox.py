"""
IMAP mailbox backed by a keyword flag on each handled message.
"""
import imaplib
from typing import Callable, List, Optional

from .mailbox import Mailbox, decode_or_raw
from ..models.lead_data import InboundMessage
from ..utils.logger import get_logger
from ..utils.exceptions import MailboxError, ErrorCode, RetryExhaustedError
from ..utils.retry import RetryHandler, RetryConfig, BackoffStrategy

logger = get_logger(__name__)

PROCESSED_FLAG = "$LeadProcessed"


class ImapMailbox(Mailbox):
    """
    Reads lead emails from one IMAP folder over SSL.

    A message is unprocessed until it carries the ``$LeadProcessed``
    keyword. Bodies are fetched with ``BODY.PEEK[]`` so fetching alone
    never marks mail as read; message ids are folder UIDs.
    """

    name = "imap"

    def __init__(
        self,
        host: str,
        username: str,
        password: str,
        port: int = 993,
        folder: str = "INBOX",
        timeout: int = 30,
        connection_factory: Optional[Callable[[], imaplib.IMAP4]] = None,
        retry_config: Optional[RetryConfig] = None
    ):
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.folder = folder
        self.timeout = timeout
        self._connection_factory = connection_factory or self._open_ssl
        self._retry = RetryHandler(retry_config or RetryConfig(
            max_attempts=3,
            base_delay=1.0,
            backoff_strategy=BackoffStrategy.EXPONENTIAL_JITTER,
            retryable_exceptions=(OSError, imaplib.IMAP4.abort)
        ))
        self._conn: Optional[imaplib.IMAP4] = None

    def _open_ssl(self) -> imaplib.IMAP4:
        return imaplib.IMAP4_SSL(self.host, self.port, timeout=self.timeout)

    def _connect(self) -> imaplib.IMAP4:
        conn = self._connection_factory()
        conn.login(self.username, self.password)
        status, _ = conn.select(self.folder)
        if status != 'OK':
            raise imaplib.IMAP4.error(f"cannot select folder {self.folder}")
        return conn

    @property
    def connection(self) -> imaplib.IMAP4:
        if self._conn is None:
            try:
                self._conn = self._retry.execute_with_retry(self._connect)
            except (imaplib.IMAP4.error, OSError, RetryExhaustedError) as e:
                raise MailboxError(
                    message=f"Cannot connect to IMAP mailbox {self.host}: {e}",
                    error_code=ErrorCode.MAILBOX_UNAVAILABLE,
                    mailbox=f"{self.host}/{self.folder}",
                    cause=e
                )
            logger.info("Connected to IMAP mailbox", host=self.host, folder=self.folder)
        return self._conn

    def _unprocessed_uids(self) -> List[str]:
        status, data = self.connection.uid('SEARCH', None, 'UNKEYWORD', PROCESSED_FLAG)
        if status != 'OK':
            raise imaplib.IMAP4.error(f"SEARCH failed: {data}")
        return [uid.decode() for uid in (data[0] or b'').split()]

    def _fetch_raw(self, uid: str) -> Optional[bytes]:
        status, data = self.connection.uid('FETCH', uid, '(BODY.PEEK[])')
        if status != 'OK':
            raise imaplib.IMAP4.error(f"FETCH {uid} failed: {data}")
        for part in data:
            if isinstance(part, tuple) and len(part) > 1:
                return part[1]
        return None

    def list_unprocessed(self, limit: Optional[int] = None) -> List[InboundMessage]:
        try:
            uids = self._unprocessed_uids()
            if limit is not None:
                uids = uids[:limit]

            messages = []
            for uid in uids:
                raw = self._fetch_raw(uid)
                if raw is None:
                    logger.warning("IMAP message vanished before fetch", uid=uid)
                    continue
                messages.append(decode_or_raw(raw, uid))

        except (imaplib.IMAP4.error, OSError) as e:
            self.close()
            raise MailboxError(
                message=f"Failed to fetch messages from {self.folder}: {e}",
                error_code=ErrorCode.MAILBOX_FETCH_FAILED,
                mailbox=f"{self.host}/{self.folder}",
                cause=e
            )

        logger.info(f"Fetched {len(messages)} unprocessed messages", folder=self.folder)
        return messages

    def mark_processed(self, message_id: str) -> None:
        try:
            status, data = self.connection.uid('STORE', message_id, '+FLAGS', f'({PROCESSED_FLAG} \\Seen)')
            if status != 'OK':
                raise imaplib.IMAP4.error(f"STORE {message_id} failed: {data}")
        except (imaplib.IMAP4.error, OSError) as e:
            self.close()
            raise MailboxError(
                message=f"Failed to flag message {message_id}: {e}",
                error_code=ErrorCode.MAILBOX_UNAVAILABLE,
                mailbox=f"{self.host}/{self.folder}",
                cause=e
            )

    def close(self):
        """Log out; the next call reconnects."""
        if self._conn is None:
            return
        try:
            self._conn.logout()
        except (imaplib.IMAP4.error, OSError) as e:
            logger.warning("IMAP logout failed", error=str(e))
        finally:
            self._conn = None
