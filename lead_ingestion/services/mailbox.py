"""
Mailbox abstraction and raw email decoding.
"""
from abc import ABC, abstractmethod
from typing import Iterable, List, Optional

import mailparser

from ..models.lead_data import InboundMessage
from ..utils.logger import get_logger
from ..utils.exceptions import EmailProcessingError, ErrorCode

logger = get_logger(__name__)


def parse_raw_message(raw: bytes, message_id: Optional[str] = None) -> InboundMessage:
    """
    Decode an RFC 822 message into an ``InboundMessage``.

    Args:
        raw: Raw email bytes
        message_id: Mailbox identity of the message (IMAP UID, S3 key); the
            ``Message-ID`` header is used when not given

    Returns:
        Decoded message

    Raises:
        EmailProcessingError: If the bytes cannot be decoded as an email
    """
    try:
        mail = mailparser.parse_from_bytes(raw)

        sender = ""
        if mail.from_:
            name, address = mail.from_[0]
            sender = address or name or ""

        html_body = "\n".join(mail.text_html) if mail.text_html else None

        return InboundMessage(
            message_id=message_id or mail.message_id or "",
            sender=sender,
            subject=mail.subject or "",
            text_body="\n".join(mail.text_plain) if mail.text_plain else "",
            html_body=html_body,
            received_at=mail.date
        )

    except Exception as e:
        raise EmailProcessingError(
            message=f"Failed to parse email: {str(e)}",
            error_code=ErrorCode.EMAIL_PARSE_FAILED,
            message_id=message_id,
            cause=e
        )


def decode_or_raw(raw: bytes, message_id: str) -> InboundMessage:
    """
    Decode a fetched message, falling back to its raw text.

    Undecodable mail still reaches the pipeline, which reports it as a
    parse failure and marks it processed instead of refetching it forever.
    """
    try:
        return parse_raw_message(raw, message_id)
    except EmailProcessingError as e:
        logger.error("Could not decode raw email", error=e, message_id=message_id)
        return InboundMessage(
            message_id=message_id,
            text_body=raw.decode('utf-8', errors='replace')
        )


class Mailbox(ABC):
    """
    Source of inbound lead emails.

    A message stays unprocessed until ``mark_processed`` is called with its
    ``message_id``.
    """

    name = "mailbox"

    @abstractmethod
    def list_unprocessed(self, limit: Optional[int] = None) -> List[InboundMessage]:
        """
        Fetch messages not yet marked processed, oldest first.

        Raises:
            MailboxError: If the mailbox cannot be reached or read
        """

    @abstractmethod
    def mark_processed(self, message_id: str) -> None:
        """Record that a message has been handled so it is not fetched again."""

    def close(self):
        """Release any connection held by the mailbox."""

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False


class InMemoryMailbox(Mailbox):
    """List-backed mailbox for tests and previews."""

    name = "memory"

    def __init__(self, messages: Optional[Iterable[InboundMessage]] = None):
        self._messages: List[InboundMessage] = list(messages or [])
        self._processed = set()

    def add(self, message: InboundMessage):
        self._messages.append(message)

    def add_raw(self, raw: bytes, message_id: str):
        self._messages.append(decode_or_raw(raw, message_id))

    @property
    def processed_ids(self) -> List[str]:
        return [m.message_id for m in self._messages if m.message_id in self._processed]

    def list_unprocessed(self, limit: Optional[int] = None) -> List[InboundMessage]:
        pending = [m for m in self._messages if m.message_id not in self._processed]
        return pending if limit is None else pending[:limit]

    def mark_processed(self, message_id: str) -> None:
        self._processed.add(message_id)
