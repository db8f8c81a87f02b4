"""Tests for raw email decoding and the mailbox backends."""

import imaplib
import io
from datetime import datetime, timedelta, timezone

import pytest
from botocore.exceptions import ClientError

from lead_ingestion.services import (
    InMemoryMailbox,
    ImapMailbox,
    S3Mailbox,
    PROCESSED_FLAG,
    parse_raw_message
)
from lead_ingestion.utils.exceptions import ErrorCode, MailboxError
from lead_ingestion.utils.retry import BackoffStrategy, RetryConfig

RAW_EMAIL = (
    b"From: CompareMyMove <accounts@comparemymove.com>\r\n"
    b"To: office@holdemremovals.co.uk\r\n"
    b"Subject: Removals lead from comparemymove.com (John Smith)\r\n"
    b"Message-ID: <abc123@comparemymove.com>\r\n"
    b"Date: Mon, 02 Mar 2026 09:15:00 +0000\r\n"
    b"MIME-Version: 1.0\r\n"
    b"Content-Type: text/plain; charset=utf-8\r\n"
    b"\r\n"
    b"Email: john.smith@email.com\r\n"
    b"Phone: 07700 900123\r\n"
)

NO_WAIT = RetryConfig(
    max_attempts=2,
    base_delay=0,
    backoff_strategy=BackoffStrategy.FIXED,
    retryable_exceptions=(ClientError, OSError, imaplib.IMAP4.abort)
)


def test_parse_raw_message():
    message = parse_raw_message(RAW_EMAIL, "key-1")

    assert message.message_id == "key-1"
    assert message.sender == "accounts@comparemymove.com"
    assert message.subject == "Removals lead from comparemymove.com (John Smith)"
    assert "john.smith@email.com" in message.text_body
    assert message.html_body is None


def test_in_memory_mailbox_add_raw_and_mark():
    mailbox = InMemoryMailbox()
    mailbox.add_raw(RAW_EMAIL, "raw-1")

    [message] = mailbox.list_unprocessed()
    assert message.sender == "accounts@comparemymove.com"

    mailbox.mark_processed("raw-1")
    assert mailbox.list_unprocessed() == []
    assert mailbox.processed_ids == ["raw-1"]


class FakeImapConnection:
    def __init__(self, messages):
        self.messages = dict(messages)
        self.flags = {uid: set() for uid in self.messages}
        self.fetch_commands = []
        self.logged_out = False
        self.dropped = False

    def login(self, username, password):
        if password != "secret":
            raise imaplib.IMAP4.error("authentication failed")
        return 'OK', [b'Logged in']

    def select(self, folder):
        return 'OK', [str(len(self.messages)).encode()]

    def uid(self, command, *args):
        if self.dropped:
            raise imaplib.IMAP4.abort("socket error: EOF")
        if command == 'SEARCH':
            assert args == (None, 'UNKEYWORD', PROCESSED_FLAG)
            pending = [uid for uid in self.messages if PROCESSED_FLAG not in self.flags[uid]]
            return 'OK', [' '.join(pending).encode()]
        if command == 'FETCH':
            uid, spec = args
            self.fetch_commands.append(spec)
            raw = self.messages[uid]
            return 'OK', [(f'{uid} (UID {uid} BODY[] {{{len(raw)}}}'.encode(), raw), b')']
        if command == 'STORE':
            uid, operation, flags = args
            assert operation == '+FLAGS'
            self.flags[uid].update(flags.strip('()').split())
            return 'OK', [b'']
        raise AssertionError(f"unexpected command {command}")

    def logout(self):
        if self.dropped:
            raise imaplib.IMAP4.abort("socket error: EOF")
        self.logged_out = True
        return 'BYE', [b'']


def imap_mailbox(connection, password="secret"):
    return ImapMailbox(
        host="imap.example.com",
        username="leads",
        password=password,
        connection_factory=lambda: connection,
        retry_config=NO_WAIT
    )


def test_imap_lists_unflagged_messages_and_flags_processed():
    connection = FakeImapConnection({'101': RAW_EMAIL, '102': RAW_EMAIL})
    mailbox = imap_mailbox(connection)

    messages = mailbox.list_unprocessed()
    assert [m.message_id for m in messages] == ['101', '102']
    assert connection.fetch_commands == ['(BODY.PEEK[])', '(BODY.PEEK[])']

    mailbox.mark_processed('101')
    assert connection.flags['101'] == {PROCESSED_FLAG, '\\Seen'}
    assert [m.message_id for m in mailbox.list_unprocessed()] == ['102']


def test_imap_limit():
    connection = FakeImapConnection({'1': RAW_EMAIL, '2': RAW_EMAIL, '3': RAW_EMAIL})

    assert len(imap_mailbox(connection).list_unprocessed(limit=2)) == 2


def test_imap_context_manager_logs_out():
    connection = FakeImapConnection({'1': RAW_EMAIL})
    with imap_mailbox(connection) as mailbox:
        mailbox.list_unprocessed()

    assert connection.logged_out


def test_imap_login_failure_is_not_retried():
    attempts = []

    def factory():
        attempts.append(1)
        return FakeImapConnection({})

    mailbox = ImapMailbox("imap.example.com", "leads", "wrong", connection_factory=factory, retry_config=NO_WAIT)

    with pytest.raises(MailboxError) as exc_info:
        mailbox.list_unprocessed()

    assert exc_info.value.error_code == ErrorCode.MAILBOX_UNAVAILABLE
    assert len(attempts) == 1


def test_imap_unreachable_server_is_retried_then_fails():
    attempts = []

    def factory():
        attempts.append(1)
        raise ConnectionRefusedError("connection refused")

    mailbox = ImapMailbox("imap.example.com", "leads", "secret", connection_factory=factory, retry_config=NO_WAIT)

    with pytest.raises(MailboxError):
        mailbox.list_unprocessed()

    assert len(attempts) == 2


def test_imap_reconnects_after_dropped_connection():
    connections = []

    def factory():
        connections.append(FakeImapConnection({'7': RAW_EMAIL}))
        return connections[-1]

    mailbox = ImapMailbox("imap.example.com", "leads", "secret", connection_factory=factory, retry_config=NO_WAIT)
    mailbox.list_unprocessed()
    connections[0].dropped = True

    with pytest.raises(MailboxError):
        mailbox.list_unprocessed()

    assert [m.message_id for m in mailbox.list_unprocessed()] == ['7']
    assert len(connections) == 2


def test_imap_flag_failure_drops_connection():
    connections = []

    def factory():
        connections.append(FakeImapConnection({'7': RAW_EMAIL}))
        return connections[-1]

    mailbox = ImapMailbox("imap.example.com", "leads", "secret", connection_factory=factory, retry_config=NO_WAIT)
    mailbox.list_unprocessed()
    connections[0].dropped = True

    with pytest.raises(MailboxError):
        mailbox.mark_processed('7')

    mailbox.mark_processed('7')
    assert PROCESSED_FLAG in connections[1].flags['7']


class FakeS3Client:
    def __init__(self, objects=None, page_size=1000):
        self.objects = {}
        self.modified = {}
        self.page_size = page_size
        self.list_error = None
        start = datetime(2026, 3, 1, tzinfo=timezone.utc)
        for index, (key, body) in enumerate((objects or {}).items()):
            self.put(key, body, start + timedelta(minutes=index))

    def put(self, key, body, modified):
        self.objects[key] = body
        self.modified[key] = modified

    def list_objects_v2(self, Bucket, Prefix='', ContinuationToken=None):
        if self.list_error:
            raise self.list_error
        keys = sorted(k for k in self.objects if k.startswith(Prefix))
        offset = int(ContinuationToken or 0)
        page = keys[offset:offset + self.page_size]
        response = {
            'Contents': [{'Key': k, 'LastModified': self.modified[k]} for k in page],
            'IsTruncated': offset + self.page_size < len(keys),
        }
        if response['IsTruncated']:
            response['NextContinuationToken'] = str(offset + self.page_size)
        return response

    def get_object(self, Bucket, Key):
        if Key not in self.objects:
            raise ClientError({'Error': {'Code': 'NoSuchKey', 'Message': 'missing'}}, 'GetObject')
        return {'Body': io.BytesIO(self.objects[Key])}

    def copy_object(self, Bucket, Key, CopySource):
        self.put(Key, self.objects[CopySource['Key']], self.modified[CopySource['Key']])
        return {}

    def delete_object(self, Bucket, Key):
        self.objects.pop(Key, None)
        self.modified.pop(Key, None)
        return {}


def s3_mailbox(client):
    return S3Mailbox(bucket="leads-bucket", client=client, retry_config=NO_WAIT)


def test_s3_lists_inbox_oldest_first_across_pages():
    client = FakeS3Client(page_size=2)
    start = datetime(2026, 3, 1, tzinfo=timezone.utc)
    client.put("inbox/b.eml", RAW_EMAIL, start)
    client.put("inbox/a.eml", RAW_EMAIL, start + timedelta(minutes=5))
    client.put("inbox/c.eml", RAW_EMAIL, start + timedelta(minutes=1))
    client.put("inbox/", b"", start)
    client.put("processed/old.eml", RAW_EMAIL, start)

    messages = s3_mailbox(client).list_unprocessed()

    assert [m.message_id for m in messages] == ["inbox/b.eml", "inbox/c.eml", "inbox/a.eml"]


def test_s3_limit():
    client = FakeS3Client({"inbox/1.eml": RAW_EMAIL, "inbox/2.eml": RAW_EMAIL, "inbox/3.eml": RAW_EMAIL})

    assert [m.message_id for m in s3_mailbox(client).list_unprocessed(limit=2)] == ["inbox/1.eml", "inbox/2.eml"]


def test_s3_mark_processed_moves_object():
    client = FakeS3Client({"inbox/a.eml": RAW_EMAIL})
    mailbox = s3_mailbox(client)

    mailbox.mark_processed("inbox/a.eml")

    assert "inbox/a.eml" not in client.objects
    assert client.objects["processed/a.eml"] == RAW_EMAIL
    assert mailbox.list_unprocessed() == []


def test_s3_fetch_skips_missing_objects():
    client = FakeS3Client({"inbox/a.eml": RAW_EMAIL})

    messages = s3_mailbox(client).fetch(["inbox/missing.eml", "inbox/a.eml"])

    assert [m.message_id for m in messages] == ["inbox/a.eml"]


def test_s3_listing_failure_is_mailbox_error():
    client = FakeS3Client()
    client.list_error = ClientError({'Error': {'Code': 'AccessDenied', 'Message': 'denied'}}, 'ListObjectsV2')

    with pytest.raises(MailboxError) as exc_info:
        s3_mailbox(client).list_unprocessed()

    assert exc_info.value.error_code == ErrorCode.MAILBOX_FETCH_FAILED
    assert exc_info.value.cause.error_code == ErrorCode.S3_ACCESS_DENIED


def test_s3_processed_key():
    mailbox = s3_mailbox(FakeS3Client())

    assert mailbox.processed_key("inbox/2026/a.eml") == "processed/2026/a.eml"
    assert mailbox.processed_key("elsewhere/b.eml") == "processed/b.eml"
