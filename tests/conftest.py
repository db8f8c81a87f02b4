import pytest

from lead_ingestion.handlers.lambda_handler import set_pipeline
from lead_ingestion.models.config import reset_config
from lead_ingestion.models.lead_data import InboundMessage
from lead_ingestion.utils.logger import LoggerFactory
from lead_ingestion.utils.metrics import reset_metrics

ENV_VARS = [
    "ENVIRONMENT", "LOG_LEVEL", "LOG_FORMAT",
    "ENABLE_FALLBACK_PARSING", "MAX_EMAIL_SIZE_MB", "MAX_MESSAGES_PER_RUN", "WEBSITE_DOMAIN",
    "MAILBOX_BACKEND", "IMAP_HOST", "IMAP_PORT", "IMAP_USERNAME", "IMAP_PASSWORD", "IMAP_FOLDER",
    "IMAP_TIMEOUT_SECONDS", "AWS_REGION", "AWS_S3_BUCKET", "S3_INBOX_PREFIX", "S3_PROCESSED_PREFIX",
    "ENABLE_CUSTOM_METRICS", "METRIC_NAMESPACE",
]


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    reset_config()
    reset_metrics()
    set_pipeline(None)
    LoggerFactory.configure(level="INFO", format_type="json")
    yield
    reset_config()
    reset_metrics()
    set_pipeline(None)


COMPAREMYMOVE_SENDER = "CompareMyMove <accounts@comparemymove.com>"
COMPAREMYMOVE_SUBJECT = "Removals lead from comparemymove.com (John Smith)"
COMPAREMYMOVE_HTML = """
<html><body>
<p>You have a new removals lead.</p>
<p>Email: john.smith@email.com</p>
<p>Phone: 07700 900123</p>
<p>Moving from: 45 High Street, London, NW1 2AB</p>
<p>Moving to: 12 Oak Avenue, Manchester, M1 5GH</p>
<p>Move date: 15/03/2026</p>
<p>Bedrooms: 3</p>
<p>Additional services: Packing, Dismantling</p>
<p>Sent by accounts@comparemymove.com</p>
</body></html>
"""
COMPAREMYMOVE_TEXT = (
    "Email: john.smith@email.com\n"
    "Phone: 07700 900123\n"
    "Moving from: 45 High Street, London, NW1 2AB\n"
    "Moving to: 12 Oak Avenue, Manchester, M1 5GH\n"
    "Move date: 15/03/2026\n"
    "Bedrooms: 3\n"
)

REALLYMOVING_SENDER = "manuallead@reallymoving.com"
REALLYMOVING_SUBJECT = "Manual quote - 2 bedroom - 120 miles - Jane Doe (RM98765)"
REALLYMOVING_TEXT = (
    "Name: Jane Doe\n"
    "Email: jane.doe@gmail.com\n"
    "Phone: 07800 123456\n"
    "From: 22 Park Lane, Birmingham, B1 1AA\n"
    "To: 88 River Road, Leeds, LS1 2BB\n"
    "Move Date: 01-04-2026\n"
    "Property: 2 bedroom flat\n"
    "Notes: Needs piano moving\n"
)

GETAMOVER_SENDER = "info@getamover.co.uk"
GETAMOVER_SUBJECT = "New Quote Request: Tom Baker, lead ID 55821"
GETAMOVER_HTML = """
<table>
<tr><td>Name:</td><td>Tom Baker</td></tr>
<tr><td>Email:</td><td>tom.baker@outlook.com</td></tr>
<tr><td>Phone:</td><td>07911 223344</td></tr>
<tr><td>From Address:</td><td>3 Elm Close, Bristol, BS1 4DJ</td></tr>
<tr><td>To Address:</td><td>7 Bath Road, Bath, BA1 1AA</td></tr>
<tr><td>Moving Date:</td><td>2026-05-20</td></tr>
<tr><td>Bedrooms:</td><td>4</td></tr>
</table>
"""

WEBSITE_SENDER = "Holdem Removals <office@holdemremovals.co.uk>"
WEBSITE_SUBJECT = "New Instant Quote by Sarah Williams moving from NN1 2PQ on 10 June 2026"
WEBSITE_HTML = """
<h2>New Instant Quote</h2>
<p><strong>Name:</strong> Sarah Williams</p>
<p><strong>Email:</strong> sarah.w@yahoo.com</p>
<p><strong>Phone:</strong> 07777 888999</p>
<p><strong>From:</strong> 5 Church Lane, Northampton, NN1 2PQ</p>
<p><strong>To:</strong> 10 Mill Way, Milton Keynes, MK9 3AB</p>
<p><strong>Date:</strong> 10 June 2026</p>
<p><strong>Bedrooms:</strong> 3 bed house</p>
<p><strong>Packing service:</strong> Yes</p>
<p><strong>Cleaning service:</strong> No</p>
<p>Office copy sent to office@holdemremovals.co.uk</p>
"""

UNKNOWN_SENDER = "someone@randomsite.org"
UNKNOWN_SUBJECT = "Hello"
UNKNOWN_TEXT = "Just saying hi, no details here."


def make_message(message_id, sender, subject, text_body="", html_body=None):
    return InboundMessage(
        message_id=message_id,
        sender=sender,
        subject=subject,
        text_body=text_body,
        html_body=html_body
    )


@pytest.fixture
def comparemymove_message():
    return make_message("cmm-1", COMPAREMYMOVE_SENDER, COMPAREMYMOVE_SUBJECT, html_body=COMPAREMYMOVE_HTML)


@pytest.fixture
def reallymoving_message():
    return make_message("rm-1", REALLYMOVING_SENDER, REALLYMOVING_SUBJECT, text_body=REALLYMOVING_TEXT)


@pytest.fixture
def unknown_message():
    return make_message("unk-1", UNKNOWN_SENDER, UNKNOWN_SUBJECT, text_body=UNKNOWN_TEXT)
