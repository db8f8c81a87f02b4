"""Tests for the per-field extraction helpers."""

from datetime import date

import pytest

from lead_ingestion.parsers.extraction import (
    html_to_text,
    body_text,
    sender_domain,
    find_label_value,
    extract_email,
    extract_phone,
    extract_postcode,
    split_address,
    parse_move_date,
    extract_bedrooms,
    find_bedrooms,
    split_name,
    detect_service,
    clip_reference
)


def test_html_to_text_joins_table_cells_per_row():
    html = "<table><tr><td>Name:</td><td>Tom Baker</td></tr><tr><td>Bedrooms:</td><td>4</td></tr></table>"
    assert html_to_text(html).splitlines() == ["Name: Tom Baker", "Bedrooms: 4"]


def test_html_to_text_keeps_inline_label_on_one_line():
    html = "<p><strong>Email:</strong> jo@gmail.com</p><p>Phone:<br>07700 900123</p><script>var x = 1;</script>"
    assert html_to_text(html).splitlines() == ["Email: jo@gmail.com", "Phone:", "07700 900123"]


def test_body_text_prefers_html_part():
    assert body_text("plain text", "<p>Email: a@b.com</p>") == "Email: a@b.com"


def test_body_text_flattens_html_sent_as_text():
    assert body_text("<p>Bedrooms: 3</p><p>Notes: none</p>") == "Bedrooms: 3\nNotes: none"


@pytest.mark.parametrize("address, expected", [
    ("accounts@comparemymove.com", "comparemymove.com"),
    ("CompareMyMove <Accounts@CompareMyMove.com>", "comparemymove.com"),
    ('"Smith, Jo" <jo@mail.reallymoving.com>', "mail.reallymoving.com"),
    ("no address here", ""),
    ("", ""),
    (None, ""),
])
def test_sender_domain(address, expected):
    assert sender_domain(address) == expected


def test_find_label_value_matches_whole_label_case_insensitively():
    text = "Moving from: 1 A Road\nFROM POSTCODE: NN1 1AA"
    assert find_label_value(text, r"moving\s+from") == "1 A Road"
    assert find_label_value(text, r"from\s+postcode") == "NN1 1AA"
    assert find_label_value(text, r"from") is None


def test_find_label_value_reads_value_from_next_line():
    assert find_label_value("Email:\njo@gmail.com", r"email") == "jo@gmail.com"
    assert find_label_value("Name:\nPhone: 07700 900123", r"name") is None


def test_find_label_value_tries_labels_in_order():
    text = "From: Office <office@holdemremovals.co.uk>\nMoving from: 1 A Road\nDate: 02/03/2026\nMove date: 15/03/2026"
    assert find_label_value(text, r"moving\s+from", r"from") == "1 A Road"
    assert find_label_value(text, r"move\s+date", r"date") == "15/03/2026"
    assert find_label_value("Date: 02/03/2026", r"move\s+date", r"date") == "02/03/2026"


def test_clip_reference():
    assert clip_reference("  RM555 ") == "RM555"
    assert clip_reference("X" * 80) == "X" * 50
    assert clip_reference("   ") is None


def test_extract_email_normalizes_case_and_whitespace():
    assert extract_email("Email:   John.Smith@Email.COM  ") == "john.smith@email.com"


def test_extract_email_skips_sender_domain_when_customer_address_present():
    text = "Sent by accounts@comparemymove.com. Customer: jo@gmail.com"
    assert extract_email(text, exclude_domains=["comparemymove.com"]) == "jo@gmail.com"
    assert extract_email("Sent by accounts@comparemymove.com", exclude_domains=["comparemymove.com"]) == \
        "accounts@comparemymove.com"


def test_extract_email_none_without_address():
    assert extract_email("no email at all") is None
    assert extract_email("") is None


@pytest.mark.parametrize("text, expected", [
    ("Phone: 07700 900123", "07700900123"),
    ("Mobile +44 (0)7700 900123", "07700900123"),
    ("call 0044 7700 900123 now", "07700900123"),
    ("Tel: 0121 496 0018", "01214960018"),
    ("Tel: 01604-123-456", "01604123456"),
])
def test_extract_phone(text, expected):
    assert extract_phone(text) == expected


def test_extract_phone_ignores_dates_and_references():
    assert extract_phone("Move Date: 01-04-2026, ref RM12345, lead ID 55821") is None


def test_extract_postcode_takes_last_match():
    assert extract_postcode("Moving from NW1 2AB to m15gh") == "M1 5GH"
    assert extract_postcode("no postcode") is None


@pytest.mark.parametrize("text, expected", [
    ("45 High Street, London, NW1 2AB", ("45 High Street, London", "NW1 2AB")),
    ("Flat 2, 9 Long Road, sw1a1aa", ("Flat 2, 9 Long Road", "SW1A 1AA")),
    ("12 Somewhere Road, Leeds", ("12 Somewhere Road, Leeds", None)),
    ("BS1 4DJ", (None, "BS1 4DJ")),
    ("", (None, None)),
])
def test_split_address(text, expected):
    assert split_address(text) == expected


@pytest.mark.parametrize("text, expected", [
    ("15/03/2026", date(2026, 3, 15)),
    ("01-04-2026", date(2026, 4, 1)),
    ("15/03/26", date(2026, 3, 15)),
    ("2026-05-20", date(2026, 5, 20)),
    ("10 June 2026", date(2026, 6, 10)),
    ("1st July 2026", date(2026, 7, 1)),
    ("Saturday 22nd of August, 2026", date(2026, 8, 22)),
])
def test_parse_move_date(text, expected):
    assert parse_move_date(text) == expected


@pytest.mark.parametrize("text", ["31/02/2026", "ASAP", "next month", "", None, "32 Smarch 2026"])
def test_parse_move_date_unparseable_is_absent(text):
    assert parse_move_date(text) is None


def test_extract_bedrooms_leading_integer():
    assert extract_bedrooms("3 bed house") == 3
    assert extract_bedrooms("4") == 4
    assert extract_bedrooms("Studio") is None
    assert extract_bedrooms("House, 2 bedrooms") == 2


def test_find_bedrooms_in_free_text():
    assert find_bedrooms("a lovely 4-bedroom home") == 4
    assert find_bedrooms("45 High Street") is None


def test_split_name():
    assert split_name("John Smith") == ("John", "Smith")
    assert split_name("  Mary Ann Jones ") == ("Mary", "Ann Jones")
    assert split_name("Cher") == ("Cher", None)
    assert split_name("") == (None, None)


@pytest.mark.parametrize("text, expected", [
    ("Packing service: Yes", True),
    ("Packing service: No", False),
    ("Packing: not required", False),
    ("No packing needed", False),
    ("Services: packing, storage", True),
    ("Just a move", False),
])
def test_detect_packing(text, expected):
    assert detect_service(text, "packing") is expected
