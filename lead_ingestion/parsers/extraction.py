"""
Field extraction helpers shared by the source parsers.

Every helper is a pure function: text in, optional typed value out. None of
them raise on malformed input; an unrecognisable value comes back as ``None``.
"""
import re
from datetime import date
from typing import Iterable, Optional, Tuple

from bs4 import BeautifulSoup

from ..utils.validators import DataValidator

_HTML_HINT = re.compile(r'<\s*(?:html|body|p|div|br|table|tr|td|span|strong)\b', re.IGNORECASE)
_BLOCK_TAGS = [
    'p', 'div', 'br', 'tr', 'li', 'table', 'section',
    'h1', 'h2', 'h3', 'h4', 'h5', 'h6',
]
_CELL_TAGS = ['td', 'th']

# A line that starts with its own "Label:" prefix
_ANY_LABEL = re.compile(r'^[A-Za-z][A-Za-z \-/()]{0,40}:(?:\s|$)')

_SENDER_ADDRESS = re.compile(r'([^<>\s"]+@[^<>\s"]+)')
_EMAIL_CANDIDATE = re.compile(r'[\w.+\-]+@[\w\-]+(?:\.[\w\-]+)+')
_PHONE_CANDIDATE = re.compile(
    r'(?<![\d+])(?:\+44\s?\(?0?\)?\s?|0044\s?|0)\d(?:[\s\-.]?\d){8,9}(?!\d)'
)
_POSTCODE_IN_TEXT = re.compile(r'\b([A-Z]{1,2}\d[A-Z\d]?)\s*(\d[A-Z]{2})\b', re.IGNORECASE)

_ISO_DATE = re.compile(r'\b(\d{4})[/\-.](\d{1,2})[/\-.](\d{1,2})\b')
_DAY_FIRST_DATE = re.compile(r'\b(\d{1,2})[/\-.](\d{1,2})[/\-.](\d{4}|\d{2})\b')
_LONG_DATE = re.compile(
    r'\b(\d{1,2})(?:st|nd|rd|th)?\s+(?:of\s+)?([A-Za-z]{3,9})\.?,?\s+(\d{4})\b',
    re.IGNORECASE
)
_MONTHS = {
    'jan': 1, 'feb': 2, 'mar': 3, 'apr': 4, 'may': 5, 'jun': 6,
    'jul': 7, 'aug': 8, 'sep': 9, 'oct': 10, 'nov': 11, 'dec': 12,
}

_LEADING_INT = re.compile(r'^\s*(\d{1,2})(?!\d)')
_BED_COUNT = re.compile(r'\b(\d{1,2})\s*-?\s*(?:bed(?:room)?s?|br)\b', re.IGNORECASE)
MAX_BEDROOMS = 50

MAX_ADDRESS_LENGTH = 200
MAX_NAME_LENGTH = 100
MAX_REFERENCE_LENGTH = 50

_AFFIRMATIVE = {'yes', 'y', 'true', 'required'}


def html_to_text(html: Optional[str]) -> str:
    """
    Flatten an HTML body into ``Label: Value`` lines.

    Block elements end a line; table cells of one row are joined with a
    space so ``<td>Name:</td><td>Jo</td>`` reads ``Name: Jo``.
    """
    if not html:
        return ""

    soup = BeautifulSoup(html, 'html.parser')
    for tag in soup(['script', 'style', 'head']):
        tag.decompose()
    for cell in soup.find_all(_CELL_TAGS):
        cell.insert_after(' ')
    for block in soup.find_all(_BLOCK_TAGS):
        if block.name == 'br':
            block.replace_with('\n')
        else:
            block.insert_after('\n')

    lines = (' '.join(line.split()) for line in soup.get_text().splitlines())
    return '\n'.join(line for line in lines if line)


def body_text(text_body: Optional[str], html_body: Optional[str] = None) -> str:
    """The text a parser should scan: the flattened HTML part when present."""
    if html_body and html_body.strip():
        return html_to_text(html_body)
    text = text_body or ""
    if _HTML_HINT.search(text):
        return html_to_text(text)
    lines = (' '.join(line.split()) for line in text.splitlines())
    return '\n'.join(line for line in lines if line)


def sender_domain(address: Optional[str]) -> str:
    """
    Domain part of a sender, tolerating ``"Name <user@host>"`` forms.

    Returns:
        Lowercased domain or empty string
    """
    if not address or '@' not in address:
        return ""
    match = _SENDER_ADDRESS.search(address)
    if not match:
        return ""
    return match.group(1).rsplit('@', 1)[1].strip('.>').lower()


def domain_matches(domain: str, candidates: Iterable[str]) -> bool:
    return any(domain == c or domain.endswith('.' + c) for c in candidates)


def find_label_value(text: Optional[str], *labels: str) -> Optional[str]:
    """
    Value of a ``Label: Value`` line whose label matches.

    ``labels`` are regex fragments matched case-insensitively against the
    whole label, most specific first: every line is tried against one label
    before the next label is tried. When the label stands alone on its line
    the next line is taken as the value, unless it is itself a labelled line.
    """
    if not text or not labels:
        return None

    lines = [line.strip() for line in text.splitlines()]

    for label in labels:
        label_re = re.compile(r'^(?:%s)\s*:\s*(.*)$' % label, re.IGNORECASE)
        for index, line in enumerate(lines):
            match = label_re.match(line)
            if not match:
                continue
            value = match.group(1).strip()
            if value:
                return value
            following = lines[index + 1] if index + 1 < len(lines) else ""
            if following and not _ANY_LABEL.match(following):
                return following

    return None


def extract_email(text: Optional[str], exclude_domains: Iterable[str] = ()) -> Optional[str]:
    """
    First syntactically valid email address in ``text``, lowercased.

    Addresses at ``exclude_domains`` (a sender's own footer addresses) are
    only returned when nothing else is found.
    """
    if not text:
        return None

    excluded = tuple(d.lower() for d in exclude_domains)
    fallback = None
    for candidate in _EMAIL_CANDIDATE.finditer(text):
        is_valid, normalized = DataValidator.validate_email_address(candidate.group(0))
        if not is_valid:
            continue
        if excluded and domain_matches(normalized.rsplit('@', 1)[1], excluded):
            fallback = fallback or normalized
            continue
        return normalized

    return fallback


def extract_phone(text: Optional[str]) -> Optional[str]:
    """First UK phone number in ``text``, separators stripped and ``+44`` rewritten to ``0``."""
    if not text:
        return None

    for candidate in _PHONE_CANDIDATE.finditer(text):
        is_valid, normalized = DataValidator.validate_phone_number(candidate.group(0))
        if is_valid:
            return normalized

    return None


def extract_postcode(text: Optional[str]) -> Optional[str]:
    """Last UK postcode in ``text`` in canonical form."""
    if not text:
        return None

    matches = list(_POSTCODE_IN_TEXT.finditer(text))
    if not matches:
        return None
    last = matches[-1]
    return DataValidator.validate_postcode(last.group(1) + last.group(2))[1]


def split_address(text: Optional[str]) -> Tuple[Optional[str], Optional[str]]:
    """
    Split a one-line address into (address, postcode).

    The trailing postcode token is removed from the address text along with
    the separators before it.
    """
    if not text or not text.strip():
        return None, None

    text = ' '.join(text.split())
    matches = list(_POSTCODE_IN_TEXT.finditer(text))
    if not matches:
        return text[:MAX_ADDRESS_LENGTH], None

    last = matches[-1]
    is_valid, postcode = DataValidator.validate_postcode(last.group(1) + last.group(2))
    if not is_valid:
        return text[:MAX_ADDRESS_LENGTH], None
    address = (text[:last.start()] + text[last.end():]).strip(' ,;-')
    address = re.sub(r'\s*,\s*,', ',', address)
    return (address[:MAX_ADDRESS_LENGTH] or None), postcode


def _safe_date(year: int, month: int, day: int) -> Optional[date]:
    try:
        return date(year, month, day)
    except ValueError:
        return None


def parse_move_date(text: Optional[str]) -> Optional[date]:
    """
    Parse a move date written the way UK lead emails write them.

    Accepts ``YYYY-MM-DD``, day-first ``DD/MM/YYYY`` / ``DD-MM-YYYY`` and
    ``DD Month YYYY`` with optional ordinal suffix. Anything else, including
    impossible calendar dates, yields ``None``.
    """
    if not text:
        return None

    match = _ISO_DATE.search(text)
    if match:
        return _safe_date(int(match.group(1)), int(match.group(2)), int(match.group(3)))

    match = _DAY_FIRST_DATE.search(text)
    if match:
        year = int(match.group(3))
        if year < 100:
            year += 2000
        return _safe_date(year, int(match.group(2)), int(match.group(1)))

    match = _LONG_DATE.search(text)
    if match:
        month = _MONTHS.get(match.group(2)[:3].lower())
        if month:
            return _safe_date(int(match.group(3)), month, int(match.group(1)))

    return None


def _bedroom_count(value: str) -> Optional[int]:
    count = int(value)
    return count if count <= MAX_BEDROOMS else None


def extract_bedrooms(value: Optional[str]) -> Optional[int]:
    """Bedroom count from a field value: its leading integer (``"3 bed house"`` gives 3)."""
    if not value:
        return None

    match = _LEADING_INT.match(value) or _BED_COUNT.search(value)
    return _bedroom_count(match.group(1)) if match else None


def find_bedrooms(text: Optional[str]) -> Optional[int]:
    """Bedroom count mentioned anywhere in free text, e.g. ``"... a 4 bedroom house"``."""
    if not text:
        return None

    match = _BED_COUNT.search(text)
    return _bedroom_count(match.group(1)) if match else None


def split_name(full_name: Optional[str]) -> Tuple[Optional[str], Optional[str]]:
    """Split on the first whitespace boundary into (first, last)."""
    if not full_name:
        return None, None

    parts = full_name.strip().strip('"\'').split(None, 1)
    if not parts:
        return None, None

    first = parts[0][:MAX_NAME_LENGTH]
    last = parts[1].strip()[:MAX_NAME_LENGTH] if len(parts) > 1 else None
    return first, last or None


def detect_service(text: Optional[str], keyword: str) -> bool:
    """
    Whether a service (``packing``, ``cleaning``) was asked for.

    An explicit answer on the service's own line wins, then a negation
    ("no packing", "packing not required"), then plain keyword presence.
    """
    if not text:
        return False

    answer = re.search(
        r'\b%s\b[^:\n]*:\s*(yes|no|true|false|not\s+required|required)\b' % keyword,
        text,
        re.IGNORECASE
    )
    if answer:
        return answer.group(1).lower() in _AFFIRMATIVE

    negated = re.search(
        r'\bno\s+%s\b|\b%s\b[^\n]*?\bnot\s+(?:required|needed)\b' % (keyword, keyword),
        text,
        re.IGNORECASE
    )
    if negated:
        return False

    return re.search(r'\b%s\b' % keyword, text, re.IGNORECASE) is not None


def clip_reference(value: Optional[str]) -> Optional[str]:
    """Aggregator reference trimmed to the stored length."""
    if not value or not value.strip():
        return None
    return value.strip()[:MAX_REFERENCE_LENGTH]
