"""
Parser for quote requests from the company's own website.
"""
import re
from typing import Any, Dict, Optional

from ..base_parser import BaseParser
from ..extraction import (
    find_label_value,
    extract_postcode,
    parse_move_date,
    extract_bedrooms,
    find_bedrooms,
    detect_service
)
from ..lead_source_detector import DEFAULT_WEBSITE_DOMAIN
from ...models.lead_data import SourceId


class WebsiteParser(BaseParser):
    """
    Parser for the website instant-quote form.

    The form mails from the company's own domain with a subject such as
    "New Instant Quote by John Smith moving from NN1 2AB on 15/02/2026".
    Body lines override what the subject says.
    """

    source = SourceId.WEBSITE

    SUBJECT_SUMMARY = re.compile(
        r'by\s+(.+?)\s+moving\s+from\s+([A-Z0-9 ]+?)\s+on\s+(.+)$',
        re.IGNORECASE
    )
    QUOTE_SUBJECT = re.compile(r'instant\s+quote', re.IGNORECASE)

    def __init__(self, website_domain: str = DEFAULT_WEBSITE_DOMAIN):
        self.sender_domains = (website_domain.lower(),)
        super().__init__()

    def can_parse(self, from_address: str, subject: str) -> bool:
        return super().can_parse(from_address, subject) and bool(self.QUOTE_SUBJECT.search(subject or ""))

    def _extract_fields(self, subject: str, text_body: str, html_body: Optional[str]) -> Dict[str, Any]:
        text = self._content(text_body, html_body)
        fields = self._contact_fields(text)

        summary = self.SUBJECT_SUMMARY.search(subject)
        if summary:
            fields.update(self._name_fields(summary.group(1)))
            fields['from_postcode'] = extract_postcode(summary.group(2))
            fields['move_date'] = parse_move_date(summary.group(3))

        if not fields.get('first_name'):
            fields.update(self._name_fields(find_label_value(text, r'(?:customer\s+|full\s+)?name')))

        for prefix, address_labels, postcode_labels in (
            ('from', (r'moving\s+from', r'from\s+address', r'collection\s+address', r'from'),
             (r'exit\s+postcode', r'from\s+postcode')),
            ('to', (r'moving\s+to', r'to\s+address', r'delivery\s+address', r'to'),
             (r'destination(?:\s+postcode)?', r'to\s+postcode')),
        ):
            address = self._address_fields(find_label_value(text, *address_labels), prefix)
            postcode_value = find_label_value(text, *postcode_labels)
            if postcode_value:
                address[f'{prefix}_postcode'] = extract_postcode(postcode_value) or postcode_value.strip()
            for key, value in address.items():
                if value is not None:
                    fields[key] = value

        move_date = parse_move_date(find_label_value(text, r'mov(?:e|ing)\s+date', r'date'))
        if move_date is not None:
            fields['move_date'] = move_date

        bedrooms = extract_bedrooms(find_label_value(text, r'(?:number\s+of\s+)?bedrooms?'))
        fields['bedrooms'] = bedrooms if bedrooms is not None else find_bedrooms(text)
        fields['property_type'] = find_label_value(text, r'property(?:\s+type)?')

        fields['packing_required'] = detect_service(text, 'packing')
        fields['cleaning_required'] = detect_service(text, 'cleaning')
        fields['notes'] = find_label_value(text, r'(?:special\s+)?notes', r'comments')

        return fields
