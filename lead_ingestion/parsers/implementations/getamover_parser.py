"""
GetAMover email parser implementation.
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
    detect_service,
    clip_reference
)
from ...models.lead_data import SourceId


class GetAMoverParser(BaseParser):
    """
    Parser for GetAMover lead emails.

    Handles emails with format:
    - Subject: "New Quote Request: John Smith, lead ID 12345"
    - HTML table of ``<td>Label:</td><td>Value</td>`` rows, or a sectioned
      layout with "Moving from" / "Moving to" headings over
      ``Address:`` and ``Property:`` lines
    """

    source = SourceId.GETAMOVER
    sender_domains = ("getamover.co.uk",)

    SUBJECT_SUMMARY = re.compile(r'New Quote Request:\s*([^,]+),\s*lead\s*ID\s*(\d+)', re.IGNORECASE)
    REF_PREFIX = "GA"

    def _extract_fields(self, subject: str, text_body: str, html_body: Optional[str]) -> Dict[str, Any]:
        text = self._content(text_body, html_body)
        fields = self._contact_fields(text)

        summary = self.SUBJECT_SUMMARY.search(subject)
        if summary:
            fields.update(self._name_fields(summary.group(1)))
            fields['external_ref'] = clip_reference(f"{self.REF_PREFIX}{summary.group(2)}")
        else:
            fields.update(self._name_fields(find_label_value(text, r'(?:customer\s+|full\s+)?name')))

        self._location_fields(
            fields, text, 'from',
            labels=(r'from\s+address', r'moving\s+from', r'collection\s+address'),
            heading=r'moving\s+from',
            stop=r'moving\s+to'
        )
        self._location_fields(
            fields, text, 'to',
            labels=(r'to\s+address', r'moving\s+to', r'delivery\s+address'),
            heading=r'moving\s+to',
            stop=r'(?:move\s+)?details|category|planned|bedrooms|number\s+of'
        )
        fields['property_type'] = fields.pop('from_property_type', None)

        fields['move_date'] = parse_move_date(
            find_label_value(text, r'planned\s+moving\s+date', r'mov(?:e|ing)\s+date')
        )

        bedrooms = extract_bedrooms(find_label_value(text, r'(?:number\s+of\s+)?bedrooms'))
        fields['bedrooms'] = bedrooms if bedrooms is not None else find_bedrooms(text)

        category = find_label_value(text, r'category')
        fields['notes'] = f"Category: {category}" if category else None

        fields['packing_required'] = detect_service(text, 'packing')
        fields['cleaning_required'] = detect_service(text, 'cleaning')

        return fields

    def _location_fields(self, fields: Dict[str, Any], text: str, prefix: str, labels, heading: str, stop: str):
        """Fill address, postcode and property type from a labelled row or a headed section."""
        value = find_label_value(text, *labels)
        if value:
            fields.update(self._address_fields(value, prefix))
            return

        section = self._section(text, heading, stop)
        if not section:
            return

        address = self._address_fields(find_label_value(section, r'address'), prefix)
        if address[f'{prefix}_postcode'] is None:
            address[f'{prefix}_postcode'] = extract_postcode(
                find_label_value(section, r'post\s*code') or section
            )
        fields.update(address)
        fields[f'{prefix}_property_type'] = find_label_value(section, r'property(?:\s+type)?')

    @staticmethod
    def _section(text: str, heading: str, stop: str) -> Optional[str]:
        match = re.search(
            r'^%s\b[^\n]*\n(?P<body>.*?)(?=^(?:%s)\b|\Z)' % (heading, stop),
            text,
            re.IGNORECASE | re.MULTILINE | re.DOTALL
        )
        return match.group('body') if match else None
