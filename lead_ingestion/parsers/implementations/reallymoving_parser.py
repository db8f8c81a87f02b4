"""
ReallyMoving email parser implementation.
"""
import re
from typing import Any, Dict, Optional

from ..base_parser import BaseParser
from ..extraction import (
    find_label_value,
    parse_move_date,
    extract_bedrooms,
    find_bedrooms,
    detect_service,
    clip_reference
)
from ...models.lead_data import SourceId


class ReallyMovingParser(BaseParser):
    """
    Parser for ReallyMoving lead emails.

    Plain text ``Label: Value`` lines. The subject carries most of the
    summary: "Manual quote - 3 bedroom - 45 miles - John Smith (RM12345)".
    """

    source = SourceId.REALLYMOVING
    sender_domains = ("reallymoving.com",)

    SUBJECT_SUMMARY = re.compile(
        r'(\d+)\s*bedroom.*?(\d+)\s*miles.*?-\s*([^(]+?)\s*\(([^)]+)\)',
        re.IGNORECASE
    )

    def _extract_fields(self, subject: str, text_body: str, html_body: Optional[str]) -> Dict[str, Any]:
        # Plain text is authoritative; HTML only when there is no text part
        text = self._content(text_body, None if text_body.strip() else html_body)
        fields = self._contact_fields(text)

        summary = self.SUBJECT_SUMMARY.search(subject)
        if summary:
            fields['bedrooms'] = extract_bedrooms(summary.group(1))
            fields['distance_miles'] = int(summary.group(2))
            fields.update(self._name_fields(summary.group(3)))
            fields['external_ref'] = clip_reference(summary.group(4))
        else:
            fields.update(self._name_fields(
                find_label_value(text, r'(?:customer\s+|full\s+)?name')
            ))
            fields['external_ref'] = clip_reference(find_label_value(text, r'reference', r'ref'))

        fields.update(self._address_fields(
            find_label_value(text, r'moving\s+from', r'from\s+address', r'from'), 'from'
        ))
        fields.update(self._address_fields(
            find_label_value(text, r'moving\s+to', r'to\s+address', r'to'), 'to'
        ))

        fields['move_date'] = parse_move_date(
            find_label_value(text, r'move\s+date', r'estimated\s+move(?:\s+date)?')
        )

        property_type = find_label_value(text, r'property(?:\s+type)?')
        fields['property_type'] = property_type

        if fields.get('bedrooms') is None:
            bedrooms = extract_bedrooms(find_label_value(text, r'move\s+size', r'bedrooms?'))
            if bedrooms is None:
                bedrooms = find_bedrooms(property_type)
            fields['bedrooms'] = bedrooms

        notes = [
            value for value in (
                find_label_value(text, r'notes'),
                find_label_value(text, r'special\s+instructions?')
            ) if value
        ]
        fields['notes'] = '\n'.join(notes) or None

        fields['packing_required'] = detect_service(text, 'packing')
        fields['cleaning_required'] = detect_service(text, 'cleaning')

        return fields
