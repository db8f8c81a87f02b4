"""
CompareMyMove email parser implementation.
"""
import re
from typing import Any, Dict, Optional

from ..base_parser import BaseParser
from ..extraction import (
    find_label_value,
    parse_move_date,
    extract_bedrooms,
    find_bedrooms,
    detect_service
)
from ...models.lead_data import SourceId


class CompareMyMoveParser(BaseParser):
    """
    Parser for CompareMyMove lead emails.

    Handles emails with format:
    - From: accounts@comparemymove.com
    - Subject: "Removals lead from comparemymove.com (John Smith)"
    - HTML body of ``<p>Label: Value</p>`` lines
    """

    source = SourceId.COMPAREMYMOVE
    sender_domains = ("comparemymove.com",)

    # Customer name in brackets at the end of the subject
    SUBJECT_NAME = re.compile(r'\(([^)]+)\)\s*$')

    def _extract_fields(self, subject: str, text_body: str, html_body: Optional[str]) -> Dict[str, Any]:
        text = self._content(text_body, html_body)
        fields = self._contact_fields(text)

        name_match = self.SUBJECT_NAME.search(subject)
        full_name = name_match.group(1) if name_match else find_label_value(
            text, r'(?:customer\s+|full\s+)?name'
        )
        fields.update(self._name_fields(full_name))

        fields.update(self._address_fields(
            find_label_value(text, r'moving\s+from', r'current\s+address', r'from'), 'from'
        ))
        fields.update(self._address_fields(
            find_label_value(text, r'moving\s+to', r'new\s+address', r'to'), 'to'
        ))

        fields['move_date'] = parse_move_date(
            find_label_value(text, r'move\s+date', r'moving\s+date', r'date')
        )

        bedrooms = extract_bedrooms(find_label_value(text, r'(?:number\s+of\s+)?bedrooms?'))
        fields['bedrooms'] = bedrooms if bedrooms is not None else find_bedrooms(text)
        fields['property_type'] = find_label_value(text, r'property(?:\s+type)?')

        services = find_label_value(text, r'additional\s+services', r'services')
        additional = find_label_value(text, r'additional\s+information', r'notes')

        notes = []
        if services:
            notes.append(f"Services: {services}")
        if additional:
            notes.append(f"Additional: {additional}")
        fields['notes'] = '\n'.join(notes) or None

        service_text = services or text
        fields['packing_required'] = detect_service(service_text, 'packing')
        fields['cleaning_required'] = detect_service(service_text, 'cleaning')

        return fields
