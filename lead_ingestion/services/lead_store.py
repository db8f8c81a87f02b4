"""
Lead and activity persistence interfaces with in-memory implementations.
"""
import threading
import uuid
from typing import Dict, List, Optional, Protocol

from ..models.lead_data import (
    Activity,
    ActivityType,
    Lead,
    LeadStatus,
    ParsedLeadFields,
    SourceId
)
from ..utils.validators import normalize_email, DataValidator
from ..utils.logger import get_logger

logger = get_logger(__name__)


class LeadStore(Protocol):
    def find_by_email(self, email: str) -> Optional[Lead]:
        ...

    def find_by_phone(self, phone: str) -> Optional[Lead]:
        ...

    def create(self, fields: ParsedLeadFields, source: SourceId, message_id: Optional[str] = None) -> Lead:
        ...

    def delete(self, lead_id: str) -> None:
        ...


class ActivityLog(Protocol):
    def append(self, lead_id: str, type: ActivityType, description: str) -> Activity:
        ...


def _phone_key(phone: str) -> str:
    is_valid, normalized = DataValidator.validate_phone_number(phone)
    return normalized if is_valid else phone.replace(' ', '')


class InMemoryLeadStore:
    """Dict-backed lead store with email and phone indexes."""

    def __init__(self):
        self._lock = threading.Lock()
        self._leads: Dict[str, Lead] = {}
        self._by_email: Dict[str, str] = {}
        self._by_phone: Dict[str, str] = {}

    def __len__(self) -> int:
        return len(self._leads)

    def all(self) -> List[Lead]:
        return list(self._leads.values())

    def get(self, lead_id: str) -> Optional[Lead]:
        return self._leads.get(lead_id)

    def find_by_email(self, email: str) -> Optional[Lead]:
        lead_id = self._by_email.get(normalize_email(email))
        return self._leads.get(lead_id) if lead_id else None

    def find_by_phone(self, phone: str) -> Optional[Lead]:
        lead_id = self._by_phone.get(_phone_key(phone))
        return self._leads.get(lead_id) if lead_id else None

    def create(self, fields: ParsedLeadFields, source: SourceId, message_id: Optional[str] = None) -> Lead:
        lead = Lead(
            **fields.model_dump(),
            id=str(uuid.uuid4()),
            source=source,
            status=LeadStatus.PENDING_REVIEW,
            message_id=message_id
        )

        with self._lock:
            self._leads[lead.id] = lead
            if lead.email:
                self._by_email.setdefault(lead.email, lead.id)
            if lead.phone:
                self._by_phone.setdefault(_phone_key(lead.phone), lead.id)

        logger.debug("Stored lead", lead_id=lead.id, lead_source=source.value)
        return lead

    def delete(self, lead_id: str) -> None:
        """Remove a lead and its index entries; unknown ids are ignored."""
        with self._lock:
            lead = self._leads.pop(lead_id, None)
            if lead is None:
                return
            if lead.email and self._by_email.get(lead.email) == lead_id:
                del self._by_email[lead.email]
            if lead.phone:
                key = _phone_key(lead.phone)
                if self._by_phone.get(key) == lead_id:
                    del self._by_phone[key]

        logger.debug("Deleted lead", lead_id=lead_id)


class InMemoryActivityLog:
    """Append-only activity list."""

    def __init__(self):
        self._lock = threading.Lock()
        self._entries: List[Activity] = []

    def __len__(self) -> int:
        return len(self._entries)

    @property
    def entries(self) -> List[Activity]:
        return list(self._entries)

    def for_lead(self, lead_id: str) -> List[Activity]:
        return [a for a in self._entries if a.lead_id == lead_id]

    def append(self, lead_id: str, type: ActivityType, description: str) -> Activity:
        activity = Activity(
            id=str(uuid.uuid4()),
            lead_id=lead_id,
            type=type,
            description=description
        )
        with self._lock:
            self._entries.append(activity)
        return activity
