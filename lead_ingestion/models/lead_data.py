"""
Lead data models using Pydantic for validation and type safety.
"""
from datetime import date, datetime, timezone
from enum import Enum
from typing import Optional, List

from pydantic import BaseModel, Field, field_validator, model_validator

from ..utils.validators import DataValidator, normalize_postcode, normalize_email


class SourceId(str, Enum):
    """Known lead sources. Closed set; every member except UNKNOWN has a parser."""
    COMPAREMYMOVE = "comparemymove"
    REALLYMOVING = "reallymoving"
    GETAMOVER = "getamover"
    WEBSITE = "website"
    UNKNOWN = "unknown"


class LeadStatus(str, Enum):
    PENDING_REVIEW = "pending-review"
    NEW = "new"
    CONTACTED = "contacted"
    QUALIFIED = "qualified"
    WON = "won"
    LOST = "lost"
    REJECTED = "rejected"


class ActivityType(str, Enum):
    EMAIL = "email"
    CALL = "call"
    NOTE = "note"
    STATUS_CHANGE = "status_change"
    SMS = "sms"


class InboundMessage(BaseModel):
    """One fetched email, consumed once by the pipeline."""
    message_id: str = Field(..., min_length=1)
    sender: str = ""
    subject: str = ""
    text_body: str = ""
    html_body: Optional[str] = None
    received_at: Optional[datetime] = None

    @property
    def size_bytes(self) -> int:
        return len(self.text_body.encode('utf-8')) + len((self.html_body or '').encode('utf-8'))


class ParsedLeadFields(BaseModel):
    """Structured output of a source parser. Every field is optional."""
    first_name: Optional[str] = Field(None, max_length=100)
    last_name: Optional[str] = Field(None, max_length=100)
    email: Optional[str] = None
    phone: Optional[str] = None
    company: Optional[str] = None
    external_ref: Optional[str] = Field(None, max_length=50)
    move_date: Optional[date] = None
    from_address: Optional[str] = Field(None, max_length=200)
    from_postcode: Optional[str] = None
    property_type: Optional[str] = None
    to_address: Optional[str] = Field(None, max_length=200)
    to_postcode: Optional[str] = None
    to_property_type: Optional[str] = None
    bedrooms: Optional[int] = Field(None, ge=0, le=50)
    distance_miles: Optional[int] = Field(None, ge=0)
    packing_required: bool = False
    cleaning_required: bool = False
    notes: Optional[str] = None

    @field_validator('email')
    @classmethod
    def _normalize_email(cls, v):
        if not v:
            return None
        return normalize_email(v)

    @field_validator('phone')
    @classmethod
    def _normalize_phone(cls, v):
        if not v:
            return None
        is_valid, normalized = DataValidator.validate_phone_number(v)
        return normalized if is_valid else v.replace(' ', '')

    @field_validator('from_postcode', 'to_postcode')
    @classmethod
    def _normalize_postcode(cls, v):
        if not v or not v.strip():
            return None
        return normalize_postcode(v)

    @property
    def has_contact_identifier(self) -> bool:
        return bool(self.email or self.phone)


class ParseResult(BaseModel):
    """Outcome of parsing one message: lead fields or a failure reason, never both."""
    success: bool
    source: SourceId = SourceId.UNKNOWN
    lead: Optional[ParsedLeadFields] = None
    error: Optional[str] = None
    parser_used: Optional[str] = None

    @model_validator(mode='after')
    def _check_tagged(self):
        if self.success and (self.lead is None or self.error):
            raise ValueError('successful result must carry lead fields and no error')
        if not self.success and (self.lead is not None or not self.error):
            raise ValueError('failed result must carry a reason and no lead fields')
        return self

    @classmethod
    def ok(cls, lead: ParsedLeadFields, source: SourceId, parser_used: Optional[str] = None) -> 'ParseResult':
        return cls(success=True, lead=lead, source=source, parser_used=parser_used)

    @classmethod
    def failure(cls, reason: str, source: SourceId = SourceId.UNKNOWN, parser_used: Optional[str] = None) -> 'ParseResult':
        return cls(success=False, error=reason, source=source, parser_used=parser_used)


class Lead(ParsedLeadFields):
    """Persisted lead record."""
    id: str
    source: SourceId
    status: LeadStatus = LeadStatus.PENDING_REVIEW
    message_id: Optional[str] = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class Activity(BaseModel):
    id: str
    lead_id: str
    type: ActivityType
    description: str
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class CreatedLead(BaseModel):
    id: str
    email: Optional[str] = None
    source: SourceId


class IngestionReport(BaseModel):
    """Summary of one ingestion run."""
    processed: int = 0
    leads_created: int = 0
    skipped: int = 0
    duplicates: int = 0
    errors: List[str] = Field(default_factory=list)
    leads: List[CreatedLead] = Field(default_factory=list)
