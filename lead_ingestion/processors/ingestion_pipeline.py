"""
Ingestion pipeline that turns unprocessed lead emails into leads.
"""
import threading
import time
from contextlib import contextmanager
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional

from ..models.config import AppConfig, MailboxBackend, MailboxConfig, get_config
from ..models.lead_data import (
    ActivityType,
    CreatedLead,
    InboundMessage,
    IngestionReport,
    Lead,
    ParsedLeadFields,
    SourceId
)
from ..parsers import ParserRegistry, NO_PARSER_REASON
from ..services import (
    Mailbox,
    InMemoryMailbox,
    ImapMailbox,
    S3Mailbox,
    LeadStore,
    ActivityLog,
    InMemoryLeadStore,
    InMemoryActivityLog
)
from ..utils.logger import get_logger, new_correlation_id
from ..utils.exceptions import ConfigurationError, PersistenceError, handle_exception
from ..utils.metrics import IngestionMetrics, get_ingestion_metrics
from ..utils.validators import is_within_size_limit

logger = get_logger(__name__)


class Outcome(str, Enum):
    CREATED = "created"
    DUPLICATE = "duplicate"
    FAILED = "failed"
    ERROR = "error"


@dataclass
class MessageOutcome:
    """What happened to one message."""
    message_id: str
    outcome: Outcome
    source: SourceId = SourceId.UNKNOWN
    lead: Optional[Lead] = None
    error: Optional[str] = None


class _IdentifierLocks:
    """
    Process-wide locks keyed on a normalized contact identifier.

    An entry lives only while some thread holds or waits on it.
    """

    def __init__(self):
        self._guard = threading.Lock()
        self._locks: Dict[str, threading.Lock] = {}
        self._holders: Dict[str, int] = {}

    def __len__(self) -> int:
        return len(self._locks)

    @contextmanager
    def hold(self, keys: Iterable[str]):
        keys = sorted(set(keys))
        with self._guard:
            for key in keys:
                self._locks.setdefault(key, threading.Lock())
                self._holders[key] = self._holders.get(key, 0) + 1
            locks = [self._locks[key] for key in keys]

        # Sorted acquisition keeps two identifiers from deadlocking
        acquired = []
        try:
            for lock in locks:
                lock.acquire()
                acquired.append(lock)
            yield
        finally:
            for lock in reversed(acquired):
                lock.release()
            with self._guard:
                for key in keys:
                    self._holders[key] -= 1
                    if not self._holders[key]:
                        del self._holders[key]
                        del self._locks[key]


_identifier_locks = _IdentifierLocks()


class IngestionPipeline:
    """
    Fetch → parse → deduplicate → create lead and activity → mark processed.

    Messages are handled one at a time. A failure on one message is recorded
    in the report and never stops the run; only an unreachable mailbox
    (``MailboxError``) propagates out of ``run``.
    """

    def __init__(
        self,
        mailbox: Mailbox,
        lead_store: LeadStore,
        activity_log: ActivityLog,
        registry: Optional[ParserRegistry] = None,
        max_email_size_mb: int = 10,
        max_messages_per_run: int = 100,
        metrics: Optional[IngestionMetrics] = None
    ):
        self.mailbox = mailbox
        self.lead_store = lead_store
        self.activity_log = activity_log
        self.registry = registry or ParserRegistry()
        self.max_email_size_mb = max_email_size_mb
        self.max_messages_per_run = max_messages_per_run
        self.metrics = metrics or get_ingestion_metrics()
        self.logger = get_logger(__name__)

    def run(self) -> IngestionReport:
        """
        Process every unprocessed message in the mailbox, up to the per-run limit.

        Returns:
            Report for this run

        Raises:
            MailboxError: If the mailbox cannot be read
        """
        if not self.logger.get_correlation_id():
            new_correlation_id()

        with self.logger.operation("ingestion_run", mailbox=self.mailbox.name):
            messages = self.mailbox.list_unprocessed(limit=self.max_messages_per_run)
            self.logger.info(f"Found {len(messages)} unprocessed emails", mailbox=self.mailbox.name)
            return self.process_messages(messages[:self.max_messages_per_run])

    def process_messages(self, messages: List[InboundMessage], mailbox: Optional[Mailbox] = None) -> IngestionReport:
        """
        Process an already fetched batch, marking each message processed.

        Args:
            messages: Messages to handle, in order
            mailbox: Mailbox the messages came from; defaults to the pipeline's own
        """
        mailbox = mailbox or self.mailbox
        report = IngestionReport()
        start_time = time.time()

        for message in messages:
            outcome = self.process_message(message)
            self._apply(report, outcome)
            try:
                mailbox.mark_processed(message.message_id)
            except Exception as e:
                structured_error = handle_exception(e, context={'message_id': message.message_id})
                self.logger.error(
                    f"Failed to mark email {message.message_id} processed",
                    error=structured_error,
                    message_id=message.message_id
                )
                report.errors.append(
                    f"Failed to mark email {message.message_id} processed: {structured_error.message}"
                )

        duration_ms = int((time.time() - start_time) * 1000)
        if self.metrics:
            self.metrics.record_run(duration_ms, report.processed)

        self.logger.info(
            f"Processing complete: {report.leads_created} leads created, {report.skipped} skipped",
            processed=report.processed,
            leads_created=report.leads_created,
            skipped=report.skipped,
            duplicates=report.duplicates,
            error_count=len(report.errors),
            duration_ms=duration_ms
        )
        return report

    def process_message(self, message: InboundMessage) -> MessageOutcome:
        """
        Handle one message end to end, without marking it processed.

        Never raises; every problem is folded into the returned outcome.
        """
        if not is_within_size_limit(message.size_bytes, self.max_email_size_mb):
            return self._finish(MessageOutcome(
                message_id=message.message_id,
                outcome=Outcome.FAILED,
                error=(
                    f"Failed to parse email {message.message_id}: "
                    f"message exceeds {self.max_email_size_mb} MB limit"
                )
            ))

        result = self.registry.parse_email(
            message.sender,
            message.subject,
            message.text_body,
            message.html_body
        )

        if not result.success:
            return self._finish(MessageOutcome(
                message_id=message.message_id,
                outcome=Outcome.FAILED,
                source=result.source,
                error=f"Failed to parse email {message.message_id}: {result.error}"
            ))

        fields = result.lead
        keys = [f"email:{fields.email}" if fields.email else None, f"phone:{fields.phone}" if fields.phone else None]

        try:
            with _identifier_locks.hold(k for k in keys if k):
                duplicate = self._find_duplicate(fields.email, fields.phone)
                if duplicate is None:
                    lead = self._create_with_activity(fields, result.source, message.message_id)

            if duplicate is not None:
                self._link_to_existing(duplicate, message)
                return self._finish(MessageOutcome(
                    message_id=message.message_id,
                    outcome=Outcome.DUPLICATE,
                    source=result.source,
                    lead=duplicate
                ))

        except Exception as e:
            structured_error = handle_exception(e, context={'message_id': message.message_id})
            self.logger.error(
                f"Failed to process email {message.message_id}",
                error=structured_error,
                message_id=message.message_id
            )
            return self._finish(MessageOutcome(
                message_id=message.message_id,
                outcome=Outcome.ERROR,
                source=result.source,
                error=f"Error processing email {message.message_id}: {structured_error.message}"
            ))

        return self._finish(MessageOutcome(
            message_id=message.message_id,
            outcome=Outcome.CREATED,
            source=result.source,
            lead=lead
        ))

    def _create_with_activity(self, fields: ParsedLeadFields, source: SourceId, message_id: str) -> Lead:
        """
        Store a new lead and its creation activity as one unit.

        Raises:
            PersistenceError: If the activity cannot be written; the lead is
                removed again before raising
        """
        lead = self.lead_store.create(fields, source, message_id)
        try:
            self.activity_log.append(
                lead.id,
                ActivityType.STATUS_CHANGE,
                f"Lead created from {source.value} email"
            )
        except Exception as e:
            self.lead_store.delete(lead.id)
            self.logger.warning(
                "Rolled back lead after activity write failed",
                lead_id=lead.id,
                message_id=message_id
            )
            cause = handle_exception(e)
            raise PersistenceError(
                message=f"Failed to record creation activity: {cause.message}",
                operation="append_activity",
                cause=e
            )
        return lead

    def _link_to_existing(self, lead: Lead, message: InboundMessage):
        """Record a repeat enquiry on the lead it duplicates."""
        try:
            self.activity_log.append(
                lead.id,
                ActivityType.EMAIL,
                f"Repeat enquiry received: {message.subject}" if message.subject else "Repeat enquiry received"
            )
        except Exception as e:
            self.logger.warning(
                "Could not link email to existing lead",
                error=str(e),
                error_type=type(e).__name__,
                lead_id=lead.id,
                message_id=message.message_id
            )

    def _find_duplicate(self, email: Optional[str], phone: Optional[str]) -> Optional[Lead]:
        if email:
            existing = self.lead_store.find_by_email(email)
            if existing is not None:
                return existing
        if phone:
            return self.lead_store.find_by_phone(phone)
        return None

    def _finish(self, outcome: MessageOutcome) -> MessageOutcome:
        """Log and count one outcome."""
        source = outcome.source.value

        if outcome.outcome == Outcome.CREATED:
            self.logger.info(
                f"Created lead from {source}",
                lead_id=outcome.lead.id,
                lead_source=source,
                message_id=outcome.message_id
            )
        elif outcome.outcome == Outcome.DUPLICATE:
            self.logger.info(
                "Email matches an existing lead",
                lead_id=outcome.lead.id,
                lead_source=source,
                message_id=outcome.message_id
            )
        else:
            self.logger.warning(outcome.error, lead_source=source, message_id=outcome.message_id)

        if self.metrics:
            self.metrics.record_message_processed(source, outcome.outcome.value)
            if outcome.outcome == Outcome.CREATED:
                self.metrics.record_lead_created(source)
            elif outcome.outcome == Outcome.DUPLICATE:
                self.metrics.record_duplicate(source)
            elif outcome.outcome == Outcome.FAILED:
                self.metrics.record_parse_failure(source)

        return outcome

    @staticmethod
    def _apply(report: IngestionReport, outcome: MessageOutcome):
        report.processed += 1

        if outcome.outcome == Outcome.CREATED:
            report.leads_created += 1
            report.leads.append(CreatedLead(
                id=outcome.lead.id,
                email=outcome.lead.email,
                source=outcome.source
            ))
        elif outcome.outcome == Outcome.DUPLICATE:
            report.skipped += 1
            report.duplicates += 1
        elif outcome.outcome == Outcome.FAILED:
            report.skipped += 1
            report.errors.append(outcome.error)
        else:
            report.errors.append(outcome.error)

    def preview_parse(self, from_address: str, subject: str, body: str) -> Dict[str, Any]:
        """
        Show what would be extracted from an email without storing anything.

        Returns:
            ``{parser_found, parser_name, source, result, error}``
        """
        parser = self.registry.detect_parser(from_address, subject)
        if parser is None:
            return {
                'parser_found': False,
                'parser_name': None,
                'source': SourceId.UNKNOWN.value,
                'result': None,
                'error': NO_PARSER_REASON
            }

        result = parser.extract(subject, body, None)
        return {
            'parser_found': True,
            'parser_name': parser.name,
            'source': result.source.value,
            'result': result.lead.model_dump(mode='json') if result.lead else None,
            'error': result.error
        }

    def stats(self) -> Dict[str, Any]:
        """
        Count unprocessed messages per detected source.

        Raises:
            MailboxError: If the mailbox cannot be read
        """
        messages = self.mailbox.list_unprocessed()
        by_source: Dict[str, int] = {}
        for message in messages:
            source = self.registry.detect_source(message.sender, message.subject).value
            by_source[source] = by_source.get(source, 0) + 1

        return {
            'total_unprocessed': len(messages),
            'by_source': by_source
        }


def create_mailbox(config: MailboxConfig) -> Mailbox:
    """Build the mailbox selected by ``MAILBOX_BACKEND``."""
    if config.backend == MailboxBackend.IMAP:
        return ImapMailbox(
            host=config.imap_host,
            username=config.imap_username,
            password=config.imap_password,
            port=config.imap_port,
            folder=config.imap_folder,
            timeout=config.imap_timeout_seconds
        )
    if config.backend == MailboxBackend.S3:
        return S3Mailbox(
            bucket=config.s3_bucket,
            inbox_prefix=config.s3_inbox_prefix,
            processed_prefix=config.s3_processed_prefix,
            region_name=config.region_name
        )
    if config.backend == MailboxBackend.MEMORY:
        return InMemoryMailbox()
    raise ConfigurationError(f"Unsupported mailbox backend: {config.backend}")


def create_pipeline(
    config: Optional[AppConfig] = None,
    mailbox: Optional[Mailbox] = None,
    lead_store: Optional[LeadStore] = None,
    activity_log: Optional[ActivityLog] = None
) -> IngestionPipeline:
    """
    Build a pipeline from configuration.

    Collaborators not passed in are created from ``config``; persistence
    defaults to the in-memory store and log.
    """
    config = config or get_config()

    registry = ParserRegistry(
        enable_fallback=config.parsing.enable_fallback_parsing,
        website_domain=config.parsing.website_domain
    )

    return IngestionPipeline(
        mailbox=mailbox or create_mailbox(config.mailbox),
        lead_store=lead_store if lead_store is not None else InMemoryLeadStore(),
        activity_log=activity_log if activity_log is not None else InMemoryActivityLog(),
        registry=registry,
        max_email_size_mb=config.parsing.max_email_size_mb,
        max_messages_per_run=config.parsing.max_messages_per_run
    )
