"""
CloudWatch metrics for ingestion runs.
"""
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, List, Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from .logger import get_logger

logger = get_logger(__name__)

DEFAULT_NAMESPACE = "Removals/LeadIngestion"


@dataclass
class MetricData:
    """Container for metric data."""
    name: str
    value: float
    unit: str = "Count"
    dimensions: Dict[str, str] = field(default_factory=dict)
    timestamp: Optional[datetime] = None


class MetricsCollector:
    """
    Buffers metric points and ships them to CloudWatch in batches.

    Publishing problems are logged and dropped; metrics never fail a run.
    """

    def __init__(
        self,
        namespace: str = DEFAULT_NAMESPACE,
        region_name: str = "eu-west-2",
        batch_size: int = 20,
        client=None
    ):
        self.namespace = namespace
        self.batch_size = batch_size
        self._metrics_buffer: List[MetricData] = []

        if client is not None:
            self.cloudwatch = client
        else:
            try:
                self.cloudwatch = boto3.client('cloudwatch', region_name=region_name)
            except (BotoCoreError, ClientError) as e:
                logger.warning(
                    "Failed to initialize CloudWatch client, metrics will be logged only",
                    error=str(e)
                )
                self.cloudwatch = None

    @property
    def pending(self) -> int:
        return len(self._metrics_buffer)

    def put_metric(
        self,
        name: str,
        value: float,
        unit: str = "Count",
        dimensions: Optional[Dict[str, str]] = None
    ):
        self._metrics_buffer.append(MetricData(
            name=name,
            value=value,
            unit=unit,
            dimensions=dimensions or {},
            timestamp=datetime.now(timezone.utc)
        ))

        logger.debug(
            f"Metric recorded: {name}",
            metric_name=name,
            metric_value=value,
            metric_unit=unit,
            metric_dimensions=dimensions
        )

        if len(self._metrics_buffer) >= self.batch_size:
            self.flush()

    def increment_counter(self, name: str, value: int = 1, dimensions: Optional[Dict[str, str]] = None):
        self.put_metric(name, float(value), unit="Count", dimensions=dimensions)

    def flush(self):
        """Send all buffered metrics to CloudWatch."""
        if not self._metrics_buffer:
            return

        if not self.cloudwatch:
            logger.warning(f"CloudWatch client not available, discarding {len(self._metrics_buffer)} metrics")
            self._metrics_buffer.clear()
            return

        metric_data = []
        for metric in self._metrics_buffer:
            data = {
                'MetricName': metric.name,
                'Value': metric.value,
                'Unit': metric.unit,
                'Timestamp': metric.timestamp
            }
            if metric.dimensions:
                data['Dimensions'] = [{'Name': k, 'Value': v} for k, v in metric.dimensions.items()]
            metric_data.append(data)

        try:
            self.cloudwatch.put_metric_data(Namespace=self.namespace, MetricData=metric_data)
            logger.debug(
                f"Sent {len(metric_data)} metrics to CloudWatch",
                namespace=self.namespace,
                metric_count=len(metric_data)
            )
        except (BotoCoreError, ClientError) as e:
            logger.error(
                "Failed to send metrics to CloudWatch",
                error=e,
                namespace=self.namespace,
                metric_count=len(metric_data)
            )
        finally:
            self._metrics_buffer.clear()


class IngestionMetrics:
    """
    Domain-level metric names for the ingestion pipeline.
    """

    def __init__(self, collector: MetricsCollector):
        self.collector = collector

    def record_message_processed(self, source: str, outcome: str):
        """`outcome` is one of created, duplicate, failed, error."""
        self.collector.increment_counter(
            "MessagesProcessed",
            dimensions={"Source": source, "Outcome": outcome}
        )

    def record_lead_created(self, source: str):
        self.collector.increment_counter("LeadsCreated", dimensions={"Source": source})

    def record_duplicate(self, source: str):
        self.collector.increment_counter("DuplicateLeads", dimensions={"Source": source})

    def record_parse_failure(self, source: str):
        self.collector.increment_counter("ParseFailures", dimensions={"Source": source})

    def record_run(self, duration_ms: float, processed: int):
        self.collector.put_metric("RunDuration", value=duration_ms, unit="Milliseconds")
        self.collector.put_metric("RunMessages", value=float(processed), unit="Count")


_metrics_collector: Optional[MetricsCollector] = None
_ingestion_metrics: Optional[IngestionMetrics] = None


def initialize_metrics(namespace: str = DEFAULT_NAMESPACE, region_name: str = "eu-west-2", client=None):
    """Initialize the global metrics collector."""
    global _metrics_collector, _ingestion_metrics

    _metrics_collector = MetricsCollector(namespace=namespace, region_name=region_name, client=client)
    _ingestion_metrics = IngestionMetrics(_metrics_collector)


def get_ingestion_metrics() -> Optional[IngestionMetrics]:
    """Metrics interface, or None when metrics were never initialized."""
    return _ingestion_metrics


def flush_metrics():
    if _metrics_collector:
        _metrics_collector.flush()


def reset_metrics():
    global _metrics_collector, _ingestion_metrics
    _metrics_collector = None
    _ingestion_metrics = None
