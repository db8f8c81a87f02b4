"""
Configuration management with environment-specific settings and validation.
"""
import os
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic import ValidationError as PydanticValidationError

from ..utils.exceptions import ConfigurationError


class Environment(str, Enum):
    """Supported environments."""
    DEVELOPMENT = "development"
    STAGING = "staging"
    PRODUCTION = "production"


class MailboxBackend(str, Enum):
    MEMORY = "memory"
    IMAP = "imap"
    S3 = "s3"


class LoggingConfig(BaseModel):
    """Logging configuration."""
    level: str = Field(default="INFO")
    format: str = Field(default="json")

    @field_validator('level')
    @classmethod
    def validate_log_level(cls, v):
        valid_levels = {'DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'}
        if v.upper() not in valid_levels:
            raise ValueError(f'Invalid log level: {v}')
        return v.upper()

    @field_validator('format')
    @classmethod
    def validate_format(cls, v):
        if v.lower() not in {'json', 'text'}:
            raise ValueError(f'Invalid log format: {v}')
        return v.lower()


class ParsingConfig(BaseModel):
    """Email parsing configuration."""
    enable_fallback_parsing: bool = Field(default=True)
    max_email_size_mb: int = Field(default=10)
    max_messages_per_run: int = Field(default=100, ge=1)
    website_domain: str = Field(default="holdemremovals.co.uk", min_length=3)

    @field_validator('max_email_size_mb')
    @classmethod
    def validate_max_size(cls, v):
        if v <= 0 or v > 100:
            raise ValueError('Max email size must be between 1 and 100 MB')
        return v

    @field_validator('website_domain')
    @classmethod
    def validate_domain(cls, v):
        return v.strip().lower().lstrip('@')


class MailboxConfig(BaseModel):
    """Where inbound lead emails are read from."""
    backend: MailboxBackend = Field(default=MailboxBackend.MEMORY)

    imap_host: Optional[str] = None
    imap_port: int = Field(default=993)
    imap_username: Optional[str] = None
    imap_password: Optional[str] = None
    imap_folder: str = Field(default="INBOX")
    imap_timeout_seconds: int = Field(default=30, ge=1)

    region_name: str = Field(default="eu-west-2")
    s3_bucket: Optional[str] = None
    s3_inbox_prefix: str = Field(default="inbox/")
    s3_processed_prefix: str = Field(default="processed/")

    @model_validator(mode='after')
    def check_backend_settings(self):
        if self.backend == MailboxBackend.IMAP:
            missing = [name for name in ('imap_host', 'imap_username', 'imap_password') if not getattr(self, name)]
            if missing:
                raise ValueError(f"IMAP mailbox requires {', '.join(missing)}")
        if self.backend == MailboxBackend.S3 and not self.s3_bucket:
            raise ValueError('S3 mailbox requires s3_bucket')
        if self.s3_inbox_prefix == self.s3_processed_prefix:
            raise ValueError('S3 inbox and processed prefixes must differ')
        return self


class MonitoringConfig(BaseModel):
    """Monitoring and metrics configuration."""
    enable_custom_metrics: bool = Field(default=False)
    metric_namespace: str = Field(default="Removals/LeadIngestion")


class AppConfig(BaseModel):
    """Main application configuration."""
    model_config = ConfigDict(use_enum_values=False)

    environment: Environment = Field(default=Environment.DEVELOPMENT)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    parsing: ParsingConfig = Field(default_factory=ParsingConfig)
    mailbox: MailboxConfig = Field(default_factory=MailboxConfig)
    monitoring: MonitoringConfig = Field(default_factory=MonitoringConfig)


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in ('1', 'true', 'yes', 'on')


def load_config() -> AppConfig:
    """
    Load configuration from environment variables.

    Returns:
        AppConfig: Validated application configuration

    Raises:
        ConfigurationError: If configuration is invalid
    """
    try:
        return AppConfig(
            environment=os.getenv('ENVIRONMENT', 'development'),
            logging=LoggingConfig(
                level=os.getenv('LOG_LEVEL', 'INFO'),
                format=os.getenv('LOG_FORMAT', 'json')
            ),
            parsing=ParsingConfig(
                enable_fallback_parsing=_env_bool('ENABLE_FALLBACK_PARSING', 'true'),
                max_email_size_mb=int(os.getenv('MAX_EMAIL_SIZE_MB', '10')),
                max_messages_per_run=int(os.getenv('MAX_MESSAGES_PER_RUN', '100')),
                website_domain=os.getenv('WEBSITE_DOMAIN', 'holdemremovals.co.uk')
            ),
            mailbox=MailboxConfig(
                backend=os.getenv('MAILBOX_BACKEND', 'memory').lower(),
                imap_host=os.getenv('IMAP_HOST'),
                imap_port=int(os.getenv('IMAP_PORT', '993')),
                imap_username=os.getenv('IMAP_USERNAME'),
                imap_password=os.getenv('IMAP_PASSWORD'),
                imap_folder=os.getenv('IMAP_FOLDER', 'INBOX'),
                imap_timeout_seconds=int(os.getenv('IMAP_TIMEOUT_SECONDS', '30')),
                region_name=os.getenv('AWS_REGION', 'eu-west-2'),
                s3_bucket=os.getenv('AWS_S3_BUCKET'),
                s3_inbox_prefix=os.getenv('S3_INBOX_PREFIX', 'inbox/'),
                s3_processed_prefix=os.getenv('S3_PROCESSED_PREFIX', 'processed/')
            ),
            monitoring=MonitoringConfig(
                enable_custom_metrics=_env_bool('ENABLE_CUSTOM_METRICS', 'false'),
                metric_namespace=os.getenv('METRIC_NAMESPACE', 'Removals/LeadIngestion')
            )
        )
    except (PydanticValidationError, ValueError) as e:
        raise ConfigurationError(f"Failed to load configuration: {str(e)}", cause=e)


_config: Optional[AppConfig] = None


def get_config() -> AppConfig:
    """Cached configuration instance."""
    global _config
    if _config is None:
        _config = load_config()
    return _config


def reset_config():
    global _config
    _config = None
