"""Tests for environment-driven configuration."""

import pytest

from lead_ingestion.models.config import (
    Environment,
    MailboxBackend,
    get_config,
    load_config,
    reset_config
)
from lead_ingestion.utils.exceptions import ConfigurationError, ErrorCode


def test_defaults():
    config = load_config()

    assert config.environment == Environment.DEVELOPMENT
    assert config.logging.level == "INFO"
    assert config.parsing.enable_fallback_parsing is True
    assert config.parsing.max_email_size_mb == 10
    assert config.parsing.max_messages_per_run == 100
    assert config.parsing.website_domain == "holdemremovals.co.uk"
    assert config.mailbox.backend == MailboxBackend.MEMORY
    assert config.monitoring.enable_custom_metrics is False


def test_environment_overrides(monkeypatch):
    monkeypatch.setenv("ENVIRONMENT", "production")
    monkeypatch.setenv("LOG_LEVEL", "debug")
    monkeypatch.setenv("ENABLE_FALLBACK_PARSING", "false")
    monkeypatch.setenv("MAX_MESSAGES_PER_RUN", "25")
    monkeypatch.setenv("WEBSITE_DOMAIN", "@Example-Removals.com")
    monkeypatch.setenv("MAILBOX_BACKEND", "IMAP")
    monkeypatch.setenv("IMAP_HOST", "imap.example.com")
    monkeypatch.setenv("IMAP_USERNAME", "leads")
    monkeypatch.setenv("IMAP_PASSWORD", "secret")

    config = load_config()

    assert config.environment == Environment.PRODUCTION
    assert config.logging.level == "DEBUG"
    assert config.parsing.enable_fallback_parsing is False
    assert config.parsing.max_messages_per_run == 25
    assert config.parsing.website_domain == "example-removals.com"
    assert config.mailbox.backend == MailboxBackend.IMAP
    assert config.mailbox.imap_host == "imap.example.com"


def test_s3_backend_settings(monkeypatch):
    monkeypatch.setenv("MAILBOX_BACKEND", "s3")
    monkeypatch.setenv("AWS_S3_BUCKET", "leads-bucket")
    monkeypatch.setenv("S3_INBOX_PREFIX", "mail/new/")

    config = load_config()

    assert config.mailbox.s3_bucket == "leads-bucket"
    assert config.mailbox.s3_inbox_prefix == "mail/new/"
    assert config.mailbox.s3_processed_prefix == "processed/"


@pytest.mark.parametrize("env", [
    {"LOG_LEVEL": "verbose"},
    {"LOG_FORMAT": "xml"},
    {"MAX_EMAIL_SIZE_MB": "0"},
    {"MAX_EMAIL_SIZE_MB": "lots"},
    {"MAX_MESSAGES_PER_RUN": "0"},
    {"MAILBOX_BACKEND": "pop3"},
    {"MAILBOX_BACKEND": "imap", "IMAP_HOST": "imap.example.com"},
    {"MAILBOX_BACKEND": "s3"},
    {"S3_INBOX_PREFIX": "mail/", "S3_PROCESSED_PREFIX": "mail/"},
])
def test_invalid_configuration(monkeypatch, env):
    for name, value in env.items():
        monkeypatch.setenv(name, value)

    with pytest.raises(ConfigurationError) as exc_info:
        load_config()

    assert exc_info.value.error_code == ErrorCode.CONFIG_INVALID


def test_get_config_is_cached_until_reset(monkeypatch):
    first = get_config()
    monkeypatch.setenv("MAX_MESSAGES_PER_RUN", "7")

    assert get_config() is first

    reset_config()
    assert get_config().parsing.max_messages_per_run == 7
