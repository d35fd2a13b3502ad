"""Tests for configuration defaults and env overrides."""

from __future__ import annotations

import logging

from homework_engine.core.config import (
    AppSettings,
    DynamoDBConfig,
    HomeworkPolicyConfig,
    RedisConfig,
)
from homework_engine.core.logging_config import configure_logging


def test_default_settings():
    settings = AppSettings()
    assert settings.environment == "dev"
    assert settings.redis.enabled is False
    assert settings.s3.bucket == "homework-files"


def test_policy_defaults():
    policy = HomeworkPolicyConfig()
    assert policy.require_feedback_file_to_mark_reviewed is False
    assert policy.allow_legacy_doc_mime is False
    assert policy.max_file_size_bytes == 5 * 1024 * 1024
    assert policy.ensure_items_max_rows == 500


def test_policy_env_override(monkeypatch):
    monkeypatch.setenv("HOMEWORK_POLICY_REQUIRE_FEEDBACK_FILE_TO_MARK_REVIEWED", "true")
    monkeypatch.setenv("HOMEWORK_POLICY_MAX_FILE_SIZE_BYTES", "1024")
    policy = HomeworkPolicyConfig()
    assert policy.require_feedback_file_to_mark_reviewed is True
    assert policy.max_file_size_bytes == 1024


def test_backend_env_overrides(monkeypatch):
    monkeypatch.setenv("HOMEWORK_DYNAMO_TABLE_SUFFIX", "-uat")
    monkeypatch.setenv("HOMEWORK_REDIS_ENABLED", "1")
    assert DynamoDBConfig().table_suffix == "-uat"
    assert RedisConfig().enabled is True


def test_configure_logging_sets_root_level():
    configure_logging(AppSettings(log_level="DEBUG"))
    assert logging.getLogger().level == logging.DEBUG
    configure_logging(AppSettings(log_level="WARNING"))
    assert logging.getLogger().level == logging.WARNING
