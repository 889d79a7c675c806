"""
Tests for models, validation, configuration and audit logging.

Test strategy:
1. Unit tests for individual components (models, validators)
2. No real API calls in tests
"""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest
import structlog

from recurring_engine.audit import AuditLogger, configure_logging
from recurring_engine.config import (
    AppSettings,
    EngineSettings,
    LoggingSettings,
    get_settings,
    validate_all_settings,
)
from recurring_engine.errors import RecurringValidationError
from recurring_engine.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)
from recurring_engine.models.recurring import (
    CreateRecurringPayload,
    Frequency,
    RecurringStatus,
    UpdateRecurringPayload,
    ValidationIssue,
    ValidationResult,
)
from recurring_engine.services.storage import InMemoryAuditStorage
from recurring_engine.validation import RecurringPayloadValidator, ensure_valid


class TestRecurringModels:
    """Tests for recurring item Pydantic models."""

    def test_item_rejects_non_positive_amount(self, make_item):
        with pytest.raises(ValueError):
            make_item(amount=Decimal("0"))

    def test_status_derivation(self, make_item):
        assert make_item().status == RecurringStatus.ACTIVE
        assert make_item(is_active=False).status == RecurringStatus.PAUSED
        expired = make_item(is_active=False, end_date=date(2024, 4, 30))
        assert expired.status == RecurringStatus.EXPIRED

    def test_end_date_equal_to_next_is_not_past_end(self, make_item):
        assert not make_item(end_date=date(2024, 5, 1)).is_past_end_date

    def test_payload_strips_whitespace(self):
        payload = CreateRecurringPayload(
            account_id="  acc-1  ", amount=Decimal("10.00"), frequency="weekly"
        )
        assert payload.account_id == "acc-1"
        assert payload.frequency == Frequency.WEEKLY

    def test_update_payload_changes_only_set_fields(self):
        payload = UpdateRecurringPayload(note="x", end_date=None)
        assert payload.changes() == {"note": "x", "end_date": None}

    def test_update_payload_rejects_cleared_required_field(self):
        with pytest.raises(ValueError, match="cannot be cleared"):
            UpdateRecurringPayload(frequency=None)


class TestPayloadValidator:
    """Tests for two-stage payload validation."""

    def test_parse_create_reports_every_field(self):
        validator = RecurringPayloadValidator()
        with pytest.raises(RecurringValidationError) as exc_info:
            validator.parse_create({"amount": "-1", "frequency": "hourly"})

        assert sorted(exc_info.value.fields) == ["account_id", "amount", "frequency"]
        assert exc_info.value.operation == "create"

    def test_parse_create_rejects_unknown_field(self):
        with pytest.raises(RecurringValidationError) as exc_info:
            RecurringPayloadValidator().parse_create(
                {"account_id": "a", "amount": "1", "frequency": "daily", "colour": "red"}
            )
        assert exc_info.value.issues[0].issue_type == "unknown_field"

    def test_end_before_start_is_a_warning(self):
        payload = CreateRecurringPayload(
            account_id="a",
            amount=Decimal("1"),
            frequency="daily",
            start_date=date(2024, 5, 1),
            end_date=date(2024, 4, 1),
        )
        result = RecurringPayloadValidator().validate_create(payload, date(2024, 4, 15))

        assert result.is_valid
        assert len(result.warnings) == 1
        assert "expired" in result.warnings[0]

    def test_schedule_edit_flagged_as_info(self, make_item):
        result = RecurringPayloadValidator().validate_update(
            UpdateRecurringPayload(frequency="weekly"), make_item()
        )
        assert result.is_valid
        assert result.warnings == []
        assert result.issues[0].issue_type == "schedule_not_recomputed"

    def test_ensure_valid_raises_on_errors(self):
        result = ValidationResult(
            is_valid=False,
            issues=[
                ValidationIssue(
                    field="amount",
                    issue_type="invalid_value",
                    message="bad",
                    severity="error",
                )
            ],
        )
        with pytest.raises(RecurringValidationError):
            ensure_valid(result, "update")

    def test_validation_result_has_errors(self):
        result = ValidationResult(
            is_valid=True,
            issues=[
                ValidationIssue(
                    field="end_date",
                    issue_type="inconsistent",
                    message="End before start",
                    severity="warning",
                )
            ],
            warnings=["End before start"],
        )
        assert not result.has_errors
        assert result.error_fields == []


class TestAuditModels:
    """Tests for audit models."""

    def test_audit_event_creation(self):
        event = AuditEvent(
            event_type=AuditEventType.RECURRING_PAUSED,
            description="Paused",
        )
        assert event.event_id is not None
        assert event.timestamp.tzinfo is not None
        assert event.severity == AuditSeverity.INFO

    def test_audit_event_to_log_dict(self):
        item_id = uuid4()
        event = AuditEventBuilder.executed("space-1", item_id, date(2024, 5, 1), date(2024, 6, 1))

        log_dict = event.to_log_dict()

        assert log_dict["event_type"] == "recurring_executed"
        assert log_dict["entity_id"] == str(item_id)
        assert log_dict["details"]["next_execution_date"] == "2024-06-01"

    def test_failure_events_are_errors(self):
        event = AuditEventBuilder.transition_failed("space-1", "pause", "sheet down")
        assert event.severity == AuditSeverity.ERROR
        assert event.error_message == "sheet down"

    def test_run_with_failures_is_a_warning(self):
        event = AuditEventBuilder.execution_run_completed("space-1", date(2024, 4, 15), 2, 1)
        assert event.severity == AuditSeverity.WARNING


class TestAuditLogger:
    """Tests for the audit logger."""

    @pytest.mark.asyncio
    async def test_persists_events(self):
        storage = InMemoryAuditStorage()
        audit = AuditLogger(storage)
        item_id = uuid4()

        await audit.log_paused("space-1", item_id)

        history = await audit.history(item_id)
        assert [e.event_type for e in history] == [AuditEventType.RECURRING_PAUSED]

    @pytest.mark.asyncio
    async def test_storage_failure_does_not_raise(self):
        class BrokenStorage(InMemoryAuditStorage):
            async def append_event(self, event):
                raise RuntimeError("disk full")

        audit = AuditLogger(BrokenStorage())
        assert await audit.log(AuditEventBuilder.deleted("space-1", uuid4())) is False

    @pytest.mark.asyncio
    async def test_local_only(self):
        audit = AuditLogger()
        assert await audit.log(AuditEventBuilder.space_cleared("space-1", 3)) is True
        assert await audit.history(uuid4()) == []


class TestConfigureLogging:
    """Tests for structlog setup."""

    def test_configures_structlog(self):
        configure_logging(LoggingSettings(level="DEBUG", render_json=False))
        assert structlog.is_configured()
        structlog.get_logger("tests").info("configured", ok=True)


class TestSettings:
    """Tests for environment-driven configuration."""

    def test_engine_defaults(self, monkeypatch):
        monkeypatch.delenv("RECURRING_RESUME_FAST_FORWARD", raising=False)
        settings = EngineSettings()
        assert settings.resume_fast_forward is False
        assert settings.legacy_frequency_fallback is True
        assert settings.max_fast_forward_steps == 100_000

    def test_engine_from_env(self, monkeypatch):
        monkeypatch.setenv("RECURRING_RESUME_FAST_FORWARD", "true")
        monkeypatch.setenv("RECURRING_LEGACY_FREQUENCY_FALLBACK", "false")
        settings = EngineSettings()
        assert settings.resume_fast_forward is True
        assert settings.legacy_frequency_fallback is False

    def test_log_level_validated(self):
        with pytest.raises(ValueError):
            LoggingSettings(level="LOUD")

    def test_app_settings_carry_only_storage_backend(self, monkeypatch):
        monkeypatch.delenv("STORAGE_BACKEND", raising=False)
        settings = AppSettings()
        assert set(AppSettings.model_fields) == {"storage_backend"}
        assert settings.storage_backend == "memory"

    def test_unknown_storage_backend_rejected(self):
        with pytest.raises(ValueError):
            AppSettings(storage_backend="postgres")

    def test_validate_all_settings_reports_missing_sheets_config(self, monkeypatch):
        monkeypatch.delenv("GOOGLE_SHEETS_CREDENTIALS_PATH", raising=False)
        monkeypatch.delenv("GOOGLE_SHEETS_SPREADSHEET_ID", raising=False)
        get_settings.cache_clear()

        results = validate_all_settings()

        assert results["engine"] is True
        assert results["logging"] is True
        assert results["google_sheets"] is False
        assert "google_sheets_error" in results
