"""
Payload Validation

DESIGN DECISION: Validation happens in two stages:

STAGE 1 - SCHEMA VALIDATION:
- Required field presence
- Types, enums (unknown frequency tags are rejected here)
- Strictly positive amount
Done by the pydantic payload models; their errors are translated into
ValidationIssue objects so every failure names its field.

STAGE 2 - SEMANTIC VALIDATION:
- Date consistency (an end date before the start date)
- Edits that will not move the due date on their own
These produce warnings only; they never block a write.

IMPORTANT: Validation NEVER silently fixes issues. A payload with any
error-level issue is rejected before anything is persisted.
"""

from datetime import date
from typing import Any, Union

from pydantic import ValidationError

from recurring_engine.errors import RecurringValidationError
from recurring_engine.models.recurring import (
    CreateRecurringPayload,
    RecurringItem,
    UpdateRecurringPayload,
    ValidationIssue,
    ValidationResult,
)


def _issue_type(error_type: str) -> str:
    """Map a pydantic error type onto our issue vocabulary."""
    if error_type == "missing":
        return "missing"
    if error_type in ("extra_forbidden",):
        return "unknown_field"
    if error_type in ("enum", "literal_error"):
        return "invalid_choice"
    return "invalid_value"


def issues_from_pydantic(exc: ValidationError) -> list[ValidationIssue]:
    """Translate pydantic errors, keeping the failing field name."""
    issues = []
    for error in exc.errors():
        field = ".".join(str(part) for part in error.get("loc", ())) or "payload"
        issues.append(ValidationIssue(
            field=field,
            issue_type=_issue_type(error.get("type", "")),
            message=error.get("msg", "Invalid value"),
            severity="error",
        ))
    return issues


class RecurringPayloadValidator:
    """
    Validates create and update payloads.

    parse_* methods run stage 1 and raise RecurringValidationError on any
    error. validate_* methods run stage 2 against a parsed payload and
    return a ValidationResult with warnings.
    """

    # ── Stage 1 ───────────────────────────────────────────

    def parse_create(
        self,
        payload: Union[CreateRecurringPayload, dict[str, Any]],
    ) -> CreateRecurringPayload:
        """Coerce a create payload, raising with field-level issues."""
        if isinstance(payload, CreateRecurringPayload):
            return payload
        try:
            return CreateRecurringPayload.model_validate(payload)
        except ValidationError as e:
            raise RecurringValidationError(issues_from_pydantic(e), operation="create") from e

    def parse_update(
        self,
        payload: Union[UpdateRecurringPayload, dict[str, Any]],
    ) -> UpdateRecurringPayload:
        """Coerce an update payload, raising with field-level issues."""
        if isinstance(payload, UpdateRecurringPayload):
            return payload
        try:
            return UpdateRecurringPayload.model_validate(payload)
        except ValidationError as e:
            raise RecurringValidationError(issues_from_pydantic(e), operation="update") from e

    # ── Stage 2 ───────────────────────────────────────────

    def validate_create(
        self,
        payload: CreateRecurringPayload,
        today: date,
    ) -> ValidationResult:
        """
        Semantic checks for a new item.

        Checks:
        - End date before start date (the item would be created expired)
        """
        issues = []
        start = payload.start_date or today

        if payload.end_date and payload.end_date < start:
            issues.append(ValidationIssue(
                field="end_date",
                issue_type="inconsistent",
                message=(
                    f"End date ({payload.end_date}) is before start date ({start}); "
                    "the item will be created expired"
                ),
                severity="warning",
            ))

        return self._result(issues)

    def validate_update(
        self,
        payload: UpdateRecurringPayload,
        current: RecurringItem,
    ) -> ValidationResult:
        """
        Semantic checks for an edit of ``current``.

        Checks:
        - End date before start date after the edit
        - Schedule fields changed without a reschedule
        """
        issues = []
        changes = payload.changes()

        start = changes.get("start_date", current.start_date)
        end = changes.get("end_date", current.end_date)
        if end is not None and end < start:
            issues.append(ValidationIssue(
                field="end_date",
                issue_type="inconsistent",
                message=f"End date ({end}) is before start date ({start})",
                severity="warning",
            ))

        schedule_fields = sorted({"frequency", "start_date"}.intersection(changes))
        if schedule_fields:
            issues.append(ValidationIssue(
                field=schedule_fields[0],
                issue_type="schedule_not_recomputed",
                message=(
                    "Next execution date is unchanged; call reschedule to "
                    "recompute it from the new schedule"
                ),
                severity="info",
            ))

        return self._result(issues)

    # ── Helpers ───────────────────────────────────────────

    @staticmethod
    def _result(issues: list[ValidationIssue]) -> ValidationResult:
        return ValidationResult(
            is_valid=not any(issue.severity == "error" for issue in issues),
            issues=issues,
            warnings=[issue.message for issue in issues if issue.severity == "warning"],
        )

    @staticmethod
    def issues_as_dicts(issues: list[ValidationIssue]) -> list[dict]:
        """Compact form used in audit events."""
        return [
            {"field": i.field, "type": i.issue_type, "message": i.message}
            for i in issues
        ]


def ensure_valid(result: ValidationResult, operation: str) -> ValidationResult:
    """Raise if a stage 2 result carries errors; otherwise pass it through."""
    if result.has_errors:
        raise RecurringValidationError(result.issues, operation=operation)
    return result
