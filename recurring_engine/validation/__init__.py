"""Payload validation package."""

from recurring_engine.validation.validator import (
    RecurringPayloadValidator,
    ensure_valid,
    issues_from_pydantic,
)

__all__ = ["RecurringPayloadValidator", "ensure_valid", "issues_from_pydantic"]
