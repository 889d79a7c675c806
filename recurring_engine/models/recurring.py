"""
Core Data Models for Recurring Transactions

These models define the strict schemas for every recurring item flowing
through the engine. They are designed to:
1. Enforce type safety at runtime
2. Reject non-positive amounts and unknown frequencies at the boundary
3. Be serializable for storage and logging

DESIGN DECISION: The amount constraint lives on the model itself, so a
non-positive amount can never exist inside the engine, whatever path
created the object.
"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Annotated, Optional
from uuid import UUID, uuid4

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
)


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class Frequency(str, Enum):
    """
    How often a recurring item fires.

    This is a closed set. The frequency calculator dispatches on it with an
    exhaustive table, so a new member without a rule fails loudly.
    """
    DAILY = "daily"
    WEEKLY = "weekly"
    BIWEEKLY = "biweekly"
    MONTHLY = "monthly"
    YEARLY = "yearly"


class TransactionKind(str, Enum):
    """Direction of the money flow."""
    EXPENSE = "expense"
    INCOME = "income"


class RecurringStatus(str, Enum):
    """
    Lifecycle state of a recurring item.

    Derived from the stored fields, never stored itself:
    - ACTIVE: is_active is True
    - EXPIRED: inactive and next execution falls after the end date
    - PAUSED: inactive for any other reason
    """
    ACTIVE = "active"
    PAUSED = "paused"
    EXPIRED = "expired"


PositiveAmount = Annotated[
    Decimal,
    Field(gt=0, decimal_places=2, description="Amount, strictly positive"),
]


# =============================================================================
# CORE RECURRING ITEM MODEL
# =============================================================================

class RecurringItem(BaseModel):
    """
    A template for a periodically repeating transaction.

    CRITICAL: next_execution_date is only ever changed by an explicit
    recompute (create, mark executed, reschedule). Editing metadata never
    shifts a due date.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    # Identity
    id: UUID = Field(
        default_factory=uuid4,
        description="Unique recurring item ID"
    )
    owner_space_id: str = Field(
        ...,
        min_length=1,
        description="Owning space (partition key for all queries)"
    )

    # Foreign references (not validated by the engine)
    account_id: str = Field(
        ...,
        min_length=1,
        description="Account the realized transactions are booked on"
    )
    category_id: Optional[str] = None
    category: Optional[str] = Field(
        default=None,
        max_length=100,
        description="Legacy free-text category label"
    )

    amount: PositiveAmount
    kind: TransactionKind = TransactionKind.EXPENSE
    frequency: Frequency

    # Schedule
    start_date: date
    end_date: Optional[date] = None
    last_executed_date: Optional[date] = None
    next_execution_date: date
    is_active: bool = True

    note: str = Field(
        default="",
        max_length=500,
        description="Free-text label"
    )
    created_by: Optional[str] = Field(
        default=None,
        description="Opaque actor id of the creator"
    )

    # Write metadata, assigned by the store
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    version: int = Field(
        default=1,
        ge=1,
        description="Bumped on every write; used for compare-and-swap"
    )

    @property
    def status(self) -> RecurringStatus:
        """Derive the lifecycle state from the stored fields."""
        if self.is_active:
            return RecurringStatus.ACTIVE
        if self.is_past_end_date:
            return RecurringStatus.EXPIRED
        return RecurringStatus.PAUSED

    @property
    def is_past_end_date(self) -> bool:
        """True when the next firing would fall after the end date."""
        return self.end_date is not None and self.next_execution_date > self.end_date


# =============================================================================
# PAYLOAD MODELS - data entry boundary
# =============================================================================

class CreateRecurringPayload(BaseModel):
    """
    Input for creating a recurring item.

    start_date is optional: the lifecycle falls back to "today" from its
    clock, never to the system clock directly.
    """
    model_config = ConfigDict(str_strip_whitespace=True, extra="forbid")

    account_id: str = Field(..., min_length=1)
    amount: PositiveAmount
    frequency: Frequency
    kind: TransactionKind = TransactionKind.EXPENSE
    category_id: Optional[str] = None
    category: Optional[str] = Field(default=None, max_length=100)
    note: str = Field(default="", max_length=500)
    start_date: Optional[date] = None
    end_date: Optional[date] = None


class UpdateRecurringPayload(BaseModel):
    """
    Partial update of a recurring item.

    Only fields explicitly present in the payload are applied; use
    ``changes()`` rather than ``model_dump()``. An explicit ``end_date=None``
    withdraws the end-date constraint.
    """
    model_config = ConfigDict(str_strip_whitespace=True, extra="forbid")

    account_id: Optional[str] = Field(default=None, min_length=1)
    amount: Optional[PositiveAmount] = None
    frequency: Optional[Frequency] = None
    kind: Optional[TransactionKind] = None
    category_id: Optional[str] = None
    category: Optional[str] = Field(default=None, max_length=100)
    note: Optional[str] = Field(default=None, max_length=500)
    start_date: Optional[date] = None
    end_date: Optional[date] = None

    @field_validator("account_id", "amount", "frequency", "kind", "start_date", "note")
    @classmethod
    def reject_explicit_null(cls, v):
        """Required item fields may be omitted but not cleared."""
        if v is None:
            raise ValueError("Field cannot be cleared")
        return v

    def changes(self) -> dict:
        """Fields the caller explicitly set, with their new values."""
        return self.model_dump(exclude_unset=True)


# =============================================================================
# VALIDATION MODELS
# =============================================================================

class ValidationIssue(BaseModel):
    """A single validation issue found."""

    field: str = Field(
        ...,
        description="Field with the issue"
    )
    issue_type: str = Field(
        ...,
        description="Type of issue (e.g., 'missing', 'invalid_value', 'inconsistent')"
    )
    message: str = Field(
        ...,
        description="Human-readable description of the issue"
    )
    severity: str = Field(
        ...,
        pattern="^(error|warning|info)$",
        description="Issue severity"
    )


class ValidationResult(BaseModel):
    """Result of validating a create or update payload."""

    is_valid: bool
    issues: list[ValidationIssue] = Field(default_factory=list)
    warnings: list[str] = Field(
        default_factory=list,
        description="Non-blocking warnings"
    )

    @property
    def has_errors(self) -> bool:
        """Check if there are any error-level issues."""
        return any(issue.severity == "error" for issue in self.issues)

    @property
    def error_fields(self) -> list[str]:
        """Fields with error-level issues, in report order."""
        return [issue.field for issue in self.issues if issue.severity == "error"]


# =============================================================================
# READ MODELS
# =============================================================================

class MonthlyTotals(BaseModel):
    """
    Monthly-equivalent projection of recurring items.

    An approximation (30-day months, 4-week months), not a ledger-accurate
    figure.
    """
    expenses: Decimal = Decimal("0")
    income: Decimal = Decimal("0")

    @property
    def net(self) -> Decimal:
        """Projected monthly income minus expenses."""
        return self.income - self.expenses


class RecurringSummary(BaseModel):
    """Counts and totals shown on summary surfaces."""

    reference_date: date
    active_count: int = Field(default=0, ge=0)
    paused_count: int = Field(default=0, ge=0)
    expired_count: int = Field(default=0, ge=0)
    due_today_count: int = Field(default=0, ge=0)
    totals: MonthlyTotals = Field(default_factory=MonthlyTotals)


class ExecutionFailure(BaseModel):
    """One item that could not be executed during a run."""

    item_id: UUID
    stage: str = Field(
        ...,
        pattern="^(ledger|mark_executed)$",
        description="Which step failed"
    )
    error: str


class ExecutionReport(BaseModel):
    """Outcome of one execution run over a space's due items."""

    space_id: str
    reference_date: date
    executed: list[UUID] = Field(default_factory=list)
    ledger_refs: dict[str, str] = Field(
        default_factory=dict,
        description="Item id -> ledger transaction reference"
    )
    expired: list[UUID] = Field(
        default_factory=list,
        description="Items that expired as a result of this run"
    )
    failures: list[ExecutionFailure] = Field(default_factory=list)

    @property
    def executed_count(self) -> int:
        return len(self.executed)

    @property
    def has_failures(self) -> bool:
        return bool(self.failures)
