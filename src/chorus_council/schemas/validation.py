"""Validation result schemas returned by the event validator."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field

from chorus_council.schemas.content import EventContent


class ValidationResult(BaseModel):
    """Outcome of validating a single event.

    ``content`` holds the parsed content model when the event is valid so the
    reducers never parse the raw JSON a second time. It is excluded from
    serialization.
    """

    valid: bool
    errors: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    event_type: str = "unknown"
    content: EventContent | None = Field(default=None, exclude=True)


class BatchValidation(BaseModel):
    """Totals for a batch of validated events."""

    total_events: int
    valid_events: int
    invalid_events: int
    results: list[ValidationResult]


class ComplianceIssue(BaseModel):
    """A single error or warning attached to an event."""

    event_id: str
    event_type: str
    severity: Literal["error", "warning"]
    message: str


class ComplianceSummary(BaseModel):
    """Aggregate compliance numbers for a batch."""

    total_events: int
    compliant_events: int
    compliance_rate: float = Field(..., description="Percentage of valid events (0-100)")
    critical_errors: int
    warnings: int


class ComplianceReport(BaseModel):
    """Diagnostic report; informational only and never blocks folding."""

    summary: ComplianceSummary
    event_breakdown: dict[str, int]
    issues: list[ComplianceIssue]
