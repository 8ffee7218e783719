"""Raw event ingestion and validation endpoints."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, HTTPException, status

from chorus_council.api.v1.dependencies import ProcessorDep
from chorus_council.schemas.event import Event
from chorus_council.schemas.validation import ComplianceReport, ValidationResult
from chorus_council.services.validator import EventValidator

router = APIRouter(prefix="/events", tags=["events"])


@router.post("/", status_code=status.HTTP_202_ACCEPTED)
async def ingest_event(payload: dict[str, Any], processor: ProcessorDep) -> dict[str, Any]:
    """Validate one signed event and fold it into the projections.

    Returns:
        The validation result with the fold outcome; 400 if the event is invalid.
    """
    processed = await processor.process_raw(payload)
    if isinstance(processed, ValidationResult):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=processed.model_dump(),
        )
    if not processed.validation.valid:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=processed.validation.model_dump(),
        )
    return {
        "id": processed.event.id,
        "duplicate": processed.duplicate,
        "outcome": processed.result.outcome.value if processed.result else None,
        "validation": processed.validation.model_dump(),
    }


@router.post("/validate", response_model=ValidationResult)
async def validate_event(payload: dict[str, Any]) -> ValidationResult:
    """Validate an event without folding it."""
    _, validation = EventValidator.validate_raw(payload)
    return validation


@router.post("/compliance", response_model=ComplianceReport)
async def compliance_report(events: list[Event]) -> ComplianceReport:
    """Generate a compliance report for a batch of events."""
    return EventValidator.compliance_report(events)


@router.get("/stats")
async def event_stats(processor: ProcessorDep) -> dict[str, int]:
    """Return ingestion counters and projection sizes."""
    return processor.stats()
