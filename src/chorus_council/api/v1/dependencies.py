"""Shared API dependencies and error translation for the v1 endpoints."""

from collections.abc import Iterator
from contextlib import contextmanager
from typing import Annotated

from fastapi import Depends, HTTPException, status

from chorus_council.core.errors import InvalidDraftError, PublishError, UnknownEntityError
from chorus_council.services.processor import EventProcessor, ProcessedEvent, get_event_processor

# Type alias for the process-wide event processor
ProcessorDep = Annotated[EventProcessor, Depends(get_event_processor)]


@contextmanager
def engine_errors() -> Iterator[None]:
    """Translate engine exceptions raised inside the block into HTTP errors.

    Raises:
        HTTPException: 404 for unknown entities, 400 for malformed writes and
            502 when the relay refused the event.
    """
    try:
        yield
    except UnknownEntityError as err:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(err)) from err
    except InvalidDraftError as err:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(err)) from err
    except PublishError as err:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(err)) from err


def folded_entity_id(processed: ProcessedEvent) -> str:
    """Return the id of the projection a published event was folded into.

    Raises:
        HTTPException: 500 if our own event could not be folded.
    """
    if processed.result is None or processed.result.entity_id is None:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Published event could not be applied: " + "; ".join(processed.validation.errors),
        )
    return processed.result.entity_id
