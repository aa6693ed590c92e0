"""Reference data for filter pickers: industries, event types, areas."""

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, Query

from bizregistry.models import Industry
from bizregistry.services import AggregateService

from .dependencies import get_aggregate_service

logger = logging.getLogger(__name__)

router = APIRouter(tags=["reference"])


@router.get("/industries", response_model=List[Industry])
def list_industries(
    q: Optional[str] = Query(None, description="Code or text to search for"),
    service: AggregateService = Depends(get_aggregate_service),
) -> List[Industry]:
    """Primary industries, prefix matches first when searching."""
    return service.industries(q)


@router.get("/events/types")
def list_event_types(service: AggregateService = Depends(get_aggregate_service)) -> dict:
    """Distinct event types."""
    return {"items": service.event_types()}


@router.get("/areas")
def list_areas(
    q: Optional[str] = Query(None, description="City or postal code fragment"),
    service: AggregateService = Depends(get_aggregate_service),
) -> dict:
    """Most common cities, or cities and postal codes matching ``q``."""
    return {"items": service.areas(q)}
