"""Service providers resolved from the application state."""

from typing import Optional

from fastapi import Request

from bizregistry.services import (
    AggregateService,
    BulkListMaterializer,
    InstantListService,
)


def get_instant_service(request: Request) -> InstantListService:
    return request.app.state.instant_service


def get_aggregate_service(request: Request) -> AggregateService:
    return request.app.state.aggregate_service


def get_materializer(request: Request) -> Optional[BulkListMaterializer]:
    """The materializer, or ``None`` when no database is configured."""
    return request.app.state.materializer
