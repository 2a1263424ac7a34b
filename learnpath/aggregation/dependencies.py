"""FastAPI dependencies for aggregates."""

from typing import Annotated, Literal

from fastapi import Depends, HTTPException, Query, Request, status

from learnpath.persistence.port import Sort

from .service import AggregationService


async def get_aggregation_service(request: Request) -> AggregationService:
    """Get aggregation service from app state."""
    service = getattr(request.app.state, "aggregation_service", None)
    if not service:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Aggregation service not available",
        )
    return service


AggregationServiceDep = Annotated[AggregationService, Depends(get_aggregation_service)]


class Pagination:
    """Common page query parameters."""

    def __init__(
        self,
        page: Annotated[int, Query(ge=1)] = 1,
        page_size: Annotated[int, Query(ge=1, le=100)] = 10,
        sort_direction: Annotated[Literal["asc", "desc"], Query()] = "asc",
    ):
        self.page = page
        self.page_size = page_size
        self.descending = sort_direction == "desc"

    def sort(self, field: str | None) -> Sort | None:
        return Sort(field, self.descending) if field else None


PaginationDep = Annotated[Pagination, Depends()]
