"""API dependency injection."""

from typing import Annotated

from fastapi import Depends, Header, Query, Request

from autorules.engine.service import AutomationService
from autorules.schemas.common import PaginationParams


def get_service(request: Request) -> AutomationService:
    """Get the automation service created by the application lifespan."""
    return request.app.state.service


def get_owner_id(
    x_owner_id: str = Header(..., min_length=1, description="Owner of the rules being managed"),
) -> str:
    return x_owner_id


# Type aliases for dependency injection
ServiceDep = Annotated[AutomationService, Depends(get_service)]
OwnerDep = Annotated[str, Depends(get_owner_id)]


def get_pagination(
    page: int = Query(default=1, ge=1, description="Page number"),
    page_size: int = Query(default=20, ge=1, le=100, description="Items per page"),
) -> PaginationParams:
    """Get pagination parameters from query."""
    return PaginationParams(page=page, page_size=page_size)


PaginationDep = Annotated[PaginationParams, Depends(get_pagination)]
