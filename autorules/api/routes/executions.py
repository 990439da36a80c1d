"""Execution history API routes."""

from fastapi import APIRouter, Query

from autorules.api.deps import OwnerDep, ServiceDep
from autorules.models.execution import ExecutionRecord
from autorules.schemas.common import APIResponse

router = APIRouter(prefix="/executions", tags=["executions"])


@router.get("", response_model=APIResponse[list[ExecutionRecord]])
async def list_executions(
    owner_id: OwnerDep,
    service: ServiceDep,
    rule_id: str | None = Query(default=None, description="Only records of this rule"),
    limit: int = Query(default=50, ge=1, le=100, description="Maximum records returned"),
) -> APIResponse[list[ExecutionRecord]]:
    """Get the caller's execution history, newest first."""
    if rule_id:
        records = service.list_execution_logs_for_rule(rule_id, limit, owner_id=owner_id)
    else:
        records = service.list_execution_logs(owner_id, limit)

    return APIResponse(data=records)
